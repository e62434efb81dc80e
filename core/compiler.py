"""Maven invocations used by the build loop."""

import os
import re

from config.defaults import DEFAULTS
from core.sandbox import run_in_sandbox
from utils.logger import get_logger

logger = get_logger("compiler")

_ERROR_LINE_RE = re.compile(r"^\[ERROR\].*$", re.MULTILINE)
TARGET_DIR = "target"


def extract_error_lines(output):
    """Return the ``[ERROR]`` lines of a Maven transcript, joined."""
    return "\n".join(m.group(0) for m in _ERROR_LINE_RE.finditer(output or ""))


def find_jar(project_dir, allow_original=False):
    """Path of the packaged jar under target/, or None.

    The shade plugin leaves an original-*.jar next to the shaded one; that
    one lacks the bundled dependencies and is only returned when
    ``allow_original`` is set and nothing else was packaged.
    """
    target = os.path.join(project_dir, TARGET_DIR)
    if not os.path.isdir(target):
        return None
    jars = sorted(name for name in os.listdir(target) if name.endswith(".jar"))
    for name in jars:
        if not name.startswith("original"):
            return os.path.join(target, name)
    if allow_original and jars:
        return os.path.join(target, jars[0])
    return None


class MavenCompiler:
    """Runs ``mvn`` in a project directory. Every call returns a CompileOutput."""

    def __init__(self, command=None, timeout=None):
        self.command = command or DEFAULTS["maven_command"]
        self.timeout = timeout or DEFAULTS["build_timeout"]

    async def compile(self, directory, skip_shade=False):
        """Full ``clean package``; ``skip_shade`` drops dependency bundling."""
        args = [self.command, "-B", "clean", "package"]
        if skip_shade:
            args.append("-Dmaven.shade.skip=true")
        logger.info("Running %s in %s", " ".join(args), directory)
        return await run_in_sandbox(args, cwd=directory, timeout=self.timeout)

    async def compile_errors(self, directory):
        """Compile only, with error stack traces: a cleaner transcript than package."""
        args = [self.command, "-B", "clean", "compile", "-e"]
        logger.info("Collecting compile errors in %s", directory)
        return await run_in_sandbox(args, cwd=directory, timeout=self.timeout)
