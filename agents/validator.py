"""Plugin validator: makes plugin.yml agree with the actual main class."""

import posixpath
import re

from agents.base import BaseAgent, format_file_sections
from agents.generator import main_class_path, template_variables
from config.defaults import DEFAULTS
from config.models import model_config
from utils.extractor import extract_files
from utils.folder_naming import FALLBACK_PLUGIN_NAME, clean_plugin_name
from utils.llm import LLMError
from utils.logger import get_logger
from utils.normalizer import normalize_file, package_for_path
from utils.template_engine import render_template

logger = get_logger("validator")

_EXTENDS_PLUGIN_RE = re.compile(r"\bextends\s+(?:org\.bukkit\.plugin\.java\.)?JavaPlugin\b")
_ON_ENABLE_RE = re.compile(r"\bvoid\s+onEnable\s*\(\s*\)")
_PACKAGE_RE = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)
_YML_NAME_VALUE_RE = re.compile(r"^name:\s*['\"]?([A-Za-z0-9_]+)", re.MULTILINE)
_YML_MAIN_LINE_RE = re.compile(r"^main:.*$", re.MULTILINE)

NO_ERRORS_MARKER = "NO_ERRORS_FOUND"


def find_manifest(files):
    return next((p for p in files if posixpath.basename(p) == "plugin.yml"), None)


def find_descriptor(files):
    return next((p for p in files if posixpath.basename(p) == "pom.xml"), None)


def find_main_class(files):
    """(path, fully qualified class name) of the JavaPlugin subclass, or None.

    A class extending JavaPlugin wins; otherwise the first class that
    declares onEnable().
    """
    java = [(p, c) for p, c in files.items() if p.endswith(".java")]
    for matcher in (_EXTENDS_PLUGIN_RE, _ON_ENABLE_RE):
        for path, content in java:
            if matcher.search(content):
                class_name = posixpath.basename(path)[:-len(".java")]
                declared = _PACKAGE_RE.search(content)
                package = declared.group(1) if declared else package_for_path(path)
                fqcn = f"{package}.{class_name}" if package else class_name
                return path, fqcn
    return None


def infer_plugin_name(files):
    """Plugin name from plugin.yml, else the main class name."""
    manifest = find_manifest(files)
    if manifest:
        match = _YML_NAME_VALUE_RE.search(files[manifest])
        if match:
            return match.group(1)
    main = find_main_class(files)
    if main:
        return clean_plugin_name(main[1].rsplit(".", 1)[-1]) or FALLBACK_PLUGIN_NAME
    return FALLBACK_PLUGIN_NAME


def set_manifest_main(content, fqcn):
    line = f"main: {fqcn}"
    if _YML_MAIN_LINE_RE.search(content):
        return _YML_MAIN_LINE_RE.sub(line, content, count=1)
    return content.rstrip("\n") + "\n" + line


class PluginValidator(BaseAgent):
    """Checks the files that decide whether a plugin loads at all."""

    name = "validator"

    def __init__(self, llm=None, ai_check=None):
        super().__init__(llm)
        self.ai_check_enabled = DEFAULTS["ai_validation"] if ai_check is None else ai_check

    def ensure_manifest(self, files, plugin_name, prompt=""):
        if find_manifest(files) is None:
            logger.warning("No plugin.yml in the project, adding one")
            files["src/main/resources/plugin.yml"] = render_template(
                "plugin", "plugin.yml.tpl", template_variables(plugin_name, prompt)
            )
        return files

    def ensure_main_class(self, files, plugin_name):
        if find_main_class(files) is None:
            path = main_class_path(plugin_name)
            logger.warning("No main class found, generating %s", path)
            files[path] = render_template(
                "plugin", "Main.java.tpl", template_variables(plugin_name)
            )
        return files

    def sync_manifest(self, files, plugin_name):
        manifest = find_manifest(files)
        main = find_main_class(files)
        if manifest is None or main is None:
            return files
        _, fqcn = main
        updated = normalize_file(manifest, set_manifest_main(files[manifest], fqcn), plugin_name)
        if updated != files[manifest]:
            logger.info("Updated plugin.yml with main class: %s", fqcn)
        files[manifest] = updated
        return files

    async def ai_check(self, files, plugin_name):
        """Ask the fast model to spot load-breaking errors in the critical files.

        Only files that were sent in full may be replaced: a correction
        made from a truncated excerpt would drop the rest of the file.
        """
        limit = DEFAULTS["validation_prefix_chars"]
        critical = {}
        main = find_main_class(files)
        for path in (main[0] if main else None, find_manifest(files), find_descriptor(files)):
            if path and path in files:
                critical[path] = files[path]
        if not critical:
            return files

        prompt = self._prompt("validate.txt", files=format_file_sections(critical, limit=limit))
        try:
            text = await self._ask(prompt, model_config("fast", "precision"))
        except LLMError as e:
            logger.warning("AI validation failed, keeping files as they are: %s", e)
            return files

        if NO_ERRORS_MARKER in text:
            logger.info("AI validation: no critical errors found")
            return files

        for path, content in extract_files(text).items():
            if path in critical and len(critical[path]) <= limit and content:
                files[path] = normalize_file(path, content, plugin_name)
                logger.info("AI validation fixed: %s", path)
        return files

    async def validate(self, files, plugin_name, prompt=""):
        """Return a validated copy of ``files``."""
        validated = dict(files)
        self.ensure_manifest(validated, plugin_name, prompt)
        self.ensure_main_class(validated, plugin_name)
        self.sync_manifest(validated, plugin_name)
        if self.ai_check_enabled:
            await self.ai_check(validated, plugin_name)
            self.ensure_main_class(validated, plugin_name)
            self.sync_manifest(validated, plugin_name)
        return validated
