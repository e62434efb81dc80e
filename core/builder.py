"""Build-repair loop: compile, ask for a fix, patch, recompile.

States:

    Idle -> Compiling -> Success
                      -> AnalyzingFailure -> RequestingFix -> Patching -> Compiling ...
    after max_attempts fix rounds:
                      -> DegradedCompiling (shade skipped) -> Success(degraded) | Fatal

Attempts are strictly sequential: each fix is written to disk before the
next compile starts. A compiler that cannot run (missing tool, timeout)
counts as a failed compile; a fixer with nothing to offer leaves the tree
untouched for the next compile.
"""

import os

from config.defaults import DEFAULTS
from core.compiler import extract_error_lines, find_jar
from core.state import BuildAttempt, BuildResult
from utils.logger import get_logger

logger = get_logger("builder")

DEGRADED_WARNING = (
    "WARNING: build succeeded only with shading disabled; "
    "the jar may be missing bundled dependencies."
)


class BuildOrchestrator:
    """Drives one build directory to a jar or to exhaustion."""

    def __init__(self, compiler, fixer, store, max_attempts=None):
        self.compiler = compiler
        self.fixer = fixer
        self.store = store
        self.max_attempts = DEFAULTS["max_build_attempts"] if max_attempts is None else max_attempts

    async def run(self, files, build_id, plugin_name=None):
        """Build ``files`` (a FileTree, patched in place) and return a BuildResult."""
        build_dir = self.store.build_dir(build_id)
        self.store.write_files(build_id, files)

        transcript = []
        attempts = []
        compiles = 0

        while True:
            compiles += 1
            logger.info("Build %s: compile %d", build_id, compiles)
            output = await self.compiler.compile(build_dir)
            transcript.append(self._section(f"attempt {compiles}", output))

            jar = find_jar(build_dir) if output.succeeded else None
            if attempts:
                attempts[-1].compile_succeeded = jar is not None
            if jar:
                logger.info("Build %s succeeded after %d compile(s)", build_id, compiles)
                return self._finish(build_id, plugin_name, True, jar, transcript,
                                    compiles, attempts, degraded=False)
            if output.succeeded:
                transcript.append("Compiler exited 0 but produced no jar under target/\n")

            if len(attempts) >= self.max_attempts:
                break

            error_text = await self._error_transcript(build_dir, output, transcript)
            attempt = BuildAttempt(number=len(attempts) + 1, error_text=error_text)
            attempts.append(attempt)

            outcome = await self.fixer.fix(error_text, files, plugin_name)
            attempt.files_sent = outcome.files_sent
            attempt.fix_response = outcome.response
            attempt.files_patched = outcome.files

            if outcome.changed:
                files.update(outcome.files)
                self.store.write_files(build_id, outcome.files)
                logger.info("Build %s: patched %s", build_id, ", ".join(outcome.files))
            else:
                logger.warning("Build %s: fix round %d changed nothing", build_id, attempt.number)

        logger.warning("Build %s: %d fix rounds exhausted, trying without shading",
                       build_id, self.max_attempts)
        compiles += 1
        output = await self.compiler.compile(build_dir, skip_shade=True)
        transcript.append(self._section("degraded build (shade skipped)", output))

        jar = find_jar(build_dir, allow_original=True) if output.succeeded else None
        if jar:
            logger.warning("Build %s: %s", build_id, DEGRADED_WARNING)
            transcript.append(DEGRADED_WARNING + "\n")
            return self._finish(build_id, plugin_name, True, jar, transcript,
                                compiles, attempts, degraded=True)

        logger.error("Build %s failed with all approaches", build_id)
        return self._finish(build_id, plugin_name, False, None, transcript,
                            compiles, attempts, degraded=False)

    async def _error_transcript(self, build_dir, output, transcript):
        """The [ERROR] lines of the package run, or a compile-only rerun if it had none."""
        errors = extract_error_lines(output.combined)
        if errors:
            return errors
        if output.exit_code == -1:
            # the tool never ran; a rerun would fail the same way
            return output.combined.strip() or "Build failed without output"
        rerun = await self.compiler.compile_errors(build_dir)
        transcript.append(self._section("error analysis", rerun))
        return extract_error_lines(rerun.combined) or rerun.combined.strip() or output.combined.strip()

    @staticmethod
    def _section(title, output):
        return f"===== {title} (exit {output.exit_code}) =====\n{output.stdout}{output.stderr}\n"

    def _finish(self, build_id, plugin_name, success, jar, transcript, compiles, attempts, degraded):
        result = BuildResult(
            success=success,
            jar_path=jar,
            build_output="".join(transcript),
            build_id=build_id,
            attempts_used=compiles,
            degraded=degraded,
            attempts=tuple(attempts),
        )
        record = result.to_dict()
        record["pluginName"] = plugin_name
        if jar:
            record["jarPath"] = os.path.relpath(jar, self.store.build_dir(build_id)).replace(os.sep, "/")
        self.store.write_result(build_id, record)
        return result
