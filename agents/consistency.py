"""Cross-file consistency check.

The model reports mismatches between files; only package mismatches are
patched mechanically. Anything else is logged and left alone: free-form
"fix" text is never applied as code.
"""

import re

from agents.base import BaseAgent
from config.defaults import DEFAULTS
from config.models import model_config
from core.state import InconsistencyIssue
from utils.llm import LLMError, parse_json_response
from utils.logger import get_logger

logger = get_logger("consistency")

_CORRECT_PACKAGE_RE = re.compile(r"should be ['\"]([\w.]+)['\"]")
_PACKAGE_PAIR_RE = re.compile(r"['\"]([\w.]+)['\"]\s+vs\.?\s+['\"]([\w.]+)['\"]")
_PACKAGE_DECL_RE = re.compile(r"^package\s+([\w.]+)\s*;", re.MULTILINE)


def parse_issues(text):
    """InconsistencyIssues from the model's JSON answer; [] when unusable."""
    data = parse_json_response(text)
    if not isinstance(data, dict):
        return []
    issues = []
    for item in data.get("issues") or []:
        if not isinstance(item, dict):
            continue
        issues.append(InconsistencyIssue(
            file_a=str(item.get("fileA", "")),
            file_b=str(item.get("fileB", "")),
            issue=str(item.get("issue", "")),
            fix=str(item.get("fix", "")),
        ))
    return issues


def apply_package_fix(files, issue):
    """Rename the package of both files and retarget imports. Returns True if applied."""
    correct = _CORRECT_PACKAGE_RE.search(issue.fix)
    if not correct or issue.file_a not in files or issue.file_b not in files:
        return False
    correct_package = correct.group(1)

    superseded = set()
    for path in (issue.file_a, issue.file_b):
        declared = _PACKAGE_DECL_RE.search(files[path])
        if declared:
            superseded.add(declared.group(1))
            files[path] = _PACKAGE_DECL_RE.sub(f"package {correct_package};", files[path], count=1)
        else:
            files[path] = f"package {correct_package};\n\n{files[path]}"
    pair = _PACKAGE_PAIR_RE.search(issue.issue)
    if pair:
        superseded.update(pair.groups())
    superseded.discard(correct_package)

    for old in superseded:
        pattern = re.compile(r"\bimport\s+" + re.escape(old) + r"\.")
        for path in files:
            files[path] = pattern.sub(f"import {correct_package}.", files[path])

    logger.info("Moved %s and %s to package %s", issue.file_a, issue.file_b, correct_package)
    return True


class ConsistencyChecker(BaseAgent):
    """Asks the model for cross-file mismatches and patches the safe ones."""

    name = "consistency"

    async def check(self, files):
        prefix = DEFAULTS["consistency_prefix_chars"]
        samples = "\n\n".join(
            f"{path}:\n{content[:prefix]}...[truncated]" for path, content in files.items()
        )
        try:
            text = await self._ask(self._prompt("consistency.txt", samples=samples),
                                   model_config("fast", "creative"))
        except LLMError as e:
            logger.warning("Consistency check failed, continuing: %s", e)
            return []
        return parse_issues(text)

    def apply(self, files, issues):
        """Patch ``files`` in place; returns the number of issues applied."""
        applied = 0
        for issue in issues:
            if "package" in issue.issue.lower() and apply_package_fix(files, issue):
                applied += 1
            else:
                logger.info("Not auto-applied (%s / %s): %s", issue.file_a, issue.file_b, issue.issue)
        return applied

    async def run(self, files):
        """Check and patch a multi-file draft in place. Returns the issues found."""
        if len(files) < 2:
            return []
        issues = await self.check(files)
        if issues:
            logger.info("Fixing %d reported inconsistencies", len(issues))
            self.apply(files, issues)
        return issues
