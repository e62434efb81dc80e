"""Extract delimiter-tagged files from model output.

The model is asked to answer with blocks of the form::

    ---FILE_START:src/main/resources/plugin.yml---
    name: HealOnJoin
    ---FILE_END---

It does not always comply, so parsing is lenient: anything that is not a
complete block is ignored.
"""

import re

from utils.logger import get_logger

logger = get_logger("extractor")

# A start marker, then content that never crosses another start marker,
# then the end marker. An unterminated block is dropped and the next
# well-formed one still matches.
FILE_BLOCK_RE = re.compile(
    r"---FILE_START:(?P<path>[^\n]*?)---(?P<content>(?:(?!---FILE_START:).)*?)---FILE_END---",
    re.DOTALL,
)

# Fence opener with an optional language tag, or a bare fence.
_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\r?\n?")

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def clean_content(content):
    """Remove Markdown code fences the model wrapped around raw file content."""
    return _FENCE_RE.sub("", content)


def is_safe_relative_path(path):
    """True if ``path`` stays inside whatever directory it is joined to."""
    if not path or "\x00" in path:
        return False
    if path.startswith(("/", "\\")) or _DRIVE_RE.match(path):
        return False
    return ".." not in path.replace("\\", "/").split("/")


def extract_files(text):
    """Return a FileTree of every well-formed block in ``text``, in order.

    Paths and contents are trimmed; a repeated path keeps its last content.
    Paths that would leave the project directory are dropped.
    """
    files = {}
    if not text:
        return files

    for match in FILE_BLOCK_RE.finditer(text):
        path = match.group("path").strip().lstrip("/")
        if not path:
            continue
        if not is_safe_relative_path(path):
            logger.warning("Dropping file block with unsafe path: %s", path)
            continue
        files[path] = clean_content(match.group("content").strip()).strip()
    return files
