"""Deterministic textual fixes for defects the model keeps reintroducing.

Every fix first checks whether the content is already correct, so
normalize_file(normalize_file(x)) == normalize_file(x). Nothing here parses
Java, XML or YAML; it is pattern substitution only.
"""

import posixpath
import re

from config.defaults import DEFAULTS
from utils.extractor import clean_content

# --- Java ---------------------------------------------------------------

_JETBRAINS_IMPORT_RE = re.compile(r"^[ \t]*import\s+org\.jetbrains\.annotations\.[^;]*;[ \t]*\r?\n?", re.MULTILINE)
_JETBRAINS_ANNOTATION_RE = re.compile(r"@(?:org\.jetbrains\.annotations\.)?(?:NotNull|Nullable)\b[ \t]*")

# Pig has no setAngry in the Bukkit API (Wolf and PigZombie do).
_PIG_SET_ANGRY_RE = re.compile(r"\bpig\.setAngry\(([^)]+)\);?")
_PIG_SET_ANGRY_REPLACEMENT = (
    "pig.setPersistent(true);\n"
    "        pig.setMetadata(\"angry\", new FixedMetadataValue(plugin, $1));"
)

_METADATA_IMPORT = "import org.bukkit.metadata.FixedMetadataValue;"
_PACKAGE_DECL_RE = re.compile(r"^\s*package\s+[\w.]+\s*;", re.MULTILINE)
_IMPORT_LINE_RE = re.compile(r"^import\s+[\w.*]+\s*;[ \t]*$", re.MULTILINE)
_JAVA_SOURCE_ROOT = "src/main/java/"

# --- XML ----------------------------------------------------------------

_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
_XML_START_RE = re.compile(r"<\?xml|<project\b")
_ARTIFACT_ID_RE = re.compile(r"<artifactId>\s*([^<]*?)\s*</artifactId>")
_PARENT_BLOCK_RE = re.compile(r"<parent>.*?</parent>", re.DOTALL)
_POM_SECTION_RE = re.compile(r"<(?:dependencies|dependencyManagement|build|profiles|repositories|pluginRepositories)>")
_MODEL_VERSION_RE = re.compile(r"<modelVersion>[^<]*</modelVersion>")
_PROJECT_OPEN_RE = re.compile(r"<project\b[^>]*>")

# --- plugin.yml -----------------------------------------------------------

_YML_NAME_RE = re.compile(r"^name:.*$", re.MULTILINE)
_YML_MAIN_RE = re.compile(r"^main:", re.MULTILINE)
_YML_VERSION_RE = re.compile(r"^version:", re.MULTILINE)
_YML_API_VERSION_RE = re.compile(r"^api-version:", re.MULTILINE)


def plugin_package(plugin_name):
    """Canonical root package of a plugin, e.g. com.pegasus.healonjoin."""
    return f"{DEFAULTS['base_package']}.{plugin_name.lower()}"


def default_main_class(plugin_name):
    return f"{plugin_package(plugin_name)}.{plugin_name}"


def normalize_namespace(content, plugin_name):
    """Replace the placeholder namespaces the model likes to emit."""
    target = plugin_package(plugin_name)
    base = DEFAULTS["base_package"]
    placeholder_root = f"{base}.plugin"
    content = re.sub(r"\bcom\.yourusername\b", target, content)
    if placeholder_root != target:
        content = re.sub(re.escape(placeholder_root) + r"\b", target, content)
    content = content.replace("yourusername", base.rsplit(".", 1)[-1])
    return content


def package_for_path(path):
    """Package implied by a source path under src/main/java/, or ''."""
    idx = path.find(_JAVA_SOURCE_ROOT)
    if idx == -1:
        return ""
    directory = posixpath.dirname(path[idx + len(_JAVA_SOURCE_ROOT):])
    return directory.replace("/", ".")


def _add_import(content, import_line):
    imports = list(_IMPORT_LINE_RE.finditer(content))
    if imports:
        end = imports[-1].end()
        return content[:end] + "\n" + import_line + content[end:]
    package = _PACKAGE_DECL_RE.search(content)
    if package:
        end = package.end()
        return content[:end] + "\n\n" + import_line + content[end:]
    return import_line + "\n\n" + content


def normalize_java(path, content, plugin_name):
    content = clean_content(content)
    content = _JETBRAINS_IMPORT_RE.sub("", content)
    content = _JETBRAINS_ANNOTATION_RE.sub("", content)
    content = _PIG_SET_ANGRY_RE.sub(
        lambda m: _PIG_SET_ANGRY_REPLACEMENT.replace("$1", m.group(1)), content
    )

    if "FixedMetadataValue" in content and _METADATA_IMPORT not in content:
        content = _add_import(content, _METADATA_IMPORT)

    package = package_for_path(path)
    if package and not _PACKAGE_DECL_RE.search(content):
        content = f"package {package};\n\n{content.lstrip()}"
    return content


def _set_pom_artifact_id(content, artifact_id):
    section = _POM_SECTION_RE.search(content)
    head_end = section.start() if section else len(content)

    parent_spans = [m.span() for m in _PARENT_BLOCK_RE.finditer(content, 0, head_end)]

    for match in _ARTIFACT_ID_RE.finditer(content, 0, head_end):
        if any(start <= match.start() < end for start, end in parent_spans):
            continue
        if match.group(1) == artifact_id:
            return content
        return content[:match.start()] + f"<artifactId>{artifact_id}</artifactId>" + content[match.end():]

    # No module artifactId at all: insert one after modelVersion or <project>.
    anchor = _MODEL_VERSION_RE.search(content, 0, head_end) or _PROJECT_OPEN_RE.search(content)
    if not anchor:
        return content
    insert = f"\n    <artifactId>{artifact_id}</artifactId>"
    return content[:anchor.end()] + insert + content[anchor.end():]


def normalize_xml(path, content, plugin_name):
    content = clean_content(content).strip()
    start = _XML_START_RE.search(content)
    if start:
        content = content[start.start():]
    if not content.startswith("<?xml"):
        content = f"{_XML_DECLARATION}\n{content}"
    if posixpath.basename(path) == "pom.xml":
        content = _set_pom_artifact_id(content, plugin_name.lower())
    return content


def _append_line(content, line):
    return content.rstrip("\n") + "\n" + line if content.strip() else line


def normalize_plugin_yml(path, content, plugin_name):
    content = clean_content(content)

    name_line = f"name: {plugin_name}"
    existing = _YML_NAME_RE.search(content)
    if existing is None:
        content = f"{name_line}\n{content}" if content.strip() else name_line
    elif existing.group(0).rstrip() != name_line:
        content = content[:existing.start()] + name_line + content[existing.end():]

    # The validator rewrites this once the real main class is known.
    if not _YML_MAIN_RE.search(content):
        content = _append_line(content, f"main: {default_main_class(plugin_name)}")
    if not _YML_VERSION_RE.search(content):
        content = _append_line(content, f"version: {DEFAULTS['default_plugin_version']}")
    if not _YML_API_VERSION_RE.search(content):
        content = _append_line(content, f"api-version: '{DEFAULTS['api_version']}'")
    return content


def normalize_file(path, content, plugin_name):
    """Return ``content`` with the per-file-type fixes for ``path`` applied."""
    if content is None:
        return ""
    if path.endswith(".java"):
        content = normalize_java(path, content, plugin_name)
    elif path.endswith(".xml"):
        content = normalize_xml(path, content, plugin_name)
    elif posixpath.basename(path) == "plugin.yml":
        content = normalize_plugin_yml(path, content, plugin_name)
    return normalize_namespace(content, plugin_name)


def normalize_files(files, plugin_name):
    """Normalize every file of a FileTree in place and return it."""
    for path in list(files):
        files[path] = normalize_file(path, files[path], plugin_name)
    return files
