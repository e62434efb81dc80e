"""Naming utilities: plugin names, build ids and build directories."""

import os
import re
import time
import uuid

from config.defaults import DEFAULTS

_FILLER = {
    "build", "me", "a", "an", "the", "create", "make", "generate",
    "write", "for", "to", "with", "using", "that", "and", "on", "of",
    "in", "when", "which", "who", "plugin", "minecraft", "server",
    "spigot", "bukkit", "please", "can", "you", "i", "want", "need",
    "some", "new", "it", "is", "are", "they", "their",
}

_BUILD_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}$")
_BUILD_TIMESTAMP_RE = re.compile(r"^plugin-(\d{10,})")

FALLBACK_PLUGIN_NAME = "CustomPlugin"


def clean_plugin_name(raw):
    """Turn a model's name suggestion into a Java-safe PascalCase identifier.

    Returns None when nothing usable is left.
    """
    if not raw:
        return None
    line = next((l for l in raw.strip().splitlines() if l.strip()), "")
    if ":" in line:
        line = line.rsplit(":", 1)[1]
    name = re.sub(r"[^A-Za-z0-9]", "", line)
    name = name.lstrip("0123456789")
    if len(name) < 3:
        return None
    name = name[0].upper() + name[1:]
    if len(name) < 5:
        name += "Plugin"
    return name


def derive_plugin_name(request):
    """PascalCase name from the meaningful words of a request."""
    words = re.sub(r"[^\w\s]", "", request.lower()).split()
    meaningful = [w for w in words if w not in _FILLER and not w.isdigit()]
    name = "".join(w.capitalize() for w in meaningful[:3])
    return clean_plugin_name(name) or FALLBACK_PLUGIN_NAME


def new_build_id():
    """Unique per request: millisecond timestamp plus a random suffix."""
    return f"plugin-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def is_valid_build_id(build_id):
    return isinstance(build_id, str) and bool(_BUILD_ID_RE.match(build_id))


def build_timestamp(build_id):
    """Creation time (epoch seconds) encoded in a build id, or None."""
    match = _BUILD_TIMESTAMP_RE.match(build_id)
    if not match:
        return None
    return int(match.group(1)) / 1000.0


def get_plugins_dir():
    return os.path.realpath(DEFAULTS["plugins_dir"])


def _check_containment(path, base):
    """Verify the resolved path stays within base."""
    resolved = os.path.realpath(path)
    if not resolved.startswith(base + os.sep):
        raise ValueError(f"Build path escapes plugins directory: {path}")
    return resolved


def get_build_dir(build_id, base=None):
    """Absolute directory of a build. Raises ValueError for unsafe ids."""
    if not is_valid_build_id(build_id):
        raise ValueError(f"Invalid build id: {build_id!r}")
    base = os.path.realpath(base) if base else get_plugins_dir()
    return _check_containment(os.path.join(base, build_id), base)
