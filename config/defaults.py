"""Default service settings. Every value can be overridden from the environment."""

import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}")


DEFAULTS = {
    "api_token": os.environ.get("API_TOKEN", "your-secret-token"),
    "fast_model": os.environ.get("FAST_MODEL", "claude-haiku-4-5"),
    "pro_model": os.environ.get("PRO_MODEL", "claude-sonnet-4-5-20250929"),
    "max_tokens": _env_int("MAX_TOKENS", 32768),
    "llm_timeout": _env_int("LLM_TIMEOUT", 300),       # seconds per model call
    "cache_ttl": _env_int("CACHE_TTL", 3600),
    "cache_max_entries": 500,
    "max_build_attempts": _env_int("MAX_BUILD_ATTEMPTS", 5),
    "build_timeout": _env_int("BUILD_TIMEOUT", 600),   # dependency resolution can be slow
    "maven_command": os.environ.get("MAVEN_CMD", "mvn"),
    "allowed_commands": ["mvn", "mvn.cmd", "mvnw"],
    "plugins_dir": os.environ.get("PLUGINS_DIR", os.path.join(BASE_DIR, "generated-plugins")),
    "base_package": os.environ.get("BASE_PACKAGE", "com.pegasus"),
    "api_version": os.environ.get("API_VERSION", "1.19"),
    "default_plugin_version": "1.0",
    "blueprint_excerpt_chars": 4000,
    "consistency_prefix_chars": 200,
    "validation_prefix_chars": 1000,
    "ai_validation": os.environ.get("AI_VALIDATION", "1") not in ("0", "false", "no"),
    "log_level": os.environ.get("LOG_LEVEL", "INFO"),
    "log_file": os.environ.get("LOG_FILE", ""),
}

# MAVEN_CMD may point at a wrapper outside the default allowlist
if os.path.basename(DEFAULTS["maven_command"]) not in DEFAULTS["allowed_commands"]:
    DEFAULTS["allowed_commands"].append(os.path.basename(DEFAULTS["maven_command"]))
