"""Planner agent: plugin name, requirements, blueprint and file list."""

import asyncio
import json
import re

from agents.base import BaseAgent
from config.defaults import DEFAULTS
from config.models import model_config
from utils.folder_naming import clean_plugin_name, derive_plugin_name
from utils.extractor import is_safe_relative_path
from utils.llm import LLMError
from utils.logger import get_logger
from utils.normalizer import plugin_package

logger = get_logger("planner")

JSON_ARRAY_RE = re.compile(r'\[\s*"[^"]+"(?:\s*,\s*"[^"]+")*\s*\]')
FILE_EXTENSION_RE = re.compile(r"[\w/\-.]+\.(?:java|xml|yml)\b")

MANIFEST_PATH = "src/main/resources/plugin.yml"
DESCRIPTOR_PATH = "pom.xml"


# --- file list parsers: text -> list[str] | None, tried in order ---------

def _load_string_list(candidate):
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        return None
    return value


def from_json_pattern(text):
    """A well-formed JSON array of strings anywhere in the text."""
    match = JSON_ARRAY_RE.search(text)
    return _load_string_list(match.group(0)) if match else None


def from_brackets(text):
    """Everything between the first '[' and the last ']'."""
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end <= start:
        return None
    return _load_string_list(text[start:end + 1])


def from_extensions(text):
    """Any token that looks like a .java/.xml/.yml path."""
    return FILE_EXTENSION_RE.findall(text) or None


FILE_LIST_PARSERS = (from_json_pattern, from_brackets, from_extensions)


def default_file_list(plugin_name):
    package_path = plugin_package(plugin_name).replace(".", "/")
    return [
        DESCRIPTOR_PATH,
        MANIFEST_PATH,
        f"src/main/java/{package_path}/{plugin_name}.java",
    ]


def _fix_path(path, plugin_name):
    path = re.sub(r"^(?:\./|/)+", "", path.strip())
    if "/" not in path:
        if path.endswith(".java"):
            package_path = plugin_package(plugin_name).replace(".", "/")
            return f"src/main/java/{package_path}/{path}"
        if path.endswith((".yml", ".yaml")):
            return f"src/main/resources/{path}"
    return path


def parse_file_list(text, plugin_name):
    """Run the parser chain; fall back to the default project layout."""
    for parser in FILE_LIST_PARSERS:
        found = parser(text or "")
        if not found:
            continue
        paths = []
        for raw in found:
            path = _fix_path(raw, plugin_name)
            if path and not is_safe_relative_path(path):
                logger.warning("Ignoring unsafe path in file list: %s", path)
                continue
            if path and path not in paths:
                paths.append(path)
        if paths:
            if DESCRIPTOR_PATH not in paths:
                paths.insert(0, DESCRIPTOR_PATH)
            if not any(p.endswith("plugin.yml") for p in paths):
                paths.insert(1, MANIFEST_PATH)
            return paths
    logger.info("No file list in model output, using the default layout")
    return default_file_list(plugin_name)


class PlannerAgent(BaseAgent):
    """Turns a prompt into a plugin name, refined requirements, a blueprint and a file list."""

    name = "planner"

    async def plugin_name(self, prompt):
        try:
            text = await self._ask(self._prompt("plugin_name.txt", prompt=prompt),
                                   model_config("fast", "precision"))
        except LLMError as e:
            logger.warning("Plugin name extraction failed: %s", e)
            text = ""
        name = clean_plugin_name(text) or derive_plugin_name(prompt)
        logger.info("Using plugin name: %s", name)
        return name

    async def refine(self, prompt, plugin_name):
        return await self._ask(
            self._prompt("refine.txt", prompt=prompt, plugin_name=plugin_name),
            model_config("fast", "creative"),
        )

    async def blueprint(self, prompt, plugin_name):
        return await self._ask(
            self._prompt("blueprint.txt", prompt=prompt, plugin_name=plugin_name,
                         package=plugin_package(plugin_name)),
            model_config("fast", "creative"),
        )

    async def plan(self, prompt, plugin_name):
        """Refine requirements and draft the blueprint concurrently.

        Returns (requirements, blueprint). A failed refinement leaves the
        requirements empty; a failed blueprint falls back to the raw prompt.
        """
        requirements, blueprint = await asyncio.gather(
            self.refine(prompt, plugin_name),
            self.blueprint(prompt, plugin_name),
            return_exceptions=True,
        )
        if isinstance(requirements, BaseException):
            if not isinstance(requirements, LLMError):
                raise requirements
            logger.warning("Requirements refinement failed: %s", requirements)
            requirements = ""
        if isinstance(blueprint, BaseException):
            if not isinstance(blueprint, LLMError):
                raise blueprint
            logger.warning("Blueprint generation failed: %s", blueprint)
            blueprint = f"PLUGIN NAME: {plugin_name}\nREQUIREMENTS:\n{prompt}"
        return requirements, blueprint

    async def file_list(self, blueprint, plugin_name):
        excerpt = blueprint[:DEFAULTS["blueprint_excerpt_chars"]]
        prompt = self._prompt(
            "file_list.txt",
            blueprint=excerpt,
            package_path=plugin_package(plugin_name).replace(".", "/"),
        )
        try:
            text = await self._ask(prompt, model_config("fast", "creative"))
        except LLMError as e:
            logger.warning("File list extraction failed: %s", e)
            text = ""
        files = parse_file_list(text, plugin_name)
        logger.info("Files to generate: %s", files)
        return files
