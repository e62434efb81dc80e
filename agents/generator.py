"""Generator agent: drafts every plugin file from the blueprint."""

import asyncio

from agents.base import BaseAgent
from config.defaults import DEFAULTS
from config.models import model_config, select_model
from utils.extractor import clean_content, extract_files
from utils.llm import LLMError
from utils.logger import get_logger
from utils.normalizer import default_main_class, normalize_files, plugin_package
from utils.template_engine import render_template

logger = get_logger("generator")


def _description(prompt):
    text = " ".join((prompt or "").split()).replace('"', "'").replace("\\", "")
    return text[:120] or "A custom Minecraft plugin"


def template_variables(plugin_name, prompt=""):
    return {
        "plugin_name": plugin_name,
        "plugin_lower": plugin_name.lower(),
        "package": plugin_package(plugin_name),
        "base_package": DEFAULTS["base_package"],
        "main_class": default_main_class(plugin_name),
        "version": DEFAULTS["default_plugin_version"],
        "api_version": DEFAULTS["api_version"],
        "description": _description(prompt),
    }


def main_class_path(plugin_name):
    return f"src/main/java/{plugin_package(plugin_name).replace('.', '/')}/{plugin_name}.java"


def default_files(plugin_name, prompt=""):
    """Minimal buildable project used when the model produced nothing."""
    variables = template_variables(plugin_name, prompt)
    return {
        "pom.xml": render_template("plugin", "pom.xml.tpl", variables),
        "src/main/resources/plugin.yml": render_template("plugin", "plugin.yml.tpl", variables),
        main_class_path(plugin_name): render_template("plugin", "Main.java.tpl", variables),
    }


class GeneratorAgent(BaseAgent):
    """Produces the multi-file draft, with per-file and template fallbacks."""

    name = "generator"

    async def run(self, plugin_name, blueprint, requirements, file_list, prompt=""):
        files = await self._generate_all(plugin_name, blueprint, requirements, file_list)

        if not files:
            logger.warning("Falling back to individual file generation")
            files = await self._generate_each(plugin_name, blueprint, file_list)

        if not files:
            logger.warning("No files from the model, using the default plugin skeleton")
            files = default_files(plugin_name, prompt)

        return normalize_files(files, plugin_name)

    async def _generate_all(self, plugin_name, blueprint, requirements, file_list):
        prompt = self._prompt(
            "generate_files.txt",
            blueprint=blueprint,
            requirements=requirements or "(none)",
            plugin_name=plugin_name,
            package=plugin_package(plugin_name),
            file_list="\n".join(file_list),
        )
        model = select_model(len(blueprint), len(file_list), task="generate")
        try:
            response = await self._ask(prompt, model)
        except LLMError as e:
            logger.warning("Multi-file generation failed: %s", e)
            return {}
        files = extract_files(response)
        for path in files:
            logger.info("Generated: %s", path)
        return files

    async def _generate_one(self, plugin_name, excerpt, file_path):
        prompt = self._prompt(
            "generate_single.txt",
            blueprint=excerpt,
            plugin_name=plugin_name,
            file_path=file_path,
            package=plugin_package(plugin_name),
        )
        response = await self._ask(prompt, model_config("fast", "creative"))
        return file_path, clean_content(response).strip()

    async def _generate_each(self, plugin_name, blueprint, file_list):
        excerpt = blueprint[:DEFAULTS["blueprint_excerpt_chars"]]
        results = await asyncio.gather(
            *(self._generate_one(plugin_name, excerpt, path) for path in file_list),
            return_exceptions=True,
        )
        files = {}
        for path, result in zip(file_list, results):
            if isinstance(result, LLMError):
                logger.warning("Could not generate %s: %s", path, result)
                continue
            if isinstance(result, BaseException):
                raise result
            _, content = result
            if content:
                files[path] = content
        return files
