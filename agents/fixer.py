"""Fixer agent: asks the model to repair the files a build error implicates."""

from agents.base import BaseAgent, format_file_sections
from agents.validator import infer_plugin_name
from config.models import select_model
from core.relevance import filter_relevant_files
from core.state import FixOutcome
from utils.extractor import extract_files
from utils.llm import LLMError
from utils.logger import get_logger
from utils.normalizer import normalize_file

logger = get_logger("fixer")


class FixerAgent(BaseAgent):
    """One repair round. Never raises for model trouble: the round is just empty."""

    name = "fixer"

    async def fix(self, error_text, files, plugin_name=None):
        """Return a FixOutcome holding only the files the model rewrote, normalized."""
        plugin_name = plugin_name or infer_plugin_name(files)
        relevant = filter_relevant_files(error_text, files)
        model = select_model(len(error_text), len(files), task="fix")
        logger.info("Requesting fix from %s with %d of %d files",
                    model.identifier, len(relevant), len(files))

        prompt = self._prompt(
            "fix.txt",
            errors=error_text,
            files=format_file_sections(relevant),
        )
        try:
            response = await self._ask(prompt, model)
        except LLMError as e:
            logger.warning("No fix available this round: %s", e)
            return FixOutcome(files_sent=relevant)

        fixed = {}
        for path, content in extract_files(response).items():
            fixed[path] = normalize_file(path, content, plugin_name)
            logger.info("Fixed file: %s", path)

        if not fixed:
            logger.warning("Fix response contained no file blocks")
        return FixOutcome(files_sent=relevant, response=response, files=fixed)
