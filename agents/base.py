"""Base class shared by the LLM-backed agents."""

from utils.llm import LLMClient
from utils.template_engine import render_template


def format_file_sections(files, limit=None):
    """Render files as ``FILE: path`` sections, optionally truncating each."""
    sections = []
    for path, content in files.items():
        if limit is not None and len(content) > limit:
            content = content[:limit] + "...[truncated]"
        sections.append(f"FILE: {path}\n{content}")
    return "\n\n---\n\n".join(sections)


class BaseAgent:
    """Holds the shared LLM client and renders this agent's prompts."""

    name = "base"

    def __init__(self, llm=None):
        self.llm = llm or LLMClient()

    def _prompt(self, template_name, **variables):
        return render_template("prompts", template_name, variables)

    async def _ask(self, prompt, model):
        """Send a prompt. LLMError propagates; each agent owns its fallback."""
        return await self.llm.generate(prompt, model)
