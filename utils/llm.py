"""Claude API client used by every agent."""

import asyncio
import json
import os
import re

import anthropic

from config.defaults import DEFAULTS
from utils.logger import get_logger

logger = get_logger("llm")

MAX_TOKENS = DEFAULTS["max_tokens"]


class LLMError(RuntimeError):
    """The model could not produce a usable response."""


def get_client():
    """Return an async Anthropic client. Raises if no API key is set."""
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise LLMError(
            "ANTHROPIC_API_KEY environment variable is not set. "
            "Get a key at https://console.anthropic.com/ and run:\n"
            "  export ANTHROPIC_API_KEY='your-key-here'"
        )
    return anthropic.AsyncAnthropic(api_key=api_key)


class LLMClient:
    """Text in, text out. Constructed once per process and handed to the agents.

    A fresh SDK client is opened per call: Flask runs each async view on its
    own event loop and an SDK client is bound to the loop it first ran on.
    """

    def __init__(self, timeout=None, max_tokens=None):
        self.timeout = timeout or DEFAULTS["llm_timeout"]
        self.max_tokens = max_tokens or MAX_TOKENS

    async def generate(self, prompt, model, system=None):
        """Send ``prompt`` to the model described by ``model`` (a ModelConfig).

        Returns the response text. Raises LLMError on API failure, timeout
        or an empty answer.
        """
        try:
            text = await asyncio.wait_for(self._stream(prompt, model, system), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise LLMError(f"{model.identifier} did not answer within {self.timeout}s")

        if not text.strip():
            raise LLMError(f"{model.identifier} returned an empty response")
        return text

    async def _stream(self, prompt, model, system):
        # Current models reject temperature and top_p in the same request,
        # so top_p stays in the profile table but is not sent.
        kwargs = {
            "model": model.identifier,
            "max_tokens": self.max_tokens,
            "temperature": model.sampling.temperature,
            "top_k": model.sampling.top_k,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        for attempt in range(2):
            try:
                # Use streaming to avoid SDK timeout for large max_tokens
                text = ""
                async with get_client() as client:
                    async with client.messages.stream(**kwargs) as stream:
                        async for chunk in stream.text_stream:
                            text += chunk
                        response_msg = await stream.get_final_message()

                if response_msg.stop_reason == "max_tokens":
                    logger.warning("Response from %s hit the token limit; files may be truncated",
                                   model.identifier)
                return text

            except anthropic.APIError as e:
                if attempt == 0:
                    logger.warning("Model call failed (%s), retrying once", e)
                    await asyncio.sleep(2)
                    continue
                raise LLMError(f"Model call failed: {e}") from e


def parse_json_response(text):
    """Parse JSON the model may have wrapped in fences or prose.

    Tries the whole text first, then the outermost {...} span. Returns None
    when neither parses.
    """
    if not text:
        return None
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```\w*\n?", "", cleaned)
        cleaned = re.sub(r"\n?```$", "", cleaned)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    match = re.search(r"\{.*\}", cleaned, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return None
