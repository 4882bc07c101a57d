"""
Minimal LLM wrapper around the OpenAI Chat Completions API.
The key and model are read per call; failures surface as UpstreamError.
"""
import logging
from typing import Any, Optional

import openai
from openai import OpenAI

from retail_hub import config
from retail_hub.errors import UpstreamError

logger = logging.getLogger(__name__)


def _client():
    """Return an OpenAI client; raises when OPENAI_API_KEY is not configured."""
    api_key = config.openai_api_key()
    if not api_key:
        raise UpstreamError("OPENAI_API_KEY is not configured")
    return OpenAI(api_key=api_key)


def chat(messages: list[dict], tools: Optional[list[dict]] = None) -> Any:
    """
    One chat completion round trip. Returns the first choice's message
    (content and optional tool_calls).
    """
    client = _client()
    kwargs: dict[str, Any] = {"model": config.openai_model(), "messages": messages}
    if tools:
        kwargs["tools"] = tools
        kwargs["tool_choice"] = "auto"
    try:
        resp = client.chat.completions.create(**kwargs)
    except openai.OpenAIError as e:
        logger.warning("llm_call_failed", extra={"error": str(e)})
        raise UpstreamError(f"Language model call failed: {e!s}") from e
    if not resp.choices:
        raise UpstreamError("Language model returned no choices")
    return resp.choices[0].message
