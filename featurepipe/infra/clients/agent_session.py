"""Shared helpers for one-shot Claude Agent SDK sessions.

Both the analytical stage handlers and the delegated tasks open a session,
send a single prompt and read back the final text. The helpers here keep that
loop and the JSON extraction in one place.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from featurepipe.core.protocols import SDKClientProtocol

logger = logging.getLogger(__name__)


async def collect_response(
    client: SDKClientProtocol, prompt: str, timeout: float
) -> str:
    """Send ``prompt`` and return the assistant's text response.

    Text blocks from assistant messages are concatenated. When the session
    produced no assistant text, the ResultMessage ``result`` is used instead.

    Raises:
        TimeoutError: If the session exceeds ``timeout`` seconds.
    """
    chunks: list[str] = []
    final_result: str | None = None
    async with client:
        async with asyncio.timeout(timeout):
            await client.query(prompt)
            async for message in client.receive_response():
                content = getattr(message, "content", None)
                if isinstance(content, list):
                    for block in content:
                        text = getattr(block, "text", None)
                        if isinstance(text, str):
                            chunks.append(text)
                result = getattr(message, "result", None)
                if isinstance(result, str):
                    final_result = result
                    session_id = getattr(message, "session_id", None)
                    logger.debug("Agent session finished: session_id=%s", session_id)

    text = "".join(chunks).strip()
    if not text and final_result:
        return final_result.strip()
    return text


def extract_json(text: str) -> str:
    """Extract JSON from text, handling markdown code blocks.

    Returns the original text if no JSON-looking span is found.
    """
    code_block_match = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL)
    if code_block_match:
        return code_block_match.group(1).strip()

    # Fallback: find first { and last }
    first_brace = text.find("{")
    last_brace = text.rfind("}")
    if first_brace != -1 and last_brace != -1 and last_brace > first_brace:
        return text[first_brace : last_brace + 1]
    return text


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse the JSON object embedded in an agent response.

    Raises:
        ValueError: If the response is empty or not a JSON object.
    """
    if not text.strip():
        raise ValueError("Empty response from agent")
    try:
        data = json.loads(extract_json(text))
    except json.JSONDecodeError as e:
        raise ValueError(f"JSON parse error: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Response is not a JSON object")
    return data
