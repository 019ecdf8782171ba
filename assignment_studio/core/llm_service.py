"""
LLM service for interacting with Together.ai API
Handles API calls and JSON extraction from model responses
"""
import json
import logging
import re
from typing import Any, Dict, Optional

import httpx

from assignment_studio.core import config
from assignment_studio.core.errors import ConfigurationError, MalformedResponseError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are an expert educator. Always return valid JSON."

MISSING_API_KEY_MESSAGE = (
    "Together.ai API key is not configured. Please add TOGETHER_AI_API_KEY to your .env file."
)

# Fences are only removed at the very start and end; backticks inside
# JSON string values must survive
_OPENING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?[ \t]*```\s*$")
# Greedy: first "{" through the last "}"
_JSON_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


class CompletionClient:
    """Sends one prompt to a Together.ai compatible chat completions endpoint.

    The credential and model are passed in at construction; nothing is read
    from the environment here. Every call is a fresh request with no retry.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = config.TOGETHER_AI_API_URL,
        model: str = config.TOGETHER_AI_MODEL,
        temperature: float = config.LLM_TEMPERATURE,
        timeout: float = config.LLM_TIMEOUT_SECONDS,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.system_prompt = system_prompt
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def complete(self, prompt: str, max_output_tokens: int) -> str:
        """Call the chat completions endpoint and return the message text"""
        if not self.is_configured:
            raise ConfigurationError(MISSING_API_KEY_MESSAGE)

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt}
            ],
            "temperature": self.temperature,
            "max_tokens": max_output_tokens
        }

        logger.debug(
            "Calling Together.ai with model %s (%d prompt chars, max_tokens=%d)",
            self.model, len(prompt), max_output_tokens,
        )
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, headers=headers, json=payload)
        except httpx.TimeoutException:
            logger.warning("Request to Together.ai timed out after %s seconds", self.timeout)
            raise UpstreamError("The AI service took too long to respond")
        except httpx.HTTPError as e:
            logger.warning("Could not reach Together.ai: %s: %s", type(e).__name__, e)
            raise UpstreamError(f"An error occurred while connecting to the AI service: {e}")

        logger.debug("Together.ai response status: %s", response.status_code)
        if response.status_code != 200:
            message = _describe_error_response(response)
            logger.warning("Together.ai returned %s: %s", response.status_code, message)
            raise UpstreamError(message, upstream_status=response.status_code)

        try:
            result = response.json()
        except ValueError:
            raise UpstreamError("The AI service returned a response that is not JSON")

        content = _first_message_content(result)
        if content is None:
            logger.warning("Unexpected Together.ai response format: %s", str(result)[:500])
            raise UpstreamError("Unexpected response format from AI service")

        logger.debug("Received response from LLM (%d chars)", len(content))
        return content


def client_from_config() -> CompletionClient:
    """Build a client from the process configuration (.env / environment)"""
    return CompletionClient(
        api_key=config.TOGETHER_AI_API_KEY,
        api_url=config.TOGETHER_AI_API_URL,
        model=config.TOGETHER_AI_MODEL,
        temperature=config.LLM_TEMPERATURE,
        timeout=config.LLM_TIMEOUT_SECONDS,
    )


def _first_message_content(result: Any) -> Optional[str]:
    if not isinstance(result, dict):
        return None
    choices = result.get("choices")
    if not choices or not isinstance(choices[0], dict):
        return None
    content = (choices[0].get("message") or {}).get("content")
    return content if isinstance(content, str) else None


def _describe_error_response(response: httpx.Response) -> str:
    """Turn a non-200 Together.ai response into a short message"""
    error_message = "Service unavailable"
    try:
        error_json: Dict[str, Any] = response.json()
        if isinstance(error_json, dict) and isinstance(error_json.get("error"), dict):
            error_message = error_json["error"].get("message", error_message)
    except ValueError:
        logger.debug("Could not parse error body: %s", response.text[:500])

    if response.status_code == 503:
        return "The AI service is temporarily unavailable"
    if response.status_code == 429:
        return "Too many requests to the AI service"
    if response.status_code == 401:
        return "API authentication failed, check the API key"
    if response.status_code == 400:
        return f"Invalid request to AI service: {error_message}"
    return f"AI service error ({response.status_code}): {error_message}"


def _strip_code_fence(text: str) -> str:
    if not text.startswith("```"):
        return text
    body = _OPENING_FENCE.sub("", text, count=1)
    # Prose after the closing fence leaves it in place; the object span
    # search in extract_json handles that case
    return _CLOSING_FENCE.sub("", body, count=1).strip()


def extract_json(raw: str) -> Any:
    """Recover a JSON value from model output.

    Tries, in order: the whole text with any markdown code fence removed, then
    the span from the first ``{`` to the last ``}``. Raises
    MalformedResponseError (carrying the raw text) when neither parses.
    No shape validation happens here.
    """
    text = _strip_code_fence((raw or "").strip())

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Direct JSON parse failed, looking for an object span")

    match = _JSON_OBJECT_SPAN.search(text)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as e:
            logger.debug("Object span is not valid JSON: %s (line %s, column %s)", e.msg, e.lineno, e.colno)

    logger.warning("Could not recover JSON from model response (%d chars)", len(raw or ""))
    logger.debug("Unparseable model response: %s", raw)
    raise MalformedResponseError(
        "The AI returned a response that couldn't be parsed as JSON",
        raw_text=raw,
    )
