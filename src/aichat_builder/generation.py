"""Generation backends: turn a prompt into a named HTML page.

``GroqGenerator`` talks to Groq's OpenAI-compatible chat-completions API
directly. ``HttpGenerator`` goes through a running aichat-builder server's
``/api/generate`` endpoint instead.
"""

import json
import logging
import re

import httpx
import openai

from .collaborators import Generator
from .config import Settings
from .core import GenerationResult
from .errors import GenerationError, NetworkError

logger = logging.getLogger(__name__)

INVALID_JSON_MESSAGE = "AI did not return valid JSON format"

PROMPT_TEMPLATE = """Based on this request: "{request}", you need to:
    1. Generate a creative and descriptive filename (without .html extension)
    2. Create a complete HTML file with proper HTML5 structure, CSS styling, and JavaScript if needed

    Respond with a JSON object in exactly this format:
    {{
      "filename": "your-creative-filename",
      "htmlContent": "<!DOCTYPE html>\\n<html>\\n... your complete HTML code here ..."
    }}

    Make the filename descriptive and relevant to the content. Make the HTML visually appealing and functional."""

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n(.*)\n```\s*$", re.DOTALL)


def build_prompt(user_request: str) -> str:
    return PROMPT_TEMPLATE.format(request=user_request)


def parse_generation_response(text: str) -> GenerationResult:
    """Decode the model's JSON answer into a GenerationResult.

    A single surrounding Markdown code fence is tolerated.
    """
    raw = (text or "").strip()
    fenced = _FENCE_RE.match(raw)
    if fenced:
        raw = fenced.group(1)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse AI response as JSON: %s", e)
        raise GenerationError(INVALID_JSON_MESSAGE) from e

    if not isinstance(data, dict):
        raise GenerationError(INVALID_JSON_MESSAGE)

    filename = data.get("filename")
    content = data.get("htmlContent")
    if not isinstance(filename, str) or not filename.strip():
        raise GenerationError("AI response is missing a filename")
    if not isinstance(content, str) or not content.strip():
        raise GenerationError("AI response is missing htmlContent")

    filename = filename.strip()
    if filename.lower().endswith(".html"):
        filename = filename[: -len(".html")]
    return GenerationResult(filename=filename, content=content)


class GroqGenerator(Generator):
    """Generate pages with a Groq-hosted chat model via the openai SDK."""

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None):
        self.settings = settings
        self.client = client or openai.AsyncOpenAI(
            api_key=settings.groq_api_key,
            base_url=settings.groq_base_url,
            timeout=settings.timeout_seconds,
            max_retries=0,  # retries are always user-initiated
        )

    async def generate(self, prompt: str) -> GenerationResult:
        try:
            completion = await self.client.chat.completions.create(
                model=self.settings.groq_model,
                messages=[{"role": "user", "content": build_prompt(prompt)}],
                temperature=0.7,
                max_tokens=4096,
                top_p=1,
                stream=False,
            )
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            logger.error("Generation call failed in transport: %s", e)
            raise NetworkError(f"Could not reach the AI service: {e}") from e
        except openai.APIStatusError as e:
            logger.error("Generation call returned HTTP %s: %s", e.status_code, e)
            raise NetworkError(f"AI service returned HTTP {e.status_code}") from e
        except openai.OpenAIError as e:
            logger.error("Generation call failed: %s", e)
            raise GenerationError(str(e) or "Failed to generate HTML") from e

        content = ""
        if completion.choices:
            content = completion.choices[0].message.content or ""
        return parse_generation_response(content)


class HttpGenerator(Generator):
    """Generate pages through another server's ``POST /api/generate``."""

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None, timeout: float = 120.0):
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.timeout = timeout

    async def generate(self, prompt: str) -> GenerationResult:
        try:
            if self.client is not None:
                resp = await self.client.post(f"{self.base_url}/api/generate", json={"prompt": prompt})
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(f"{self.base_url}/api/generate", json={"prompt": prompt})
        except httpx.HTTPError as e:
            logger.error("Generate request to %s failed: %s", self.base_url, e)
            raise NetworkError(f"Could not reach the generation service: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise GenerationError(f"Generation service returned HTTP {resp.status_code}") from e

        if not isinstance(payload, dict):
            raise GenerationError("Generation service returned an unexpected payload")

        if resp.status_code >= 400 or not payload.get("success"):
            raise GenerationError(payload.get("error") or "Failed to generate HTML")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise GenerationError("Generation service returned no data")
        return parse_generation_response(json.dumps(data))
