"""
Vision-model shift extraction supporting multiple providers (OpenAI, Anthropic, Azure OpenAI).
"""

import base64
import datetime as dt
import importlib
import json
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import API_KEY_ENV, PipelineConfig
from .errors import EngineFailure
from .logging import get_logger
from .models import RawCandidateEntry, ServiceType, SourceMethod
from .ocr import ImageInfo
from .utils import to_decimal


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    AZURE_OPENAI = "azure-openai"


# Default vision-capable models for each provider
DEFAULT_MODELS = {
    LLMProvider.ANTHROPIC: "claude-3-5-haiku-20241022",
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.AZURE_OPENAI: "gpt-4o-mini",
}

MAX_RESPONSE_TOKENS = 1500

RESPONSE_SCHEMA_HINT = """{
  "entries": [
    {
      "date": "YYYY-MM-DD",
      "start_time": "H:MM AM",
      "end_time": "H:MM PM",
      "total_earnings": 99.00,
      "base_pay": 51.00,
      "tips": 48.00,
      "service_type": "whole_foods"
    }
  ]
}"""

log = get_logger(__name__)


def build_prompt(year: int) -> str:
    """Extraction instruction sent with every screenshot."""
    return f"""This image is a screenshot of a delivery app's earnings summary.
Extract every work shift shown on it.

For each shift:
- date: the shift date in YYYY-MM-DD format. The screen usually omits the year; assume {year}.
- start_time / end_time: in H:MM AM/PM format (e.g. "9:21 AM").
- total_earnings: the prominent total dollar figure for the shift, as a number.
- base_pay / tips: fill these ONLY when the shift shows a "Base" + "Tips" breakdown.
  Then set service_type to "whole_foods".
  Otherwise set both to null and service_type to "logistics".
- If the shift says tips are pending, set service_type to "whole_foods" even without a breakdown.

Return ONLY a JSON object (no markdown, no explanation) with a single "entries" array:
{RESPONSE_SCHEMA_HINT}

If no shifts are visible, return {{"entries": []}}."""


def _create_client(config: PipelineConfig):
    """Create the SDK client for the configured provider with bounded timeouts and no retries."""
    import httpx
    timeout = httpx.Timeout(config.vision_timeout, connect=config.vision_connect_timeout)

    if config.llm_provider == LLMProvider.ANTHROPIC:
        import anthropic
        return anthropic.Anthropic(api_key=config.api_key, timeout=timeout, max_retries=0)
    if config.llm_provider == LLMProvider.OPENAI:
        import openai
        return openai.OpenAI(api_key=config.api_key, timeout=timeout, max_retries=0)
    if config.llm_provider == LLMProvider.AZURE_OPENAI:
        import openai
        return openai.AzureOpenAI(
            api_key=config.api_key,
            api_version=config.azure_api_version,
            azure_endpoint=config.azure_endpoint,
            timeout=timeout,
            max_retries=0,
        )
    raise ValueError(f"Unsupported LLM provider: {config.llm_provider}")


def _call_anthropic(client, prompt: str, model: str, image_b64: str, mime_type: str) -> str:
    """Call Anthropic API."""
    response = client.messages.create(
        model=model,
        max_tokens=MAX_RESPONSE_TOKENS,
        temperature=0.0,
        messages=[{
            "role": "user",
            "content": [
                {"type": "image",
                 "source": {"type": "base64", "media_type": mime_type, "data": image_b64}},
                {"type": "text", "text": prompt},
            ],
        }],
    )
    return response.content[0].text.strip()


def _call_openai(client, prompt: str, model: str, image_b64: str, mime_type: str) -> str:
    """Call OpenAI (or Azure OpenAI) chat completions in JSON mode."""
    response = client.chat.completions.create(
        model=model,
        messages=[{
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url",
                 "image_url": {"url": f"data:{mime_type};base64,{image_b64}"}},
            ],
        }],
        max_tokens=MAX_RESPONSE_TOKENS,
        temperature=0.0,
        response_format={"type": "json_object"},
    )
    return (response.choices[0].message.content or "").strip()


def _strip_code_fence(response_text: str) -> str:
    """Pull JSON out of a ```json ... ``` block if the model added one."""
    if not response_text.startswith("```"):
        return response_text
    json_lines = []
    in_code = False
    for line in response_text.split("\n"):
        if line.startswith("```"):
            in_code = not in_code
            continue
        if in_code:
            json_lines.append(line)
    return "\n".join(json_lines)


def parse_vision_response(response_text: str) -> List[Dict[str, Any]]:
    """
    Decode the model reply and return its ``entries`` list.

    Raises:
        EngineFailure: not JSON, not an object, no ``entries`` key, or wrong types
    """
    try:
        result = json.loads(_strip_code_fence(response_text.strip()))
    except json.JSONDecodeError as e:
        raise EngineFailure("vision", f"response was not valid JSON ({e.msg})") from e

    if not isinstance(result, dict):
        raise EngineFailure("vision", "response JSON is not an object")
    if "entries" not in result:
        raise EngineFailure("vision", "response JSON has no 'entries' key")

    entries = result["entries"]
    if not isinstance(entries, list):
        raise EngineFailure("vision", "'entries' is not a list")
    for i, item in enumerate(entries):
        if not isinstance(item, dict):
            raise EngineFailure("vision", f"entry {i} is not an object")
    return entries


def entry_from_vision(item: Dict[str, Any]) -> RawCandidateEntry:
    """Map one response object onto a candidate entry, field for field."""
    date = item.get("date")
    start_time = item.get("start_time")
    end_time = item.get("end_time")

    service_type = None
    hint = item.get("service_type")
    if isinstance(hint, str):
        try:
            service_type = ServiceType(hint.strip().lower())
        except ValueError:
            service_type = None

    return RawCandidateEntry(
        source_method=SourceMethod.VISION,
        date=str(date).strip() if date else None,
        start_time=str(start_time).strip() if start_time else None,
        end_time=str(end_time).strip() if end_time else None,
        total_earnings=to_decimal(item.get("total_earnings")),
        base_pay=to_decimal(item.get("base_pay")),
        tips=to_decimal(item.get("tips")),
        service_type=service_type,
        original_text=f"{date or '?'} {start_time or '?'} - {end_time or '?'}",
    )


class VisionExtractor:
    """Primary extraction tier: one structured-output request per screenshot."""

    def __init__(self, config: PipelineConfig, client: Any = None, logger: Any = None):
        """
        Args:
            config: Provider, model, credential and timeouts
            client: Pre-built SDK client (created lazily from config when omitted)
            logger: Default logger when extract() is not handed one
        """
        self.config = config
        self.provider = LLMProvider(config.llm_provider)
        self.model = config.llm_model or DEFAULT_MODELS[self.provider]
        self._client = client
        self.logger = logger or log

    def _check_credentials(self):
        if not self.config.api_key:
            env_name = API_KEY_ENV[self.provider.value]
            raise EngineFailure("vision", f"missing API key for {self.provider.value} (set {env_name})")
        if self.provider == LLMProvider.AZURE_OPENAI and not self.config.azure_endpoint:
            raise EngineFailure("vision", "missing Azure endpoint (set AZURE_OPENAI_ENDPOINT)")

    def _describe_error(self, e: Exception) -> str:
        """Human-readable cause for an SDK exception."""
        sdk = importlib.import_module(
            "anthropic" if self.provider == LLMProvider.ANTHROPIC else "openai"
        )
        if isinstance(e, sdk.APITimeoutError):
            return f"request timed out after {self.config.vision_timeout:g}s"
        if isinstance(e, sdk.APIStatusError):
            return f"HTTP {e.status_code} from {self.provider.value}: {e.message}"
        if isinstance(e, sdk.APIConnectionError):
            return f"could not connect to {self.provider.value}: {e}"
        return f"{type(e).__name__}: {e}"

    def _call(self, prompt: str, image_b64: str, mime_type: str) -> str:
        if self._client is None:
            self._client = _create_client(self.config)
        if self.provider == LLMProvider.ANTHROPIC:
            return _call_anthropic(self._client, prompt, self.model, image_b64, mime_type)
        return _call_openai(self._client, prompt, self.model, image_b64, mime_type)

    def extract(self, image: ImageInfo, today: Optional[dt.date] = None,
                logger: Any = None) -> List[RawCandidateEntry]:
        """
        Send the screenshot to the vision model and return its shifts.

        A single attempt is made; there are no retries.

        Raises:
            EngineFailure: missing credential, HTTP/timeout/connection error,
                malformed reply, or no entries found
        """
        logger = logger or self.logger
        self._check_credentials()

        image_b64 = base64.b64encode(image.path.read_bytes()).decode("ascii")
        prompt = build_prompt((today or dt.date.today()).year)

        logger.info("vision_request_started", provider=self.provider.value, model=self.model,
                    image_bytes=image.size_bytes)
        try:
            response_text = self._call(prompt, image_b64, image.mime_type)
        except EngineFailure:
            raise
        except Exception as e:
            cause = self._describe_error(e)
            logger.warning("vision_request_failed", provider=self.provider.value, cause=cause)
            raise EngineFailure("vision", cause) from e

        items = parse_vision_response(response_text)
        entries = [entry_from_vision(item) for item in items]
        logger.info("vision_request_finished", provider=self.provider.value, entry_count=len(entries))

        if not entries:
            raise EngineFailure("vision", "model returned no entries")
        return entries
