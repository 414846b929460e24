"""Text generation vendor clients behind a single gateway"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from xiaoe_gateway.config import Settings, settings as default_settings
from xiaoe_gateway.domain.exceptions import (
    MalformedResponseError,
    UnsupportedModelError,
    UpstreamUnavailableError,
)
from xiaoe_gateway.domain.extraction import extract_array, parse_comment_items, parse_string_items
from xiaoe_gateway.infrastructure.observability.metrics import vendor_failure_counter, vendor_latency_histogram

logger = logging.getLogger(__name__)

STRING_ARRAY_SCHEMA = {"type": "ARRAY", "items": {"type": "STRING"}}

COMMENT_ARRAY_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "studentName": {"type": "STRING"},
            "intro": {"type": "STRING"},
            "body": {
                "type": "ARRAY",
                "items": {
                    "type": "OBJECT",
                    "properties": {"source": {"type": "STRING"}, "text": {"type": "STRING"}},
                },
            },
            "conclusion": {"type": "STRING"},
        },
        "required": ["studentName", "intro", "body", "conclusion"],
    },
}


@dataclass
class VendorRequest:
    url: str
    headers: Dict[str, str]
    payload: Dict[str, Any]


class VendorAdapter:
    """Builds a vendor-specific request and pulls the answer text out of its response"""

    name = "vendor"

    def __init__(self, api_key: str, model: str, base_url: str, temperature: float = 0.8, max_tokens: int = 8192):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def build_request(self, prompt: str, expect_strings: bool) -> VendorRequest:
        raise NotImplementedError

    def extract_text(self, data: Dict[str, Any]) -> str:
        raise NotImplementedError


class GeminiAdapter(VendorAdapter):
    """Google generateContent API with a JSON response schema"""

    name = "gemini"

    def build_request(self, prompt: str, expect_strings: bool) -> VendorRequest:
        schema = STRING_ARRAY_SCHEMA if expect_strings else COMMENT_ARRAY_SCHEMA
        return VendorRequest(
            url=f"{self.base_url}/models/{self.model}:generateContent",
            # Header rather than ?key= so the key never shows up in request logs
            headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
            payload={
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {
                    "responseMimeType": "application/json",
                    "responseSchema": schema,
                    "temperature": self.temperature,
                },
            },
        )

    def extract_text(self, data: Dict[str, Any]) -> str:
        return data["candidates"][0]["content"]["parts"][0]["text"]


class ChatCompletionsAdapter(VendorAdapter):
    """OpenAI-compatible chat completions API in JSON mode (DeepSeek, OpenAI)"""

    def __init__(self, name: str, api_key: str, model: str, base_url: str, **kwargs):
        super().__init__(api_key, model, base_url, **kwargs)
        self.name = name

    def build_request(self, prompt: str, expect_strings: bool) -> VendorRequest:
        return VendorRequest(
            url=f"{self.base_url}/chat/completions",
            headers={"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"},
            payload={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": "You are a helpful assistant designed to output JSON."},
                    {"role": "user", "content": prompt},
                ],
                "response_format": {"type": "json_object"},
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            },
        )

    def extract_text(self, data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"]


def build_adapters(config: Settings) -> Dict[str, VendorAdapter]:
    """Registry of vendor adapters keyed by model selector"""
    common = {"temperature": config.llm_temperature, "max_tokens": config.llm_max_tokens}
    return {
        "gemini": GeminiAdapter(config.gemini_api_key, config.gemini_model, config.gemini_base_url, **common),
        "deepseek": ChatCompletionsAdapter(
            "deepseek", config.deepseek_api_key, config.deepseek_model, config.deepseek_base_url, **common
        ),
        "openai": ChatCompletionsAdapter(
            "openai", config.openai_api_key, config.openai_model, config.openai_base_url, **common
        ),
    }


class GenerationGateway:
    """Client for external text generation vendors"""

    def __init__(
        self,
        adapters: Dict[str, VendorAdapter],
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.adapters = adapters
        self.timeout = timeout or default_settings.llm_timeout_seconds
        self.transport = transport

    @classmethod
    def from_settings(cls, config: Settings = default_settings) -> "GenerationGateway":
        return cls(build_adapters(config), timeout=config.llm_timeout_seconds)

    def vendor_status(self) -> Dict[str, bool]:
        """Which vendors have credentials configured"""
        return {name: adapter.configured for name, adapter in self.adapters.items()}

    async def invoke(self, model: str, prompt: str, expect_strings: bool) -> List[Any]:
        """
        Call the selected vendor and return its validated result array.

        Returns a list of strings when expect_strings is set, otherwise a
        list of StudentComment.

        Raises:
            UnsupportedModelError: Unknown model selector
            UpstreamUnavailableError: Missing credentials, timeout, network error or non-2xx status
            MalformedResponseError: Response body or answer text is not parsable
            SchemaMismatchError: Parsed JSON does not have the expected shape
        """
        adapter = self.adapters.get(model)
        if adapter is None:
            raise UnsupportedModelError(f"Unsupported model: {model!r}")
        if not adapter.configured:
            raise UpstreamUnavailableError(f"{model} API key is not configured")

        request = adapter.build_request(prompt, expect_strings)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                with vendor_latency_histogram.labels(vendor=model).time():
                    response = await client.post(request.url, headers=request.headers, json=request.payload)
                response.raise_for_status()
                data = response.json()

            except httpx.TimeoutException as e:
                vendor_failure_counter.labels(vendor=model).inc()
                raise UpstreamUnavailableError(f"{model} API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                vendor_failure_counter.labels(vendor=model).inc()
                logger.warning(
                    "Vendor returned error status",
                    extra={"vendor": model, "status": e.response.status_code, "body": e.response.text[:500]},
                )
                raise UpstreamUnavailableError(f"{model} API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                vendor_failure_counter.labels(vendor=model).inc()
                raise UpstreamUnavailableError(f"{model} API unreachable: {e}") from e
            except ValueError as e:
                raise MalformedResponseError(f"{model} API returned a non-JSON body") from e

        try:
            raw_text = adapter.extract_text(data)
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(f"{model} response has no answer text: {e}") from e
        if not isinstance(raw_text, str):
            raise MalformedResponseError(f"{model} answer text is not a string")

        items = extract_array(raw_text)
        return parse_string_items(items) if expect_strings else parse_comment_items(items)
