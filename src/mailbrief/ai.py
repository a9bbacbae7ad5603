"""Summary: AI provider abstraction for structured-output model calls.

Importance: Centralizes LLM access so extractors never touch vendor APIs.
Alternatives: Call provider SDKs directly in each extractor.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from mailbrief.config import AppConfig
from mailbrief.errors import AiProviderError, ConfigurationError, describe_error


logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
STRUCTURED_OUTPUT_TOOL = "emit_structured_output"


class AiProvider(ABC):
    """Summary: Abstract interface for structured-output generation.

    Importance: Allows switching between local, cloud, and mock models without refactors.
    Alternatives: Use a single vendor SDK and accept lock-in risk.
    """

    @abstractmethod
    async def generate_object(
        self, model: str, system: str, prompt: str, output_schema: type[BaseModel]
    ) -> Any:
        """Summary: Ask the model for data shaped like output_schema.

        Importance: Returns the raw structured result; callers validate it.
        Alternatives: Return validated pydantic instances from the provider.
        """


class MockAiProvider(AiProvider):
    """Summary: Deterministic provider that fills the schema with placeholder values.

    Importance: Enables offline runs and repeatable tests.
    Alternatives: Load canned responses from fixture files.
    """

    async def generate_object(
        self, model: str, system: str, prompt: str, output_schema: type[BaseModel]
    ) -> Any:
        schema = output_schema.model_json_schema()
        headline = next((line.strip() for line in prompt.splitlines() if line.strip()), "")
        return _mock_object(schema, schema.get("$defs", {}), headline[:120])


def _mock_object(schema: dict[str, Any], defs: dict[str, Any], headline: str) -> dict[str, Any]:
    properties = schema.get("properties", {})
    return {
        name: _mock_value(properties[name], defs, headline)
        for name in schema.get("required", [])
        if name in properties
    }


def _mock_value(schema: dict[str, Any], defs: dict[str, Any], headline: str) -> Any:
    if "$ref" in schema:
        return _mock_value(defs[schema["$ref"].split("/")[-1]], defs, headline)
    if "enum" in schema:
        return schema["enum"][0]
    if "anyOf" in schema:
        if any(option.get("type") == "null" for option in schema["anyOf"]):
            return None
        return _mock_value(schema["anyOf"][0], defs, headline)
    kind = schema.get("type")
    if kind == "array":
        return []
    if kind == "object":
        return _mock_object(schema, defs, headline)
    if kind == "boolean":
        return False
    if kind in ("integer", "number"):
        return 0
    return f"[mock] {headline}" if headline else "[mock]"


class AnthropicProvider(AiProvider):
    """Summary: Provider using Anthropic Messages with a forced tool call.

    Importance: The tool input schema constrains the model to the requested shape.
    Alternatives: Ask for JSON in the prompt and parse free text.
    """

    def __init__(self, api_key: str, max_tokens: int = 1024) -> None:
        self._api_key = api_key
        self._max_tokens = max_tokens

    async def generate_object(
        self, model: str, system: str, prompt: str, output_schema: type[BaseModel]
    ) -> Any:
        payload = {
            "model": model,
            "max_tokens": self._max_tokens,
            "system": system,
            "messages": [{"role": "user", "content": prompt}],
            "tools": [
                {
                    "name": STRUCTURED_OUTPUT_TOOL,
                    "description": f"Return the {output_schema.__name__} result.",
                    "input_schema": output_schema.model_json_schema(),
                }
            ],
            "tool_choice": {"type": "tool", "name": STRUCTURED_OUTPUT_TOOL},
        }
        headers = {"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION}
        raw = await asyncio.to_thread(_post_json, ANTHROPIC_API_URL, payload, headers, "Anthropic")
        for block in raw.get("content", []):
            if block.get("type") == "tool_use" and block.get("name") == STRUCTURED_OUTPUT_TOOL:
                return block.get("input")
        raise AiProviderError("Anthropic response did not include structured output")


class OpenAiProvider(AiProvider):
    """Summary: Provider using OpenAI chat completions with a JSON schema response format.

    Importance: Enables cloud-grade extraction when configured.
    Alternatives: Use function calling instead of response_format.
    """

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    async def generate_object(
        self, model: str, system: str, prompt: str, output_schema: type[BaseModel]
    ) -> Any:
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": output_schema.__name__,
                    "schema": output_schema.model_json_schema(),
                },
            },
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        raw = await asyncio.to_thread(_post_json, OPENAI_API_URL, payload, headers, "OpenAI")
        content = raw["choices"][0]["message"]["content"]
        return json.loads(content)


class OllamaProvider(AiProvider):
    """Summary: Provider that targets a local Ollama server with schema-constrained output.

    Importance: Supports privacy-sensitive runs on local hardware.
    Alternatives: Use llama.cpp directly with a Python binding.
    """

    def __init__(self, base_url: str) -> None:
        self._base_url = base_url.rstrip("/")

    async def generate_object(
        self, model: str, system: str, prompt: str, output_schema: type[BaseModel]
    ) -> Any:
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "format": output_schema.model_json_schema(),
            "stream": False,
        }
        raw = await asyncio.to_thread(
            _post_json, f"{self._base_url}/api/chat", payload, {}, "Ollama", 60
        )
        return json.loads(raw.get("message", {}).get("content", ""))


def _post_json(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    label: str,
    timeout: float = 60,
) -> dict[str, Any]:
    """Summary: POST a JSON payload and decode the JSON response.

    Importance: Shares transport and error handling across providers.
    Alternatives: Use a third-party HTTP client.
    """

    request = urllib.request.Request(
        url=url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    started = time.time()
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8", errors="replace")
        raise AiProviderError(f"{label} request failed: {error_body or exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise AiProviderError(f"{label} request failed: {exc.reason}") from exc
    except OSError as exc:
        raise AiProviderError(f"{label} request failed: {describe_error(exc)}") from exc
    except ValueError as exc:
        raise AiProviderError(f"{label} returned invalid JSON: {exc}") from exc
    logger.debug("%s request completed in %s ms.", label, int((time.time() - started) * 1000))
    return raw


@dataclass(frozen=True)
class AiProviderFactory:
    """Summary: Factory for selecting AI providers from configuration.

    Importance: Keeps provider selection logic centralized.
    Alternatives: Wire providers manually at the application entrypoint.
    """

    config: AppConfig

    def build(self) -> AiProvider:
        if self.config.ai_provider == "anthropic":
            if not self.config.anthropic_api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY is required for anthropic provider")
            return AnthropicProvider(self.config.anthropic_api_key)
        if self.config.ai_provider == "openai":
            if not self.config.openai_api_key:
                raise ConfigurationError("OPENAI_API_KEY is required for openai provider")
            return OpenAiProvider(self.config.openai_api_key)
        if self.config.ai_provider == "ollama":
            return OllamaProvider(self.config.ollama_url)
        return MockAiProvider()

    def model_name(self) -> str:
        if self.config.ai_provider == "anthropic":
            return self.config.anthropic_model
        if self.config.ai_provider == "openai":
            return self.config.openai_model
        if self.config.ai_provider == "ollama":
            return self.config.ollama_model
        return "mock"
