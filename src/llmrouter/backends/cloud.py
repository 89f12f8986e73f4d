"""Cloud backend: Gemini models through the Google GenAI client, with retry."""

from __future__ import annotations

import logging
import time

from google import genai
from google.genai import types

from llmrouter.backends.base import estimate_cost
from llmrouter.config import ModelSpec, Settings
from llmrouter.errors import BackendUnavailable, UnknownModelKey
from llmrouter.models import BackendResult, RoutingOptions

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_INITIAL_BACKOFF = 2.0


def _is_fatal(exc: Exception) -> bool:
    """Errors that will not go away on retry (zero quota, bad credentials)."""
    message = str(exc)
    if ("429" in message or "RESOURCE_EXHAUSTED" in message) and "limit: 0" in message:
        return True
    return "API_KEY_INVALID" in message or "PERMISSION_DENIED" in message


class CloudModelBackend:
    route_type = "cloud"

    def __init__(
        self,
        settings: Settings,
        catalog: dict[str, ModelSpec],
        client: genai.Client | None = None,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._client = client
        self.call_count = 0

    @property
    def client(self) -> genai.Client:
        # Lazy: local-only deployments run without a Gemini key.
        if self._client is None:
            if not self._settings.gemini_api_key:
                raise BackendUnavailable("GEMINI_API_KEY is not set")
            self._client = genai.Client(
                api_key=self._settings.gemini_api_key,
                http_options=types.HttpOptions(
                    timeout=int(self._settings.request_timeout * 1000)
                ),
            )
        return self._client

    def process(
        self,
        model_key: str,
        content: str,
        options: RoutingOptions | None = None,
    ) -> BackendResult:
        spec = self._catalog.get(model_key)
        if spec is None:
            raise UnknownModelKey(model_key, self.route_type)
        options = options or RoutingOptions()

        config = types.GenerateContentConfig(
            temperature=options.temperature if options.temperature is not None else spec.temperature,
            max_output_tokens=options.max_tokens or spec.max_tokens,
        )

        start = time.monotonic()
        text = self._call_with_retry(spec.model, content, config)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        self.call_count += 1

        return BackendResult(
            result=text,
            model=spec.model,
            processing_time=elapsed_ms,
            status="success",
            route_type=self.route_type,
            estimated_cost=estimate_cost(spec, content, text),
        )

    def _call_with_retry(
        self,
        model: str,
        prompt: str,
        config: types.GenerateContentConfig,
    ) -> str:
        client = self.client
        backoff = _INITIAL_BACKOFF
        last_exc: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                response = client.models.generate_content(
                    model=model,
                    contents=prompt,
                    config=config,
                )
                return response.text or ""
            except Exception as exc:
                last_exc = exc
                if _is_fatal(exc):
                    logger.warning("Cloud call to %s failed permanently: %s", model, exc)
                    break

                if attempt < _MAX_RETRIES - 1:
                    logger.warning(
                        "Cloud call to %s failed (attempt %d/%d), retrying in %.0fs: %s",
                        model,
                        attempt + 1,
                        _MAX_RETRIES,
                        backoff,
                        exc,
                    )
                    time.sleep(backoff)
                    backoff *= 2

        raise BackendUnavailable(f"Cloud model {model} failed: {last_exc}") from last_exc
