"""Local backend: models served by Ollama over its HTTP API."""

from __future__ import annotations

import logging
import time

import httpx

from llmrouter.config import ModelSpec, Settings
from llmrouter.errors import BackendUnavailable, UnknownModelKey
from llmrouter.models import BackendResult, RoutingOptions

logger = logging.getLogger(__name__)

_TOP_P = 0.9
_TOP_K = 40


class LocalModelBackend:
    route_type = "local"

    def __init__(
        self,
        settings: Settings,
        catalog: dict[str, ModelSpec],
        client: httpx.Client | None = None,
    ) -> None:
        self._catalog = catalog
        self._client = client or httpx.Client(
            base_url=settings.ollama_base_url,
            timeout=settings.request_timeout,
        )

    def list_models(self) -> list[str]:
        """Model names the Ollama server has pulled."""
        try:
            resp = self._client.get("/api/tags")
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"Ollama unreachable: {exc}") from exc
        return [m.get("name", "") for m in resp.json().get("models", [])]

    def missing_models(self) -> list[str]:
        available = set(self.list_models())
        return [spec.model for spec in self._catalog.values() if spec.model not in available]

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

        payload = {
            "model": spec.model,
            "prompt": content,
            "stream": False,
            "options": {
                "num_predict": options.max_tokens or spec.max_tokens,
                "temperature": (
                    options.temperature if options.temperature is not None else spec.temperature
                ),
                "top_p": _TOP_P,
                "top_k": _TOP_K,
            },
        }

        start = time.monotonic()
        try:
            resp = self._client.post("/api/generate", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as exc:
            raise BackendUnavailable(f"Ollama timed out running {spec.model}") from exc
        except httpx.ConnectError as exc:
            raise BackendUnavailable("Ollama service is not running") from exc
        except httpx.HTTPStatusError as exc:
            raise BackendUnavailable(
                f"Ollama returned {exc.response.status_code} for {spec.model}"
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"Ollama request failed: {exc}") from exc
        except ValueError as exc:
            raise BackendUnavailable(f"Ollama returned invalid JSON for {spec.model}") from exc
        if not isinstance(data, dict):
            raise BackendUnavailable(f"Ollama returned an unexpected payload for {spec.model}")
        text = data.get("response", "")
        elapsed_ms = int((time.monotonic() - start) * 1000)

        return BackendResult(
            result=text,
            model=spec.model,
            processing_time=elapsed_ms,
            status="success",
            route_type=self.route_type,
            estimated_cost=0.0,
        )

    def close(self) -> None:
        self._client.close()
