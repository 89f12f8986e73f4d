"""Shared test fixtures."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest

from llmrouter.config import RouterConfig, Settings
from llmrouter.errors import UnknownModelKey
from llmrouter.models import BackendResult, ContentItem, RoutingOptions
from llmrouter.router import Router
from llmrouter.store import InMemoryStore


class MockBackend:
    """A backend that returns pre-configured responses and records its calls.

    A response may be a string (the model output) or an exception instance,
    which is raised instead.
    """

    def __init__(self, route_type: str, models: list[str], latency_ms: int = 5) -> None:
        self.route_type = route_type
        self.models = models
        self.latency_ms = latency_ms
        self.cost = 0.0
        self.closed = False
        self.calls: list[tuple[str, str]] = []
        self._responses: list[Any] = []
        self._lock = threading.Lock()

    def set_responses(self, responses: list[Any]) -> None:
        self._responses = list(responses)

    def close(self) -> None:
        self.closed = True

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def process(
        self,
        model_key: str,
        content: str,
        options: RoutingOptions | None = None,
    ) -> BackendResult:
        if model_key not in self.models:
            raise UnknownModelKey(model_key, self.route_type)
        with self._lock:
            self.calls.append((model_key, content))
            resp = self._responses.pop(0) if self._responses else f"{model_key} output"
        if isinstance(resp, Exception):
            raise resp
        return BackendResult(
            result=resp,
            model=model_key,
            processing_time=self.latency_ms,
            status="success",
            route_type=self.route_type,
            estimated_cost=self.cost,
        )


@pytest.fixture
def sample_settings(tmp_path: Path) -> Settings:
    return Settings(
        config_path=str(tmp_path / "router_config.json"),
        store_path="",
        output_path=str(tmp_path / "output" / "batch_results.json"),
        gemini_api_key="test-key",
        batch_size=10,
    )


@pytest.fixture
def router_config() -> RouterConfig:
    return RouterConfig()


@pytest.fixture
def mock_local(router_config: RouterConfig) -> MockBackend:
    return MockBackend("local", list(router_config.local_models))


@pytest.fixture
def mock_cloud(router_config: RouterConfig) -> MockBackend:
    backend = MockBackend("cloud", list(router_config.cloud_models), latency_ms=50)
    backend.cost = 0.002
    return backend


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def router(
    router_config: RouterConfig,
    sample_settings: Settings,
    memory_store: InMemoryStore,
    mock_local: MockBackend,
    mock_cloud: MockBackend,
) -> Router:
    return Router(
        router_config,
        sample_settings,
        store=memory_store,
        backends={"local": mock_local, "cloud": mock_cloud},
    )


@pytest.fixture
def sample_item() -> ContentItem:
    return ContentItem(
        content="Live at 12:20pm Pacific: https://youtube.com/live/hmhtbtKJ6ws  3 hours ago",
        url="https://www.patreon.com/InvestAnswers/posts/12345?utm_source=feed",
        tags=["Bitcoin", " SBR "],
        title="  Weekly   Market Update ",
    )


@pytest.fixture
def trading_content() -> str:
    text = "Arbitrage trading on tesla stock. " * 180
    assert len(text) > 6000
    return text
