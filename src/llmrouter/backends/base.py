"""Contract shared by the local and cloud model backends."""

from __future__ import annotations

import math
from typing import Protocol

from llmrouter.config import ModelSpec
from llmrouter.models import BackendResult, RoutingOptions


class Backend(Protocol):
    route_type: str

    def process(
        self,
        model_key: str,
        content: str,
        options: RoutingOptions | None = None,
    ) -> BackendResult:
        """Run ``content`` through the catalog model ``model_key``.

        Raises UnknownModelKey for keys missing from the catalog and
        BackendUnavailable when the service fails or times out.
        """
        ...


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def estimate_cost(spec: ModelSpec, prompt: str, output: str) -> float:
    """Rough cost from a 4-chars-per-token estimate and the per-1k catalog prices."""
    input_cost = estimate_tokens(prompt) / 1000 * spec.cost_per_1k_input
    output_cost = estimate_tokens(output) / 1000 * spec.cost_per_1k_output
    return input_cost + output_cost
