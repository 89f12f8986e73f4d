"""Routing optimizer – cost and latency overrides against live counters."""

from __future__ import annotations

import logging

from llmrouter.config import RouterConfig
from llmrouter.metrics import PerformanceTracker
from llmrouter.models import RoutingDecision, RoutingOptions

logger = logging.getLogger(__name__)


class RoutingOptimizer:
    def __init__(self, tracker: PerformanceTracker, config: RouterConfig) -> None:
        self._tracker = tracker
        self._config = config

    def optimize(
        self,
        decision: RoutingDecision,
        options: RoutingOptions | None = None,
    ) -> RoutingDecision:
        """Apply the cost guard, then the latency guard. Overrides keep the prior decision."""
        options = options or RoutingOptions()
        alerts = self._config.monitoring.alerts

        if options.cost_mode == "optimize" and decision.route_to == "cloud":
            daily_cost = self._tracker.daily_cost()
            if daily_cost > alerts.high_cost:
                logger.info(
                    "Daily cost %.4f over limit %.4f, moving %s off cloud",
                    daily_cost,
                    alerts.high_cost,
                    decision.model,
                )
                decision = RoutingDecision(
                    route_to="local",
                    model=self._config.optimizer.cost_fallback_model,
                    reasoning="Switched to local due to cost limits",
                    original_decision=decision,
                )

        if options.priority == "high" and decision.route_to == "local":
            stats = self._tracker.get("local", decision.model)
            if stats is not None and stats.avg_latency > alerts.high_latency_ms:
                logger.info(
                    "Local %s averaging %.0fms, moving high-priority request to cloud",
                    decision.model,
                    stats.avg_latency,
                )
                decision = RoutingDecision(
                    route_to="cloud",
                    model=self._config.optimizer.latency_fallback_model,
                    reasoning="Switched to cloud for better performance",
                    original_decision=decision,
                )

        return decision
