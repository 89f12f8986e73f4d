"""Router – dedup check, classification, rule matching, optimization and execution."""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from llmrouter.backends.base import Backend
from llmrouter.config import RouterConfig, Settings, load_router_config
from llmrouter.errors import (
    BackendUnavailable,
    RoutingDeterminationFailed,
    StorageUnavailable,
    UnknownModelKey,
)
from llmrouter.metrics import PerformanceTracker
from llmrouter.models import (
    BackendResult,
    BatchItem,
    BatchItemResult,
    BatchReport,
    ContentItem,
    Duplicate,
    DuplicateCheck,
    Fingerprint,
    ReprocessReason,
    RouteResponse,
    RoutingDecision,
    RoutingOptions,
)
from llmrouter.stages.classifier import analyze_complexity, apply_priority_boost, classify_content
from llmrouter.stages.optimizer import RoutingOptimizer
from llmrouter.stages.rules import RuleEngine
from llmrouter.store import DuplicateStateManager, DurableStore, InMemoryStore, JsonFileStore

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _cache_decision(reason: ReprocessReason, cached_result: Any) -> RoutingDecision:
    return RoutingDecision(
        route_to="cache",
        model="cached_result",
        reasoning=f"Duplicate content skipped: {reason.value}",
        cached_result=cached_result,
    )


def build_backends(settings: Settings, config: RouterConfig) -> dict[str, Backend]:
    from llmrouter.backends.cloud import CloudModelBackend
    from llmrouter.backends.local import LocalModelBackend

    return {
        "local": LocalModelBackend(settings, config.local_models),
        "cloud": CloudModelBackend(settings, config.cloud_models),
    }


class Router:
    """Routes content to a backend and keeps dedup state and cost/latency counters.

    All mutable state (dedup cache, performance counters) belongs to the
    instance, so separate routers never share it.
    """

    def __init__(
        self,
        config: RouterConfig,
        settings: Settings,
        store: DurableStore | None = None,
        backends: dict[str, Backend] | None = None,
        tracker: PerformanceTracker | None = None,
    ) -> None:
        self._config = config
        self._settings = settings
        self.tracker = tracker or PerformanceTracker()
        self.state = DuplicateStateManager(
            store if store is not None else InMemoryStore(),
            config.duplicate_detection,
            config.priority_tag_names,
        )
        self._rules = RuleEngine(config.routing_rules, config.fallback_model)
        self._optimizer = RoutingOptimizer(self.tracker, config)
        self._backends = backends if backends is not None else build_backends(settings, config)

    @classmethod
    def from_settings(cls, settings: Settings) -> Router:
        """Load config and state from disk. Config errors propagate and are fatal."""
        config = load_router_config(settings.config_path)
        store: DurableStore = (
            JsonFileStore(settings.store_path) if settings.store_path else InMemoryStore()
        )
        router = cls(config, settings, store=store)
        router.state.load()
        return router

    # --- Routing decision ---

    def _decide(
        self,
        item: ContentItem,
        content_type: str,
        options: RoutingOptions,
    ) -> RoutingDecision:
        try:
            complexity = analyze_complexity(item.content, content_type)
            classification = classify_content(
                item.content,
                content_type,
                tags=item.tags,
                priority_tags=self._config.priority_tags,
            )
            complexity = apply_priority_boost(
                complexity, classification, self._config.priority_tags
            )
            decision = self._rules.apply(item.content, complexity, classification, options)
        except Exception as exc:
            raise RoutingDeterminationFailed(str(exc)) from exc

        logger.debug(
            "Complexity %.2f %s, categories %s",
            complexity.complexity_score,
            complexity.factors,
            classification.categories,
        )
        return self._optimizer.optimize(decision, options)

    def determine_route(
        self,
        item: ContentItem,
        content_type: str = "text",
        options: RoutingOptions | None = None,
    ) -> tuple[RoutingDecision, DuplicateCheck]:
        options = options or RoutingOptions()
        check = self.state.check_if_processed(item)

        reprocess_reason = None
        if isinstance(check, Duplicate):
            if not check.reprocess.should_reprocess:
                logger.info("Skipping duplicate %s: already processed", check.fingerprint.short)
                return _cache_decision(check.reprocess.reason, check.cached_result), check
            reprocess_reason = check.reprocess.reason
            logger.info(
                "Reprocessing %s: %s", check.fingerprint.short, reprocess_reason.value
            )

        try:
            decision = self._decide(item, content_type, options)
        except RoutingDeterminationFailed:
            logger.exception("Routing determination failed, using fallback route")
            decision = self._rules.fallback_route()

        if reprocess_reason is not None:
            decision = decision.model_copy(update={"reprocess_reason": reprocess_reason})
        return decision, check

    # --- Execution ---

    def _run_backend(
        self,
        route_to: str,
        model: str,
        content: str,
        options: RoutingOptions,
    ) -> BackendResult:
        start = time.monotonic()
        try:
            backend = self._backends.get(route_to)
            if backend is None:
                raise BackendUnavailable(f"Unknown routing destination: {route_to}")
            return backend.process(model, content, options)
        except (UnknownModelKey, BackendUnavailable) as exc:
            logger.error("Processing failed on %s:%s: %s", route_to, model, exc)
            error = str(exc)
        except Exception as exc:
            logger.exception("Unexpected failure on %s:%s", route_to, model)
            error = str(exc) or type(exc).__name__
        return BackendResult(
            model=model,
            processing_time=int((time.monotonic() - start) * 1000),
            status="error",
            route_type=route_to,
            error=error,
        )

    def execute(
        self,
        decision: RoutingDecision,
        content: str,
        options: RoutingOptions | None = None,
    ) -> BackendResult:
        """Run the decision; a failed local call flagged for fallback is retried on cloud."""
        options = options or RoutingOptions()
        logger.info("Routing to %s:%s - %s", decision.route_to, decision.model, decision.reasoning)

        if decision.route_to == "cache":
            return BackendResult(
                result=decision.cached_result,
                model=decision.model,
                status="success",
                route_type="cache",
            )

        result = self._run_backend(decision.route_to, decision.model, content, options)
        self.log_metrics(decision.route_to, decision.model, result)

        if result.status == "error" and decision.fallback_to_cloud:
            fallback_model = self._config.optimizer.cloud_fallback_model
            logger.info("Falling back to cloud:%s after local failure", fallback_model)
            result = self._run_backend("cloud", fallback_model, content, options)
            self.log_metrics("cloud", fallback_model, result)

        return result

    def log_metrics(self, route_type: str, model: str, result: BackendResult) -> None:
        self.tracker.record(route_type, model, result.processing_time, result.estimated_cost)
        logger.info(
            "Processing metrics: route=%s:%s latency=%dms cost=%.5f success=%s",
            route_type,
            model,
            result.processing_time,
            result.estimated_cost,
            result.status == "success",
        )

    def _bookkeep(self, action: Any, *args: Any) -> None:
        try:
            action(*args)
        except StorageUnavailable as exc:
            logger.warning("Durable store unavailable, state kept in memory only: %s", exc)

    # --- Entry points ---

    def route(
        self,
        content: str | ContentItem,
        content_type: str = "text",
        options: RoutingOptions | None = None,
    ) -> RouteResponse:
        options = options or RoutingOptions()
        if isinstance(content, ContentItem):
            item = content
        else:
            item = ContentItem(content=content, url=options.source_url, tags=options.tags)

        decision, check = self.determine_route(item, content_type, options)
        if decision.route_to == "cache":
            return self._serve_cached(decision, item, options)

        fingerprint = check.fingerprint
        try:
            claimed = self.state.claim(fingerprint, item)
        except StorageUnavailable as exc:
            logger.warning("Durable store unavailable, state kept in memory only: %s", exc)
            claimed = True
        if not claimed:
            record = self.state.get_record(fingerprint.primary_fingerprint)
            decision = _cache_decision(
                ReprocessReason.CONTENT_ACCEPTABLE, record.result if record else None
            )
            return self._serve_cached(decision, item, options)

        try:
            result = self.execute(decision, item.content, options)
        except Exception as exc:
            logger.exception("Processing failed on %s:%s", decision.route_to, decision.model)
            result = BackendResult(
                model=decision.model,
                status="error",
                route_type=decision.route_to,
                error=str(exc) or type(exc).__name__,
            )

        if result.status == "success":
            self._complete(fingerprint, result.result)
        else:
            self._bookkeep(self.state.mark_as_failed, fingerprint, result.error)

        return RouteResponse(routing_decision=decision, result=result, timestamp=_timestamp())

    def _serve_cached(
        self, decision: RoutingDecision, item: ContentItem, options: RoutingOptions
    ) -> RouteResponse:
        return RouteResponse(
            routing_decision=decision,
            result=self.execute(decision, item.content, options),
            timestamp=_timestamp(),
        )

    def _complete(self, fingerprint: Fingerprint, result: Any) -> None:
        quality = self._config.duplicate_detection.default_quality_score
        self._bookkeep(self.state.mark_as_completed, fingerprint, result, quality)
        threshold = self._config.monitoring.alerts.low_quality
        if quality < threshold:
            logger.warning(
                "Low quality result for %s: %.2f < %.2f", fingerprint.short, quality, threshold
            )

    def _process_item(self, item: BatchItem, options: RoutingOptions) -> BatchItemResult:
        try:
            content_item = ContentItem(
                content=item.content,
                url=item.url or options.source_url,
                title=item.title,
                tags=item.tags or options.tags,
            )
            response = self.route(content_item, item.content_type, options)
        except Exception as exc:
            logger.exception("Batch item %s failed", item.id)
            return BatchItemResult(id=item.id, error=str(exc), status="failed")

        failed = response.result.status == "error"
        return BatchItemResult(
            id=item.id,
            routing_decision=response.routing_decision,
            result=response.result,
            error=response.result.error if failed else "",
            status="failed" if failed else "success",
        )

    def process_batch(
        self,
        items: list[BatchItem],
        options: RoutingOptions | None = None,
    ) -> list[BatchItemResult]:
        """Process items in groups of ``batch_size``; each group runs concurrently
        and finishes before the next one starts. Results keep input order."""
        options = options or RoutingOptions()
        batch_size = options.batch_size or self._settings.batch_size
        item_options = options.model_copy(update={"batch_mode": True})

        results: list[BatchItemResult] = []
        for start in range(0, len(items), batch_size):
            group = items[start : start + batch_size]
            with ThreadPoolExecutor(max_workers=len(group)) as pool:
                results.extend(pool.map(lambda it: self._process_item(it, item_options), group))
            logger.info(
                "Batch group %d: %d items done", start // batch_size + 1, len(group)
            )
        return results

    def force_reprocess(self, identifier: str, reason: str = "manual_request") -> list[str]:
        return self.state.force_reprocess(identifier, reason)

    def status(self) -> dict[str, Any]:
        return {
            "cache_size": self.state.cache_size,
            "processing_version": self.state.current_version,
            "daily_cost": self.tracker.daily_cost(),
            "total_requests": self.tracker.total_requests(),
            "performance": {k: v.model_dump() for k, v in self.tracker.snapshot().items()},
            "local_models": list(self._config.local_models),
            "cloud_models": list(self._config.cloud_models),
        }

    def close(self) -> None:
        """Release backend connections."""
        for backend in self._backends.values():
            close = getattr(backend, "close", None)
            if close is not None:
                close()


def run_batch(settings: Settings, input_path: str | Path) -> BatchReport:
    """Route every item in a JSON batch file and write the report to ``output_path``.

    The file holds either a list of items or ``{"items": [...], "options": {...}}``.
    """
    raw = json.loads(Path(input_path).read_text(encoding="utf-8"))
    if isinstance(raw, list):
        raw = {"items": raw}
    items = [BatchItem.model_validate(i) for i in raw.get("items", [])]
    options = RoutingOptions.model_validate(raw.get("options", {}))

    router = Router.from_settings(settings)
    try:
        results = router.process_batch(items, options)
    finally:
        router.close()

    report = BatchReport(batch_size=len(items), results=results, timestamp=_timestamp())
    output_path = Path(settings.output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(report.model_dump_json(indent=2) + "\n", encoding="utf-8")

    failed = sum(1 for r in results if r.status == "failed")
    logger.info("Wrote %d results to %s (%d failed)", len(results), output_path, failed)
    return report


def main() -> None:
    """CLI entry point: llmrouter-batch ITEMS_JSON"""
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s"
    )
    input_path = sys.argv[1] if len(sys.argv) > 1 else os.environ.get("INPUT_PATH", "")
    if not input_path:
        raise SystemExit("usage: llmrouter-batch ITEMS_JSON (or set INPUT_PATH)")
    run_batch(settings, input_path)
