"""Reprocessing policy: decide whether an already processed item should be redone."""

from __future__ import annotations

import re

from llmrouter.config import DuplicateDetectionConfig
from llmrouter.models import (
    ProcessingRecord,
    ProcessingStatus,
    ReprocessDecision,
    ReprocessReason,
)

_NUMBER_RE = re.compile(r"\d+")


def parse_version(version: str) -> tuple[int, ...]:
    """Numeric components of a dotted version string; "" parses as ()."""
    parts: list[int] = []
    for piece in version.strip().lstrip("vV").split("."):
        match = _NUMBER_RE.match(piece)
        if not match:
            break
        parts.append(int(match.group()))
    while parts and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def is_older_version(version: str, than: str) -> bool:
    """True if ``version`` predates ``than``. "10.0.0" is newer than "2.0.0"."""
    return parse_version(version) < parse_version(than)


def has_priority_tags(record: ProcessingRecord, priority_tags: frozenset[str]) -> bool:
    return any(
        tag in content_tag
        for tag in priority_tags
        for content_tag in record.content_metadata.tags
    )


def should_reprocess(
    record: ProcessingRecord,
    config: DuplicateDetectionConfig,
    priority_tags: frozenset[str] = frozenset(),
) -> ReprocessDecision:
    """Evaluate the trigger conditions in order; the first one that holds wins."""
    if record.force_reprocess_flag:
        return ReprocessDecision(
            should_reprocess=True, reason=ReprocessReason.FORCE_REPROCESS_REQUESTED
        )

    if record.status == ProcessingStatus.FAILED and record.error_count < config.max_retries:
        return ReprocessDecision(
            should_reprocess=True, reason=ReprocessReason.RETRY_FAILED_PROCESSING
        )

    if record.quality_score < config.quality_threshold and is_older_version(
        record.processing_version, config.processing_version
    ):
        return ReprocessDecision(
            should_reprocess=True, reason=ReprocessReason.QUALITY_IMPROVEMENT_AVAILABLE
        )

    if has_priority_tags(record, priority_tags) and is_older_version(
        record.processing_version, config.priority_tags_version
    ):
        return ReprocessDecision(
            should_reprocess=True, reason=ReprocessReason.PRIORITY_TAGS_DETECTED
        )

    return ReprocessDecision(should_reprocess=False, reason=ReprocessReason.CONTENT_ACCEPTABLE)
