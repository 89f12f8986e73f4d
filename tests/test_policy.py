"""Tests for the reprocessing policy."""

from llmrouter.config import DuplicateDetectionConfig
from llmrouter.models import (
    FingerprintMetadata,
    ProcessingRecord,
    ProcessingStatus,
    ReprocessReason,
)
from llmrouter.policy import is_older_version, parse_version, should_reprocess

CONFIG = DuplicateDetectionConfig(processing_version="2.0.0", priority_tags_version="2.0.0")
PRIORITY = frozenset({"bitcoin", "tesla", "solana", "sbr"})


def _record(**kwargs) -> ProcessingRecord:
    defaults = {
        "fingerprint": "abc",
        "status": ProcessingStatus.COMPLETED,
        "processing_version": "2.0.0",
        "quality_score": 0.9,
    }
    defaults.update(kwargs)
    return ProcessingRecord(**defaults)


def test_force_flag_preempts_failed_retry():
    record = _record(force_reprocess_flag=True, status=ProcessingStatus.FAILED, error_count=0)
    decision = should_reprocess(record, CONFIG, PRIORITY)
    assert decision.should_reprocess is True
    assert decision.reason == ReprocessReason.FORCE_REPROCESS_REQUESTED


def test_failed_with_retries_left():
    decision = should_reprocess(_record(status=ProcessingStatus.FAILED, error_count=2), CONFIG)
    assert decision.reason == ReprocessReason.RETRY_FAILED_PROCESSING


def test_failed_retry_ceiling():
    decision = should_reprocess(_record(status=ProcessingStatus.FAILED, error_count=3), CONFIG)
    assert decision.should_reprocess is False
    assert decision.reason == ReprocessReason.CONTENT_ACCEPTABLE


def test_low_quality_with_newer_version():
    decision = should_reprocess(_record(quality_score=0.5, processing_version="1.4.2"), CONFIG)
    assert decision.reason == ReprocessReason.QUALITY_IMPROVEMENT_AVAILABLE


def test_low_quality_same_version_is_acceptable():
    decision = should_reprocess(_record(quality_score=0.5), CONFIG)
    assert decision.should_reprocess is False


def test_priority_tags_on_old_version():
    record = _record(
        processing_version="1.9.0",
        content_metadata=FingerprintMetadata(tags=["bitcoin-news", "macro"]),
    )
    decision = should_reprocess(record, CONFIG, PRIORITY)
    assert decision.reason == ReprocessReason.PRIORITY_TAGS_DETECTED


def test_priority_tags_on_current_version():
    record = _record(content_metadata=FingerprintMetadata(tags=["bitcoin"]))
    assert should_reprocess(record, CONFIG, PRIORITY).should_reprocess is False


def test_structured_version_comparison():
    assert parse_version("2.0.0") == (2,)
    assert parse_version("v2.1") == (2, 1)
    assert parse_version("") == ()
    assert is_older_version("2.0.0", "10.0.0")
    assert not is_older_version("10.0.0", "2.0.0")
    assert not is_older_version("2.0", "2.0.0")
    assert is_older_version("", "2.0.0")


def test_ten_is_not_older_than_two():
    # A lexical comparison would call "10.0.0" older than "2.0.0".
    record = _record(quality_score=0.5, processing_version="10.0.0")
    assert should_reprocess(record, CONFIG).should_reprocess is False
