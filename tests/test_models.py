"""Tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from llmrouter.models import (
    BackendResult,
    BatchItem,
    BatchItemResult,
    Classification,
    ComplexityAnalysis,
    Duplicate,
    Fingerprint,
    NotDuplicate,
    ProcessingRecord,
    ProcessingStatus,
    ReprocessDecision,
    ReprocessReason,
    RoutingDecision,
    RoutingOptions,
    StoreFile,
)


def _fingerprint() -> Fingerprint:
    return Fingerprint(primary_fingerprint="a" * 64, secondary_fingerprint="b" * 32)


def test_fingerprint_short_and_frozen():
    fp = _fingerprint()
    assert fp.short == "aaaaaaaa"
    with pytest.raises(ValidationError):
        fp.primary_fingerprint = "c"


def test_processing_record_defaults():
    r = ProcessingRecord(fingerprint="abc")
    assert r.status == ProcessingStatus.NEW
    assert r.error_count == 0
    assert r.force_reprocess_flag is False
    assert r.result is None


def test_processing_record_quality_bounds():
    with pytest.raises(ValidationError):
        ProcessingRecord(fingerprint="abc", quality_score=1.5)


def test_status_serializes_as_string():
    r = ProcessingRecord(fingerprint="abc", status=ProcessingStatus.COMPLETED)
    assert r.model_dump(mode="json")["status"] == "completed"


def test_store_file_roundtrip():
    data = StoreFile(
        records=[ProcessingRecord(fingerprint="abc", result={"summary": "ok"})],
        last_updated="2026-01-01T00:00:00+00:00",
    )
    restored = StoreFile.model_validate_json(data.model_dump_json())
    assert restored.records[0].result == {"summary": "ok"}


def test_duplicate_check_variants():
    dup = Duplicate(fingerprint=_fingerprint(), status=ProcessingStatus.COMPLETED)
    assert dup.is_duplicate is True
    assert dup.reprocess == ReprocessDecision()
    assert dup.reprocess.reason == ReprocessReason.CONTENT_ACCEPTABLE

    new = NotDuplicate(fingerprint=_fingerprint())
    assert new.is_duplicate is False
    assert new.should_process is True


def test_complexity_score_bounds():
    assert ComplexityAnalysis(complexity_score=1.0).complexity_score == 1.0
    with pytest.raises(ValidationError):
        ComplexityAnalysis(complexity_score=1.2)


def test_classification_defaults():
    c = Classification()
    assert c.content_type == "text"
    assert c.priority == "medium"
    assert c.categories == []


def test_routing_decision_destination():
    d = RoutingDecision(route_to="workflow", model="transcribe", reasoning="video")
    assert d.original_decision is None
    with pytest.raises(ValidationError):
        RoutingDecision(route_to="mainframe", model="x", reasoning="y")


def test_routing_decision_keeps_original():
    original = RoutingDecision(route_to="cloud", model="cloud_standard", reasoning="a")
    override = RoutingDecision(
        route_to="local", model="complex_reasoning", reasoning="b", original_decision=original
    )
    dumped = override.model_dump()
    assert dumped["original_decision"]["model"] == "cloud_standard"


def test_routing_options_defaults():
    o = RoutingOptions()
    assert o.cost_mode == "balanced"
    assert o.priority == "medium"
    assert o.batch_size is None
    with pytest.raises(ValidationError):
        RoutingOptions(batch_size=0)


def test_batch_item_accepts_int_and_str_ids():
    assert BatchItem(id=7, content="x").id == 7
    assert BatchItem(id="post-7", content="x").id == "post-7"


def test_batch_item_result_failed():
    r = BatchItemResult(id=1, error="boom", status="failed")
    assert r.routing_decision is None
    assert r.result is None


def test_backend_result_status():
    assert BackendResult().status == "success"
    with pytest.raises(ValidationError):
        BackendResult(status="pending")
