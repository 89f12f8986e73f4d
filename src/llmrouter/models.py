"""Pydantic data models for routing and duplicate tracking."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# --- Input ---


class ContentItem(BaseModel):
    content: str = ""
    url: str | None = None
    tags: list[str] = Field(default_factory=list)
    title: str | None = None


# --- Fingerprint ---


class FingerprintMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    post_id: str | None = None
    video_id: str | None = None
    title: str = ""
    content_hash: str = ""
    tags: list[str] = Field(default_factory=list)
    normalized_url: str = ""


class Fingerprint(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_fingerprint: str
    secondary_fingerprint: str
    metadata: FingerprintMetadata = Field(default_factory=FingerprintMetadata)

    @property
    def short(self) -> str:
        return self.primary_fingerprint[:8]


# --- Processing state ---


class ProcessingStatus(str, Enum):
    NEW = "new"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_REPROCESSING = "needs_reprocessing"


class ReprocessReason(str, Enum):
    FORCE_REPROCESS_REQUESTED = "force_reprocess_requested"
    RETRY_FAILED_PROCESSING = "retry_failed_processing"
    QUALITY_IMPROVEMENT_AVAILABLE = "quality_improvement_available"
    PRIORITY_TAGS_DETECTED = "priority_tags_detected"
    CONTENT_ACCEPTABLE = "content_acceptable"


class ProcessingRecord(BaseModel):
    fingerprint: str
    status: ProcessingStatus = ProcessingStatus.NEW
    content_id: str | None = None
    source_url: str = ""
    started_processing: str = ""  # ISO datetime
    last_processed: str = ""  # ISO datetime
    processing_version: str = ""
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    error_count: int = 0
    last_error: str = ""
    force_reprocess_flag: bool = False
    reprocess_reason: str = ""
    result: Any = None
    content_metadata: FingerprintMetadata = Field(default_factory=FingerprintMetadata)


class ReprocessDecision(BaseModel):
    should_reprocess: bool = False
    reason: ReprocessReason = ReprocessReason.CONTENT_ACCEPTABLE


class Duplicate(BaseModel):
    is_duplicate: Literal[True] = True
    fingerprint: Fingerprint
    status: ProcessingStatus
    last_processed: str = ""
    quality_score: float = 0.0
    reprocess: ReprocessDecision = Field(default_factory=ReprocessDecision)
    cached_result: Any = None


class NotDuplicate(BaseModel):
    is_duplicate: Literal[False] = False
    fingerprint: Fingerprint
    should_process: bool = True


DuplicateCheck = Union[Duplicate, NotDuplicate]


# --- Analysis ---


class ComplexityAnalysis(BaseModel):
    length: int = 0
    complexity_score: float = Field(default=0.0, ge=0.0, le=1.0)
    factors: list[str] = Field(default_factory=list)


class Classification(BaseModel):
    content_type: str = "text"
    categories: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    priority: Literal["low", "medium", "high"] = "medium"
    requires_cloud: bool = False
    requires_specialized_model: bool = False
    priority_tags: list[str] = Field(default_factory=list)


# --- Routing ---

RouteDestination = Literal["local", "cloud", "workflow", "cache"]


class RoutingDecision(BaseModel):
    route_to: RouteDestination
    model: str
    reasoning: str
    fallback_to_cloud: bool = False
    original_decision: RoutingDecision | None = None
    cached_result: Any = None
    reprocess_reason: ReprocessReason | None = None


class RoutingOptions(BaseModel):
    cost_mode: str = "balanced"
    priority: str = "medium"
    source_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    batch_size: int | None = Field(default=None, ge=1)
    batch_mode: bool = False
    max_tokens: int | None = None
    temperature: float | None = None


# --- Backend results ---


class BackendResult(BaseModel):
    result: Any = None
    model: str = ""
    processing_time: int = 0  # milliseconds
    status: Literal["success", "error"] = "success"
    route_type: str = ""
    estimated_cost: float = 0.0
    error: str = ""


class PerformanceStats(BaseModel):
    count: int = 0
    total_latency: float = 0.0
    total_cost: float = 0.0
    avg_latency: float = 0.0
    avg_cost: float = 0.0


# --- Entry points ---


class RouteResponse(BaseModel):
    routing_decision: RoutingDecision
    result: BackendResult
    timestamp: str = ""


class BatchItem(BaseModel):
    id: str | int
    content: str
    content_type: str = "text"
    url: str | None = None
    title: str | None = None
    tags: list[str] = Field(default_factory=list)


class BatchItemResult(BaseModel):
    id: str | int
    routing_decision: RoutingDecision | None = None
    result: BackendResult | None = None
    error: str = ""
    status: Literal["success", "failed"] = "success"


class BatchReport(BaseModel):
    batch_size: int = 0
    results: list[BatchItemResult] = Field(default_factory=list)
    timestamp: str = ""


# --- Persistence ---


class StoreFile(BaseModel):
    records: list[ProcessingRecord] = Field(default_factory=list)
    last_updated: str = ""
