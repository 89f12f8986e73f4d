"""Processing state: durable stores and the duplicate/state manager in front of them."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from llmrouter.config import DuplicateDetectionConfig
from llmrouter.errors import StorageUnavailable
from llmrouter.fingerprint import extract_post_id, generate_fingerprint, normalize_url
from llmrouter.models import (
    ContentItem,
    Duplicate,
    DuplicateCheck,
    Fingerprint,
    NotDuplicate,
    ProcessingRecord,
    ProcessingStatus,
    StoreFile,
)
from llmrouter.policy import is_older_version, should_reprocess

logger = logging.getLogger(__name__)


class DurableStore(Protocol):
    """Key-value persistence for processing records.

    Implementations raise StorageUnavailable when the backing system cannot be
    reached. Writes need at-least-once semantics only.
    """

    def get(self, fingerprint: str) -> ProcessingRecord | None: ...

    def put(self, record: ProcessingRecord) -> None: ...

    def find_by_identifier(self, identifier: str) -> list[str]: ...

    def all(self) -> list[ProcessingRecord]: ...


def record_matches(record: ProcessingRecord, identifier: str) -> bool:
    """Match a record by raw fingerprint, post id or source URL."""
    identifier = identifier.strip()
    if not identifier:
        return False
    if record.fingerprint == identifier:
        return True
    post_id = record.content_metadata.post_id
    if post_id and post_id == identifier:
        return True
    if "://" in identifier:
        if record.source_url == identifier:
            return True
        if record.content_metadata.normalized_url == normalize_url(identifier):
            return True
        if post_id and post_id == extract_post_id(identifier):
            return True
    return False


class InMemoryStore:
    def __init__(self) -> None:
        self._records: dict[str, ProcessingRecord] = {}
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> ProcessingRecord | None:
        with self._lock:
            record = self._records.get(fingerprint)
            return record.model_copy(deep=True) if record else None

    def put(self, record: ProcessingRecord) -> None:
        with self._lock:
            self._records[record.fingerprint] = record.model_copy(deep=True)

    def find_by_identifier(self, identifier: str) -> list[str]:
        with self._lock:
            return [fp for fp, r in self._records.items() if record_matches(r, identifier)]

    def all(self) -> list[ProcessingRecord]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._records.values()]


class JsonFileStore:
    """Records kept in a single JSON file, rewritten on every put."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._records: dict[str, ProcessingRecord] | None = None
        self._lock = threading.Lock()

    def _load(self) -> dict[str, ProcessingRecord]:
        if self._records is not None:
            return self._records
        if self._path.exists():
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
                data = StoreFile.model_validate(raw)
            except OSError as exc:
                raise StorageUnavailable(f"Cannot read {self._path}: {exc}") from exc
            except (json.JSONDecodeError, ValidationError) as exc:
                raise StorageUnavailable(f"Corrupt store file {self._path}: {exc}") from exc
        else:
            data = StoreFile()
        self._records = {r.fingerprint: r for r in data.records}
        return self._records

    def _save(self, records: dict[str, ProcessingRecord]) -> None:
        data = StoreFile(
            records=list(records.values()),
            last_updated=datetime.now(timezone.utc).isoformat(),
        )
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(data.model_dump_json(indent=2) + "\n", encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot write {self._path}: {exc}") from exc

    def get(self, fingerprint: str) -> ProcessingRecord | None:
        with self._lock:
            record = self._load().get(fingerprint)
            return record.model_copy(deep=True) if record else None

    def put(self, record: ProcessingRecord) -> None:
        with self._lock:
            records = dict(self._load())
            records[record.fingerprint] = record.model_copy(deep=True)
            self._save(records)
            self._records = records

    def find_by_identifier(self, identifier: str) -> list[str]:
        with self._lock:
            return [fp for fp, r in self._load().items() if record_matches(r, identifier)]

    def all(self) -> list[ProcessingRecord]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._load().values()]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DuplicateStateManager:
    """Owns ProcessingRecord lifecycle: an in-memory cache over a durable store.

    The cache is always updated before the durable write, so when the store is
    unavailable in-process dedup keeps working while writes surface
    StorageUnavailable to the caller.
    """

    def __init__(
        self,
        store: DurableStore,
        config: DuplicateDetectionConfig,
        priority_tags: frozenset[str] = frozenset(),
    ) -> None:
        self._store = store
        self._config = config
        self._priority_tags = priority_tags
        self._cache: dict[str, ProcessingRecord] = {}
        self._lock = threading.Lock()

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    @property
    def current_version(self) -> str:
        return self._config.processing_version

    def load(self) -> int:
        """Warm the cache from the durable store. Returns the number of records loaded."""
        records = self._store.all()
        with self._lock:
            for record in records:
                self._cache.setdefault(record.fingerprint, record)
        logger.info("Loaded %d processing records into cache", len(records))
        return len(records)

    def get_record(self, fingerprint: str) -> ProcessingRecord | None:
        with self._lock:
            record = self._cache.get(fingerprint)
        return record.model_copy(deep=True) if record else None

    def check_if_processed(self, item: ContentItem) -> DuplicateCheck:
        fingerprint = generate_fingerprint(item)
        key = fingerprint.primary_fingerprint

        with self._lock:
            record = self._cache.get(key)

        if record is None:
            try:
                record = self._store.get(key)
            except StorageUnavailable:
                logger.warning("Durable store unavailable, dedup check for %s uses cache only",
                               fingerprint.short)
                record = None
            if record is not None:
                with self._lock:
                    record = self._cache.setdefault(key, record)

        if record is None:
            return NotDuplicate(fingerprint=fingerprint)

        return Duplicate(
            fingerprint=fingerprint,
            status=record.status,
            last_processed=record.last_processed,
            quality_score=record.quality_score,
            reprocess=should_reprocess(record, self._config, self._priority_tags),
            cached_result=record.result,
        )

    def _version_after(self, previous: ProcessingRecord | None) -> str:
        current = self._config.processing_version
        if previous is not None and is_older_version(current, previous.processing_version):
            return previous.processing_version
        return current

    def _transition(
        self,
        key: str,
        change: Callable[[ProcessingRecord | None], ProcessingRecord | None],
    ) -> ProcessingRecord | None:
        """Apply ``change`` to the current record for ``key`` as one atomic step.

        Read, change, cache write and durable write all happen under the lock,
        so concurrent transitions of one record never lose an update and the
        store sees them in order. ``change`` returning None leaves the record
        untouched. The cache is written before the store, which may raise
        StorageUnavailable.
        """
        with self._lock:
            current = self._cache.get(key)
            record = change(current.model_copy(deep=True) if current else None)
            if record is None:
                return None
            self._cache[key] = record
            self._store.put(record)
        return record.model_copy(deep=True)

    def _processing_record(
        self,
        fingerprint: Fingerprint,
        item: ContentItem,
        previous: ProcessingRecord | None,
    ) -> ProcessingRecord:
        metadata = fingerprint.metadata
        return ProcessingRecord(
            fingerprint=fingerprint.primary_fingerprint,
            status=ProcessingStatus.PROCESSING,
            content_id=metadata.post_id or metadata.video_id,
            source_url=item.url or "",
            started_processing=_now(),
            processing_version=self._version_after(previous),
            error_count=previous.error_count if previous else 0,
            content_metadata=metadata,
        )

    def mark_as_processing(self, fingerprint: Fingerprint, item: ContentItem) -> ProcessingRecord:
        record = self._transition(
            fingerprint.primary_fingerprint,
            lambda previous: self._processing_record(fingerprint, item, previous),
        )
        logger.info("Processing started: %s...", fingerprint.short)
        return record

    def claim(self, fingerprint: Fingerprint, item: ContentItem) -> bool:
        """Move the record to processing unless another request already holds it there.

        Returns False when the item is in flight elsewhere; the caller must not
        run it again.
        """

        def start(previous: ProcessingRecord | None) -> ProcessingRecord | None:
            if previous is not None and previous.status == ProcessingStatus.PROCESSING:
                return None
            return self._processing_record(fingerprint, item, previous)

        if self._transition(fingerprint.primary_fingerprint, start) is None:
            logger.info("Already processing: %s...", fingerprint.short)
            return False
        logger.info("Processing started: %s...", fingerprint.short)
        return True

    def mark_as_completed(
        self,
        fingerprint: Fingerprint,
        result: Any,
        quality_score: float | None = None,
    ) -> None:
        if quality_score is None:
            quality_score = self._config.default_quality_score

        def complete(previous: ProcessingRecord | None) -> ProcessingRecord:
            record = previous or ProcessingRecord(
                fingerprint=fingerprint.primary_fingerprint,
                content_metadata=fingerprint.metadata,
            )
            record.status = ProcessingStatus.COMPLETED
            record.last_processed = _now()
            record.quality_score = quality_score
            record.processing_version = self._version_after(record)
            record.result = result
            record.force_reprocess_flag = False
            record.reprocess_reason = ""
            record.error_count = 0
            record.last_error = ""
            return record

        self._transition(fingerprint.primary_fingerprint, complete)
        logger.info("Content marked as completed: %s...", fingerprint.short)

    def mark_as_failed(self, fingerprint: Fingerprint, error: str) -> None:
        def fail(previous: ProcessingRecord | None) -> ProcessingRecord:
            record = previous or ProcessingRecord(
                fingerprint=fingerprint.primary_fingerprint,
                content_metadata=fingerprint.metadata,
            )
            record.status = ProcessingStatus.FAILED
            record.error_count += 1
            record.last_error = error
            return record

        record = self._transition(fingerprint.primary_fingerprint, fail)
        logger.warning(
            "Content marked as failed: %s... (errors=%d): %s",
            fingerprint.short,
            record.error_count,
            error,
        )

    def force_reprocess(self, identifier: str, reason: str = "manual_request") -> list[str]:
        """Flag every record matching a URL, post id or fingerprint. Returns the fingerprints."""
        matches = self._store.find_by_identifier(identifier)
        with self._lock:
            matches.extend(
                fp
                for fp, r in self._cache.items()
                if fp not in matches and record_matches(r, identifier)
            )

        def flag(previous: ProcessingRecord | None) -> ProcessingRecord | None:
            if previous is None:
                return None
            previous.force_reprocess_flag = True
            previous.status = ProcessingStatus.NEEDS_REPROCESSING
            previous.reprocess_reason = reason
            return previous

        flagged: list[str] = []
        for key in matches:
            with self._lock:
                cached = key in self._cache
            if not cached:
                stored = self._store.get(key)
                if stored is None:
                    continue
                with self._lock:
                    self._cache.setdefault(key, stored)
            if self._transition(key, flag) is None:
                continue
            flagged.append(key)
            logger.info("Marked for reprocessing: %s... (%s)", key[:8], reason)

        if not flagged:
            logger.info("No processed content matches %s", identifier)
        return flagged
