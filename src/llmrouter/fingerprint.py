"""Content fingerprinting: stable identifiers and hashes for dedup lookup."""

from __future__ import annotations

import hashlib
import re

from llmrouter.models import ContentItem, Fingerprint, FingerprintMetadata

_POST_ID_RE = re.compile(r"/posts/(\d+)")
_CREATOR_LISTING_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://[^/]+/([^/?#]+)/posts(?:[/?#]|$)")

# Checked in order: live stream, canonical watch page, short link.
_VIDEO_ID_PATTERNS = (
    re.compile(r"youtube\.com/live/([^\s?&#/]+)"),
    re.compile(r"youtube\.com/watch\?v=([^\s&#]+)"),
    re.compile(r"youtu\.be/([^\s?&#/]+)"),
)

_WHITESPACE_RE = re.compile(r"\s+")
_RELATIVE_TIME_RE = re.compile(r"\d+ hours? ago|\d+ minutes? ago", re.IGNORECASE)

# Unit separator; whitespace normalization strips it from titles.
_FIELD_DELIMITER = "\x1f"


def extract_post_id(url: str | None) -> str | None:
    if not url:
        return None
    match = _POST_ID_RE.search(url)
    if match:
        return match.group(1)
    match = _CREATOR_LISTING_RE.match(url)
    if match:
        return f"{match.group(1)}_filtered"
    return hashlib.md5(url.encode()).hexdigest()[:8]


def extract_video_id(content: str | None) -> str | None:
    if not content:
        return None
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(content)
        if match:
            return match.group(1)
    return None


def normalize_text(text: str | None) -> str:
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip().lower()


def normalize_tags(tags: list[str]) -> list[str]:
    return sorted(tag.strip().lower() for tag in tags)


def normalize_url(url: str | None) -> str:
    if not url:
        return ""
    return url.split("?", 1)[0].lower()


def content_hash(content: str | None) -> str:
    """sha256 of the normalized body with relative timestamps removed."""
    if not content:
        return ""
    collapsed = _WHITESPACE_RE.sub(" ", content)
    stripped = _RELATIVE_TIME_RE.sub("", collapsed)
    # Removing a phrase can leave doubled spaces behind.
    normalized = _WHITESPACE_RE.sub(" ", stripped).strip().lower()
    return hashlib.sha256(normalized.encode()).hexdigest()


def generate_fingerprint(item: ContentItem) -> Fingerprint:
    metadata = FingerprintMetadata(
        post_id=extract_post_id(item.url),
        video_id=extract_video_id(item.content),
        title=normalize_text(item.title),
        content_hash=content_hash(item.content),
        tags=normalize_tags(item.tags),
        normalized_url=normalize_url(item.url),
    )

    primary_data = _FIELD_DELIMITER.join(
        [metadata.post_id or "", metadata.title, metadata.content_hash]
    )
    secondary_data = _FIELD_DELIMITER.join(
        [metadata.video_id or "", ",".join(metadata.tags), metadata.normalized_url]
    )

    return Fingerprint(
        primary_fingerprint=hashlib.sha256(primary_data.encode()).hexdigest(),
        secondary_fingerprint=hashlib.md5(secondary_data.encode()).hexdigest(),
        metadata=metadata,
    )
