"""
certchain — Metadata Index

Maps an on-chain content hash to the metadata behind it. This is a
display convenience layered over the ledger, so every failure here is
soft: an unreadable index reads as empty, a failed write is logged and
reported through the return value.

The JSON-file implementation reads the whole index, mutates it in memory
and writes it back in full on every put. There is no locking across
processes or concurrent requests: two puts that interleave between read
and write lose one of the updates. Callers depend only on the
MetadataStore protocol so a transactional key-value backend can replace
it without changes elsewhere.

The methods are synchronous and do blocking file I/O. Async callers run
them with `asyncio.to_thread`; that keeps the event loop free but adds
no locking, so the lost update above still applies.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

import structlog

from certchain.primitives.certificate import MetadataRecord

logger = structlog.get_logger("certchain.certificates.store")


def normalize_hash_key(content_hash: str) -> str:
    body = content_hash[2:] if content_hash[:2].lower() == "0x" else content_hash
    return "0x" + body.lower()


class MetadataStore(Protocol):
    def get(self, content_hash: str) -> MetadataRecord | None: ...

    def put(self, content_hash: str, record: MetadataRecord) -> bool: ...


class JsonFileMetadataStore:
    """Whole-file JSON index: `{"0x<hash>": {...metadata...}}`."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, content_hash: str) -> MetadataRecord | None:
        index = self._load()
        return index.get(content_hash) or index.get(normalize_hash_key(content_hash))

    def put(self, content_hash: str, record: MetadataRecord) -> bool:
        """
        Index `record` under `content_hash`.

        An existing entry is kept: the same hash means the same locator,
        so the content is already there. Returns True if the file was written.
        """
        key = normalize_hash_key(content_hash)
        index = self._load()
        if key in index:
            logger.debug("metadata_already_indexed", content_hash=key)
            return False

        index[key] = record
        try:
            self._dump(index)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(
                "metadata_store_write_failed",
                path=str(self._path),
                content_hash=key,
                error=str(e),
            )
            return False

        logger.debug("metadata_indexed", content_hash=key, entries=len(index))
        return True

    def _load(self) -> dict[str, MetadataRecord]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("metadata_store_read_failed", path=str(self._path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning(
                "metadata_store_malformed",
                path=str(self._path),
                found=type(data).__name__,
            )
            return {}
        return data

    def _dump(self, index: dict[str, MetadataRecord]) -> None:
        payload = json.dumps(index, indent=2)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(payload, encoding="utf-8")
