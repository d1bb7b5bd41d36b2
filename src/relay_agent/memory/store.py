"""Disk-mirrored key/value text memory with similarity-ranked recall."""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Literal
from urllib.parse import quote, unquote

from relay_agent.config import MemoryConfig
from relay_agent.errors import MemoryPersistenceError
from relay_agent.memory.ranking import SectionIndex
from relay_agent.result import Maybe

logger = logging.getLogger(__name__)

MemoryType = Literal["conversation", "preference", "userData"]

_VALUE_SUFFIX = ".txt"
_META_SUFFIX = ".meta.json"


@dataclass(slots=True)
class MemoryDocument:
    """One stored memory. `ttl` is in seconds; `None` keeps it forever."""

    key: str
    value: str
    type: MemoryType | None = None
    tags: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    ttl: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.ttl is not None and now > self.created_at + self.ttl

    def render(self) -> str:
        return f"{self.key}: {self.value}"


class MemoryStore:
    """Key/value text store mirrored to one file per key.

    Every mutating call writes to disk before touching the in-memory map, so a
    failed write leaves memory unchanged and the error reaches the caller. A
    crash between the two steps can still leave them diverged; there is no
    transaction and no file locking.

    Values are URL-encoded on disk (`quote`) and decoded on `load()`. Because
    the encoding is per character, appends only write the encoded suffix.
    """

    def __init__(
        self,
        config: MemoryConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or MemoryConfig()
        self.base_path = Path(self.config.base_path)
        self._clock = clock
        self._documents: dict[str, MemoryDocument] = {}
        self._lengths: dict[str, int] = {}
        self._total_length = 0
        self._index = SectionIndex([], self.config)

    @property
    def total_length(self) -> int:
        """Sum of all stored value lengths, maintained incrementally."""
        return self._total_length

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, key: object) -> bool:
        return key in self._documents

    def keys(self) -> list[str]:
        return list(self._documents)

    def document(self, key: str) -> MemoryDocument | None:
        return self._documents.get(key)

    def set(
        self,
        key: str,
        value: str,
        append: bool = False,
        *,
        type: MemoryType | None = None,
        tags: Iterable[str] | None = None,
        ttl: float | None = None,
    ) -> MemoryDocument:
        """Store `value` under `key`, concatenating when `append` is set."""
        now = self._clock()
        existing = self._documents.get(key)
        if existing is not None and existing.is_expired(now):
            existing = None

        if append and existing is not None:
            document = MemoryDocument(
                key=key,
                value=existing.value + value,
                type=type or existing.type,
                tags=_merge_tags(existing.tags, tags),
                created_at=existing.created_at,
                ttl=ttl if ttl is not None else existing.ttl,
            )
            self._write_value(key, value, append=True)
        else:
            document = MemoryDocument(
                key=key,
                value=value,
                type=type,
                tags=list(tags or []),
                created_at=now,
                ttl=ttl,
            )
            self._write_value(key, value, append=False)
        self._write_meta(document)

        self._put(document)
        return document

    def fetch(self, key: str) -> Maybe[str]:
        """Raw value of a live document."""
        document = self._documents.get(key)
        if document is None or document.is_expired(self._clock()):
            return Maybe.nothing()
        return Maybe.just(document.value)

    def get(self, query: str) -> Maybe[str]:
        """Most relevant sections across all live documents, or nothing."""
        documents = self._live_documents()
        self._index = SectionIndex([doc.render() for doc in documents], self.config)
        hits = self._index.search(query)
        if not hits:
            return Maybe.nothing()
        return Maybe.just("\n".join(hit.text for hit in hits))

    def forget(
        self,
        *,
        key: str | None = None,
        type: MemoryType | None = None,
        before: float | None = None,
        tags: Iterable[str] | None = None,
    ) -> int:
        """Remove documents matching any given criterion; returns the count."""
        wanted_tags = set(tags or [])
        doomed = [
            document.key
            for document in self._documents.values()
            if (key is not None and document.key == key)
            or (type is not None and document.type == type)
            or (before is not None and document.created_at < before)
            or (wanted_tags and wanted_tags.intersection(document.tags))
        ]
        self._remove(doomed)
        self._index = SectionIndex(
            [doc.render() for doc in self._live_documents()], self.config
        )
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [doc.key for doc in self._documents.values() if doc.is_expired(now)]
        self._remove(expired)
        return len(expired)

    def load(self) -> int:
        """Read every stored document from the backing directory."""
        self.base_path.mkdir(parents=True, exist_ok=True)
        loaded = 0
        for path in sorted(self.base_path.glob(f"*{_VALUE_SUFFIX}")):
            encoded = path.name[: -len(_VALUE_SUFFIX)]
            document = MemoryDocument(
                key=unquote(encoded),
                value=unquote(path.read_text(encoding="utf-8")),
            )
            self._read_meta(encoded, document)
            self._put(document)
            loaded += 1
        logger.info("Loaded %d memory documents from %s", loaded, self.base_path)
        return loaded

    def stats(self) -> dict[str, object]:
        types = Counter(doc.type or "untyped" for doc in self._documents.values())
        return {
            "total_documents": len(self._documents),
            "total_length": self._total_length,
            "memory_types": dict(types),
            "indexed_terms": self._index.vocabulary_size,
        }

    def _live_documents(self) -> list[MemoryDocument]:
        now = self._clock()
        return [doc for doc in self._documents.values() if not doc.is_expired(now)]

    def _put(self, document: MemoryDocument) -> None:
        length = len(document.value)
        self._total_length += length - self._lengths.get(document.key, 0)
        self._lengths[document.key] = length
        self._documents[document.key] = document

    def _remove(self, keys: list[str]) -> None:
        for key in keys:
            encoded = _encode_key(key)
            try:
                (self.base_path / f"{encoded}{_VALUE_SUFFIX}").unlink(missing_ok=True)
                (self.base_path / f"{encoded}{_META_SUFFIX}").unlink(missing_ok=True)
            except OSError as exc:
                raise MemoryPersistenceError(key, exc) from exc
            self._total_length -= self._lengths.pop(key, 0)
            del self._documents[key]

    def _write_value(self, key: str, value: str, *, append: bool) -> None:
        path = self.base_path / f"{_encode_key(key)}{_VALUE_SUFFIX}"
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            with path.open("a" if append else "w", encoding="utf-8") as handle:
                handle.write(quote(value, safe=""))
        except OSError as exc:
            raise MemoryPersistenceError(key, exc) from exc

    def _write_meta(self, document: MemoryDocument) -> None:
        meta = asdict(document)
        del meta["key"], meta["value"]
        path = self.base_path / f"{_encode_key(document.key)}{_META_SUFFIX}"
        try:
            path.write_text(json.dumps(meta), encoding="utf-8")
        except OSError as exc:
            raise MemoryPersistenceError(document.key, exc) from exc

    def _read_meta(self, encoded: str, document: MemoryDocument) -> None:
        path = self.base_path / f"{encoded}{_META_SUFFIX}"
        if not path.exists():
            return
        try:
            meta = json.loads(path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning("Ignoring unreadable metadata for %s", document.key)
            return
        document.type = meta.get("type")
        document.tags = list(meta.get("tags") or [])
        document.created_at = float(meta.get("created_at", document.created_at))
        document.ttl = meta.get("ttl")


def _encode_key(key: str) -> str:
    return quote(key, safe="")


def _merge_tags(existing: list[str], extra: Iterable[str] | None) -> list[str]:
    merged = list(existing)
    for tag in extra or []:
        if tag not in merged:
            merged.append(tag)
    return merged
