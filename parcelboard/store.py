"""Document store backends holding parcel records.

Every backend answers the same two questions: which parcels were created inside
a window of unix seconds, and how to write a batch of parcels keyed by id.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from parcelboard.config import Settings
from parcelboard.models import Parcel

logger = logging.getLogger(__name__)


class ParcelStoreError(RuntimeError):
    """Raised when a backend cannot be read from or written to."""


def parse_documents(docs: Iterable[Dict[str, Any]], *, source: str = "store") -> List[Parcel]:
    parcels: List[Parcel] = []
    dropped = 0
    for doc in docs:
        if not isinstance(doc, dict):
            dropped += 1
            continue
        try:
            parcels.append(Parcel.from_document(doc))
        except ValueError:
            dropped += 1
    if dropped:
        logger.warning("Dropped %d malformed parcel documents from %s", dropped, source)
    return parcels


def _in_window(parcel: Parcel, start_seconds: int, end_seconds: int) -> bool:
    return start_seconds <= parcel.created_at <= end_seconds


class ParcelStore:
    name = "base"

    def query_created_between(self, start_seconds: int, end_seconds: int) -> List[Parcel]:
        raise NotImplementedError

    def write_batch(self, parcels: Iterable[Parcel]) -> int:
        raise NotImplementedError


class InMemoryParcelStore(ParcelStore):
    name = "memory"

    def __init__(self, parcels: Optional[Iterable[Parcel]] = None):
        self._docs: Dict[str, Parcel] = {}
        if parcels:
            self.write_batch(parcels)

    def __len__(self) -> int:
        return len(self._docs)

    def query_created_between(self, start_seconds: int, end_seconds: int) -> List[Parcel]:
        return [p for p in self._docs.values() if _in_window(p, start_seconds, end_seconds)]

    def write_batch(self, parcels: Iterable[Parcel]) -> int:
        batch = {p.parcel_id: p for p in parcels}
        self._docs.update(batch)
        return len(batch)


@lru_cache(maxsize=4)
def _read_documents_cached(path: str, signature: Tuple[int, int]) -> Tuple[Parcel, ...]:
    with open(path, "r", encoding="utf-8") as fh:
        raw = json.load(fh)
    docs = raw.values() if isinstance(raw, dict) else raw
    return tuple(parse_documents(docs, source=path))


class JsonFileParcelStore(ParcelStore):
    """A single JSON object on disk mapping parcelId -> document."""

    name = "json"

    def __init__(self, path: Path):
        self.path = Path(path)

    def _all(self) -> Tuple[Parcel, ...]:
        if not self.path.exists():
            return ()
        try:
            st = self.path.stat()
            return _read_documents_cached(str(self.path), (st.st_mtime_ns, st.st_size))
        except (OSError, ValueError) as exc:
            raise ParcelStoreError(f"Cannot read {self.path}: {exc}") from exc

    def query_created_between(self, start_seconds: int, end_seconds: int) -> List[Parcel]:
        return [p for p in self._all() if _in_window(p, start_seconds, end_seconds)]

    def write_batch(self, parcels: Iterable[Parcel]) -> int:
        docs = {p.parcel_id: p.to_document() for p in self._all()}
        batch = {p.parcel_id: p.to_document() for p in parcels}
        docs.update(batch)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(docs, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            raise ParcelStoreError(f"Cannot write {self.path}: {exc}") from exc
        return len(batch)


class HttpParcelStore(ParcelStore):
    """Remote document store reached over HTTP."""

    name = "http"

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def query_created_between(self, start_seconds: int, end_seconds: int) -> List[Parcel]:
        url = f"{self.base_url}/parcels"
        try:
            response = requests.get(
                url,
                params={"createdAtGte": start_seconds, "createdAtLte": end_seconds},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ParcelStoreError(f"GET {url} failed: {exc}") from exc

        docs = payload.get("documents", []) if isinstance(payload, dict) else payload
        if docs is None:
            docs = []
        if not isinstance(docs, list):
            raise ParcelStoreError(f"GET {url} returned {type(docs).__name__}, expected a list of documents")
        parcels = parse_documents(docs, source=url)
        # same inclusive window as the other backends
        return [p for p in parcels if _in_window(p, start_seconds, end_seconds)]

    def write_batch(self, parcels: Iterable[Parcel]) -> int:
        url = f"{self.base_url}/parcels:batchWrite"
        docs = [p.to_document() for p in parcels]
        try:
            response = requests.post(url, json={"documents": docs}, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ParcelStoreError(f"POST {url} failed: {exc}") from exc
        return len(docs)


def build_store(settings: Settings) -> ParcelStore:
    if settings.store == "memory":
        return InMemoryParcelStore()
    if settings.store == "http":
        if not settings.store_url:
            raise ParcelStoreError("PARCELBOARD_STORE=http requires PARCELBOARD_STORE_URL")
        return HttpParcelStore(settings.store_url, timeout=settings.http_timeout)
    if settings.store != "json":
        logger.warning("Unknown store backend %r, using json", settings.store)
    return JsonFileParcelStore(settings.data_path)
