from __future__ import annotations

import io
import struct
import zipfile
import zlib
from typing import Any, Dict, List, Optional

from PIL import Image

from creative_worker.config import Settings
from creative_worker.dto import AnalysisRecord, FileEvent, ObjectLocator, SideMetadata
from creative_worker.errors import ProbeError
from creative_worker.pipeline import CreativeAnalyzer, persist_policy
from creative_worker.retrieval import ContentRetriever, retrieval_policy
from creative_worker.schemas.analysis_record import from_document, to_document

CONTENT_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


# -----------------------------
# Test doubles
# -----------------------------
class FakeObjectStore:
    def __init__(self, objects: Optional[Dict[ObjectLocator, bytes]] = None):
        self.objects: Dict[ObjectLocator, bytes] = dict(objects or {})
        self.get_calls: List[ObjectLocator] = []
        self.puts: List[Dict[str, Any]] = []
        self.fail_puts = False

    def get(self, locator: ObjectLocator) -> Optional[bytes]:
        self.get_calls.append(locator)
        return self.objects.get(locator)

    def put(self, locator, data, content_type, metadata=None) -> str:
        if self.fail_puts:
            raise RuntimeError("upload refused")
        self.objects[locator] = data
        self.puts.append(
            {"locator": locator, "data": data, "content_type": content_type, "metadata": metadata}
        )
        return locator.name


class FakeMetadataStore:
    """Keeps documents the way the real store does: serialized, keyed by id."""

    def __init__(self):
        self.side: Dict[str, Dict[str, Any]] = {}
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.replace_calls = 0
        self.failures: List[Exception] = []

    def get_side_metadata(self, content_id: str) -> Optional[SideMetadata]:
        data = self.side.get(content_id)
        return SideMetadata(content_id=content_id, **data) if data is not None else None

    def set_side_metadata(self, side_metadata: SideMetadata) -> None:
        current = self.side.setdefault(side_metadata.content_id, {})
        current.update(side_metadata.model_dump(exclude={"content_id"}, exclude_none=True))

    def replace_record(self, record: AnalysisRecord) -> None:
        self.replace_calls += 1
        if self.failures:
            raise self.failures.pop(0)
        self.documents[record.content_id] = to_document(record)

    def get_record(self, content_id: str) -> Optional[AnalysisRecord]:
        doc = self.documents.get(content_id)
        return from_document(doc) if doc is not None else None


class FakeProber:
    def __init__(self, report: Optional[Dict[str, Any]] = None, error: Optional[str] = None):
        self.report = report or {}
        self.error = error
        self.calls: List[str] = []

    def probe(self, content: bytes, suffix: str = "") -> Dict[str, Any]:
        self.calls.append(suffix)
        if self.error:
            raise ProbeError(self.error)
        return self.report


# -----------------------------
# Helpers
# -----------------------------
def no_sleep(seconds: float) -> None:
    return None


def make_event(name: str, bucket: str = "creatives", **kwargs) -> FileEvent:
    return FileEvent(
        bucket=bucket,
        name=name,
        content_id=kwargs.pop("content_id", CONTENT_ID),
        display_name=kwargs.pop("display_name", name.rsplit("/", 1)[-1]),
        **kwargs,
    )


def make_analyzer(
    object_store: Optional[FakeObjectStore] = None,
    metadata_store: Optional[FakeMetadataStore] = None,
    prober: Optional[FakeProber] = None,
    **kwargs,
) -> CreativeAnalyzer:
    object_store = object_store if object_store is not None else FakeObjectStore()
    settings = Settings()
    retriever = ContentRetriever(object_store, retrieval_policy(settings, sleep=no_sleep))
    return CreativeAnalyzer(
        retriever=retriever,
        object_store=object_store,
        metadata_store=metadata_store,
        prober=prober or FakeProber(),
        persist_policy=persist_policy(settings, sleep=no_sleep),
        **kwargs,
    )


def image_bytes(width: int, height: int, fmt: str = "JPEG", pad_to: int = 0) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format=fmt)
    data = buf.getvalue()
    if pad_to > len(data):
        # trailing bytes after the end-of-image marker are ignored by decoders
        data += b"\x00" * (pad_to - len(data))
    return data


def png_header(width: int, height: int) -> bytes:
    """A PNG signature, IHDR and a stub IDAT; enough for Pillow to read the size."""

    def chunk(kind: bytes, body: bytes) -> bytes:
        crc = struct.pack(">I", zlib.crc32(kind + body))
        return struct.pack(">I", len(body)) + kind + body + crc

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IDAT", b"\x00" * 16) + chunk(b"IEND", b"")


def zip_bytes(entries: Dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


AD_HTML = (
    b"<!DOCTYPE html><html><head>"
    b'<meta name="ad.size" content="width=300,height=250">'
    b"<script>var clickTag = 'https://example.com';</script>"
    b"</head><body></body></html>"
)

