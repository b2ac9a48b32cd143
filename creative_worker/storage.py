# creative_worker/storage.py
import logging
from enum import Enum
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote

from google.api_core import exceptions as gexc
from google.cloud import firestore, storage

from creative_worker.config import Settings
from creative_worker.dto import AnalysisRecord, ObjectLocator, SideMetadata
from creative_worker.errors import RecordSchemaError
from creative_worker.schemas.analysis_record import from_document, to_document

logger = logging.getLogger(__name__)


class WriteMode(str, Enum):
    MERGE = "merge"
    REPLACE = "replace"


# Side metadata is written by the uploader and may gain fields over time, so
# writes merge. Analysis records are rewritten whole on every run so checks
# from an earlier attempt cannot survive.
WRITE_MODES: Dict[type, WriteMode] = {
    SideMetadata: WriteMode.MERGE,
    AnalysisRecord: WriteMode.REPLACE,
}

STORE_ERRORS = (gexc.GoogleAPIError,)

TRANSIENT_STORE_ERRORS = (
    gexc.ServiceUnavailable,
    gexc.DeadlineExceeded,
    gexc.InternalServerError,
    gexc.TooManyRequests,
    gexc.ResourceExhausted,
    gexc.Aborted,
)


def document_id(content_id: str) -> str:
    """
    Firestore document id for a content id. Keys that do not follow the
    upload convention may contain "/", which Firestore would read as a path
    separator, so the id is percent-encoded and the reserved ids are escaped.
    """
    doc_id = quote(content_id, safe="")
    if doc_id in (".", ".."):
        return doc_id.replace(".", "%2E")
    if doc_id.startswith("__") and doc_id.endswith("__"):
        return "%5F" + doc_id[1:]
    return doc_id


def is_transient_store_error(exc: BaseException) -> bool:
    return isinstance(exc, TRANSIENT_STORE_ERRORS)


class ObjectStore(Protocol):
    def get(self, locator: ObjectLocator) -> Optional[bytes]: ...

    def put(
        self,
        locator: ObjectLocator,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str: ...


class MetadataStore(Protocol):
    def get_side_metadata(self, content_id: str) -> Optional[SideMetadata]: ...

    def set_side_metadata(self, side_metadata: SideMetadata) -> None: ...

    def replace_record(self, record: AnalysisRecord) -> None: ...

    def get_record(self, content_id: str) -> Optional[AnalysisRecord]: ...


# ------------------------
# Object store (GCS)
# ------------------------


class GcsObjectStore:
    def __init__(self, client: storage.Client):
        self._client = client

    def get(self, locator: ObjectLocator) -> Optional[bytes]:
        """Object bytes, or None when the object does not exist (yet)."""
        blob = self._client.bucket(locator.bucket).blob(locator.name)
        try:
            return blob.download_as_bytes()
        except gexc.NotFound:
            return None

    def put(
        self,
        locator: ObjectLocator,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        blob = self._client.bucket(locator.bucket).blob(locator.name)
        if metadata:
            blob.metadata = metadata
        blob.upload_from_string(data, content_type=content_type)
        logger.info(
            "Uploaded %s bytes to gs://%s (%s)", len(data), locator, content_type
        )
        return locator.name


# ------------------------
# Metadata store (Firestore)
# ------------------------


class FirestoreMetadataStore:
    def __init__(
        self,
        client: firestore.Client,
        results_collection: str,
        metadata_collection: str,
    ):
        self._client = client
        self._results = results_collection
        self._metadata = metadata_collection

    def _document(self, collection: str, content_id: str):
        return self._client.collection(collection).document(document_id(content_id))

    def _write(
        self, collection: str, content_id: str, data: Dict[str, Any], mode: WriteMode
    ) -> None:
        ref = self._document(collection, content_id)
        ref.set(data, merge=mode is WriteMode.MERGE)

    def get_side_metadata(self, content_id: str) -> Optional[SideMetadata]:
        try:
            snapshot = self._document(self._metadata, content_id).get()
        except gexc.GoogleAPICallError as e:
            # side metadata only refines classification; carry on with defaults
            logger.error("Error retrieving side metadata for %s: %s", content_id, e)
            return None
        if not snapshot.exists:
            return None

        data = snapshot.to_dict() or {}
        is_ctv = data.get("isCtv")
        if not isinstance(is_ctv, bool):
            logger.warning(
                "Side metadata isCtv invalid for %s (%r), assuming false", content_id, is_ctv
            )
            is_ctv = False
        return SideMetadata(
            content_id=content_id,
            is_ctv=is_ctv,
            display_name=data.get("displayName"),
        )

    def set_side_metadata(self, side_metadata: SideMetadata) -> None:
        data = side_metadata.model_dump(by_alias=True, exclude_none=True)
        self._write(self._metadata, side_metadata.content_id, data, WRITE_MODES[SideMetadata])

    def replace_record(self, record: AnalysisRecord) -> None:
        self._write(
            self._results, record.content_id, to_document(record), WRITE_MODES[AnalysisRecord]
        )

    def get_record(self, content_id: str) -> Optional[AnalysisRecord]:
        snapshot = self._document(self._results, content_id).get()
        if not snapshot.exists:
            return None
        try:
            return from_document(snapshot.to_dict() or {})
        except RecordSchemaError:
            logger.error("Stored analysis record for %s is unreadable", content_id)
            raise


def build_object_store(settings: Settings) -> GcsObjectStore:
    return GcsObjectStore(storage.Client(project=settings.project_id))


def build_metadata_store(settings: Settings) -> FirestoreMetadataStore:
    project_id = settings.require_project()
    client = firestore.Client(project=project_id)
    logger.info(
        "Initialized metadata store project=%s results=%s metadata=%s",
        project_id,
        settings.results_collection,
        settings.metadata_collection,
    )
    return FirestoreMetadataStore(
        client,
        results_collection=settings.results_collection,
        metadata_collection=settings.metadata_collection,
    )
