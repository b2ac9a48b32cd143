# creative_worker/pipeline.py
"""
One analysis run per uploaded object:

    retrieve -> classify -> extract -> evaluate -> persist

Stages run strictly in order and share nothing across runs except the two
external stores, so any number of runs may execute concurrently.
"""
import logging
import time
from typing import Optional, assert_never

from creative_worker.config import Settings
from creative_worker.dto import (
    AnalysisRecord,
    Category,
    CheckStatus,
    FileEvent,
    ObjectLocator,
    RecordStatus,
)
from creative_worker.errors import ConfigurationError, PersistenceError, RetrievalError
from creative_worker.extractors import (
    BackupUploader,
    extract_archive,
    extract_image,
    extract_media,
)
from creative_worker.media_utils import classify
from creative_worker.prober import FfprobeProber, MediaProber
from creative_worker.pubsub_client import ResultNotifier, build_notifier
from creative_worker.retrieval import ContentRetriever, retrieval_policy
from creative_worker.retry import RetryPolicy
from creative_worker.rules import Extracted, evaluate
from creative_worker.storage import (
    STORE_ERRORS,
    MetadataStore,
    ObjectStore,
    build_metadata_store,
    build_object_store,
    is_transient_store_error,
)

logger = logging.getLogger(__name__)


def persist_policy(settings: Settings, sleep=time.sleep) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.persist_max_attempts,
        interval_seconds=settings.persist_interval_seconds,
        retryable=is_transient_store_error,
        sleep=sleep,
    )


def finalize_status(record: AnalysisRecord) -> RecordStatus:
    """Error iff any check failed; warnings never fail a creative."""
    record.status = RecordStatus.ERROR if record.has_failures else RecordStatus.COMPLETED
    return record.status


def new_record(event: FileEvent, size_bytes: int = 0, is_ctv: bool = False) -> AnalysisRecord:
    return AnalysisRecord(
        content_id=event.content_id,
        display_name=event.display_name,
        bucket=event.bucket,
        object_name=event.name,
        is_ctv=is_ctv,
        size_bytes=size_bytes,
    )


class CreativeAnalyzer:
    def __init__(
        self,
        retriever: ContentRetriever,
        object_store: ObjectStore,
        metadata_store: Optional[MetadataStore],
        prober: MediaProber,
        persist_policy: RetryPolicy,
        backup_bucket: str | None = None,
        notifier: ResultNotifier | None = None,
        configuration_error: str | None = None,
    ):
        self.retriever = retriever
        self.object_store = object_store
        self.metadata_store = metadata_store
        self.prober = prober
        self.persist_policy = persist_policy
        self.backup_bucket = backup_bucket
        self.notifier = notifier
        self.configuration_error = configuration_error

    # ------------------------
    # Entry point
    # ------------------------

    def process(self, event: FileEvent) -> AnalysisRecord:
        logger.info(
            "Processing %s (content_id=%s, display_name=%s)",
            event.locator,
            event.content_id,
            event.display_name,
        )
        if self.metadata_store is None:
            return self._configuration_failure(event)

        try:
            content = self.retriever.fetch(event.locator)
        except RetrievalError as e:
            logger.error("Giving up on %s: %s", event.locator, e)
            record = new_record(event)
            record.add_check(
                "Retrieval",
                CheckStatus.FAIL,
                f"Could not download the uploaded file after {e.attempts} attempts.",
            )
            finalize_status(record)
            self.persist(record)
            self._notify(record)
            return record

        record = self.analyze(event, content)
        self.persist(record)
        self._notify(record)
        return record

    def analyze(self, event: FileEvent, content: bytes) -> AnalysisRecord:
        record = new_record(event, size_bytes=len(content), is_ctv=self._is_ctv(event.content_id))

        classification = classify(content, event.display_name, record.is_ctv)
        record.mime_type = classification.mime_type
        record.extension = classification.extension
        record.category = classification.category
        if classification.from_extension:
            record.add_check(
                "File Type",
                CheckStatus.WARN,
                f"Could not detect type reliably, inferred {record.mime_type} from extension.",
            )
        logger.info(
            "Determined creative category %s (mime=%s, is_ctv=%s)",
            record.category.value,
            record.mime_type,
            record.is_ctv,
        )

        extracted = self._extract(record, content)
        evaluate(record, extracted)
        finalize_status(record)
        logger.info(
            "Analysis of %s finished with status %s (%s checks)",
            record.content_id,
            record.status.value,
            len(record.validation_checks),
        )
        return record

    # ------------------------
    # Stages
    # ------------------------

    def _is_ctv(self, content_id: str) -> bool:
        side = self.metadata_store.get_side_metadata(content_id) if self.metadata_store else None
        if side is None:
            logger.info("No side metadata for %s, assuming is_ctv=false", content_id)
            return False
        return side.is_ctv

    def _extract(self, record: AnalysisRecord, content: bytes) -> Extracted:
        category = record.category
        match category:
            case Category.DISPLAY:
                return extract_image(record, content)
            case Category.AUDIO:
                return extract_media(record, content, self.prober, want_video=False)
            case Category.VIDEO_OLV | Category.VIDEO_CTV:
                return extract_media(record, content, self.prober, want_video=True)
            case Category.HTML5:
                return extract_archive(record, content, self._backup_uploader(record))
            case Category.UNKNOWN:
                return None
            case _:
                assert_never(category)

    def _backup_uploader(self, record: AnalysisRecord) -> Optional[BackupUploader]:
        bucket = self.backup_bucket or record.bucket
        if not bucket:
            logger.warning("No bucket for backup images, skipping extraction upload")
            return None

        def upload(name: str, data: bytes, content_type: str) -> str:
            return self.object_store.put(
                ObjectLocator(bucket=bucket, name=name),
                data,
                content_type,
                metadata={"contentId": name, "derivedFrom": record.content_id},
            )

        return upload

    def persist(self, record: AnalysisRecord) -> None:
        """Write the whole record, replacing whatever an earlier run stored."""
        if self.metadata_store is None:
            logger.error("No metadata store; result for %s not stored", record.content_id)
            return
        try:
            self.persist_policy.call(self.metadata_store.replace_record, record)
        except STORE_ERRORS as e:
            logger.error("Error storing analysis result for %s: %s", record.content_id, e)
            raise PersistenceError(f"Could not store result for {record.content_id}") from e
        logger.info("Stored analysis result for %s", record.content_id)

    def _notify(self, record: AnalysisRecord) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(record)
        except Exception:
            logger.warning("Could not publish result for %s", record.content_id, exc_info=True)

    def _configuration_failure(self, event: FileEvent) -> AnalysisRecord:
        record = new_record(event)
        record.add_check(
            "Configuration",
            CheckStatus.FAIL,
            f"Server configuration error: {self.configuration_error or 'storage not configured'}.",
        )
        finalize_status(record)
        logger.error(
            "Configuration error, result for %s cannot be stored: %s",
            record.content_id,
            self.configuration_error,
        )
        return record


def build_analyzer(settings: Settings) -> CreativeAnalyzer:
    object_store = build_object_store(settings)
    metadata_store = notifier = configuration_error = None
    try:
        metadata_store = build_metadata_store(settings)
        notifier = build_notifier(settings)
    except ConfigurationError as e:
        logger.error("Metadata store unavailable: %s", e)
        configuration_error = str(e)

    return CreativeAnalyzer(
        retriever=ContentRetriever(object_store, retrieval_policy(settings)),
        object_store=object_store,
        metadata_store=metadata_store,
        prober=FfprobeProber(settings.ffprobe_path, settings.ffprobe_timeout_seconds),
        persist_policy=persist_policy(settings),
        backup_bucket=settings.backup_bucket,
        notifier=notifier,
        configuration_error=configuration_error,
    )
