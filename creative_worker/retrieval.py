# creative_worker/retrieval.py
import logging
import time

from creative_worker.config import Settings
from creative_worker.dto import ObjectLocator
from creative_worker.errors import ObjectNotFound, RetrievalError
from creative_worker.retry import RetryPolicy
from creative_worker.storage import ObjectStore

logger = logging.getLogger(__name__)


def is_not_yet_visible(exc: BaseException) -> bool:
    return isinstance(exc, ObjectNotFound)


def retrieval_policy(settings: Settings, sleep=time.sleep) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.retrieval_max_attempts,
        interval_seconds=settings.retrieval_interval_seconds,
        retryable=is_not_yet_visible,
        sleep=sleep,
    )


class ContentRetriever:
    """
    Fetches object bytes, riding out the window between an upload
    notification and the object becoming readable. Only "missing" and "empty
    body" are retried; any other store error propagates on the first attempt.
    """

    def __init__(self, store: ObjectStore, policy: RetryPolicy):
        self.store = store
        self.policy = policy

    def _fetch_once(self, locator: ObjectLocator) -> bytes:
        content = self.store.get(locator)
        if not content:
            logger.warning("Object %s not readable yet (missing or empty)", locator)
            raise ObjectNotFound(str(locator))
        return content

    def fetch(self, locator: ObjectLocator) -> bytes:
        try:
            content = self.policy.call(self._fetch_once, locator)
        except ObjectNotFound as e:
            raise RetrievalError(locator, self.policy.max_attempts, e) from e
        logger.info("Downloaded %s (%s bytes)", locator, len(content))
        return content
