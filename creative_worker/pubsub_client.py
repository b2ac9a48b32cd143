# creative_worker/pubsub_client.py
import json
import logging

from google.cloud import pubsub_v1

from creative_worker.config import Settings
from creative_worker.dto import AnalysisRecord
from creative_worker.schemas.analysis_record import SCHEMA_VERSION

logger = logging.getLogger(__name__)

_publisher: pubsub_v1.PublisherClient | None = None


def get_publisher() -> pubsub_v1.PublisherClient:
    global _publisher
    if _publisher is None:
        _publisher = pubsub_v1.PublisherClient()
        logger.info("Initialized Pub/Sub publisher")
    return _publisher


def publish_message(topic_path: str, payload: dict, timeout: float = 10) -> str:
    """
    Publish a JSON payload to the given topic.
    Returns the Pub/Sub message ID.
    """
    publisher = get_publisher()
    data = json.dumps(payload).encode("utf-8")

    future = publisher.publish(topic_path, data=data)
    message_id = future.result(timeout=timeout)
    logger.info("Published message to %s with message_id=%s", topic_path, message_id)
    return message_id


class ResultNotifier:
    """Announces persisted analysis results on a Pub/Sub topic."""

    def __init__(self, project_id: str, topic_id: str):
        self.topic_path = f"projects/{project_id}/topics/{topic_id}"

    def notify(self, record: AnalysisRecord) -> str:
        return publish_message(
            self.topic_path,
            {
                "contentId": record.content_id,
                "displayName": record.display_name,
                "category": record.category.value,
                "status": record.status.value,
                "schemaVersion": SCHEMA_VERSION,
            },
        )


def build_notifier(settings: Settings) -> ResultNotifier | None:
    if not settings.results_topic:
        return None
    return ResultNotifier(settings.require_project(), settings.results_topic)
