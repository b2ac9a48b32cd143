# main.py
import base64
import binascii
import json
import logging
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from creative_worker.config import get_settings
from creative_worker.dto import AnalysisRecord, SideMetadata
from creative_worker.errors import RecordSchemaError
from creative_worker.media_utils import normalize_file_event
from creative_worker.pipeline import CreativeAnalyzer, build_analyzer
from creative_worker.storage import MetadataStore

logging.basicConfig(level=get_settings().log_level.upper())
logger = logging.getLogger("creative-worker")

app = FastAPI()

# storage "object created" notifications, per transport
ACCEPTED_EVENT_TYPES = {
    "google.cloud.storage.object.v1.finalized",
    "OBJECT_FINALIZE",
    "Microsoft.Storage.BlobCreated",
}

EVENT_GRID_VALIDATION = "Microsoft.EventGrid.SubscriptionValidationEvent"

_analyzer: CreativeAnalyzer | None = None


def get_analyzer() -> CreativeAnalyzer:
    global _analyzer
    if _analyzer is None:
        _analyzer = build_analyzer(get_settings())
    return _analyzer


def get_metadata_store(analyzer: CreativeAnalyzer = Depends(get_analyzer)) -> MetadataStore:
    if analyzer.metadata_store is None:
        raise HTTPException(
            status_code=503,
            detail=f"Server configuration error: {analyzer.configuration_error}",
        )
    return analyzer.metadata_store


async def process_events(events: List[Dict[str, Any]], analyzer: CreativeAnalyzer) -> None:
    for raw in events:
        event_type = raw.get("eventType") or raw.get("type")
        if event_type and event_type not in ACCEPTED_EVENT_TYPES:
            logger.info("Skipping event of type %s", event_type)
            continue

        try:
            file_event = normalize_file_event(raw)
        except (ValueError, TypeError) as e:
            # redelivery cannot fix a malformed event
            logger.error("Dropping unusable storage event: %s", e)
            continue

        if file_event.derived_from:
            logger.info(
                "Skipping derived object %s (from %s)", file_event.name, file_event.derived_from
            )
            continue

        record = await run_in_threadpool(analyzer.process, file_event)
        logger.info(
            "Finished %s: content_id=%s status=%s",
            file_event.name,
            record.content_id,
            record.status.value,
        )


@app.get("/")
async def root():
    return {"status": "ok", "service": "creative-analysis-worker"}


# ------------------------
# Pub/Sub push handler
# ------------------------


class PubSubEnvelope(BaseModel):
    message: dict
    subscription: str


@app.post("/pubsub")
async def handle_pubsub(
    envelope: PubSubEnvelope, analyzer: CreativeAnalyzer = Depends(get_analyzer)
):
    """
    Classic Pub/Sub push of a Cloud Storage notification. The message data
    is the JSON object resource; the event type rides in the attributes.
    """
    try:
        data_b64 = envelope.message.get("data", "")
        payload = base64.b64decode(data_b64).decode("utf-8")
        event = json.loads(payload)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Undecodable Pub/Sub message on %s: %s", envelope.subscription, e)
        return Response(status_code=204)

    if not isinstance(event, dict):
        logger.error("Unexpected Pub/Sub payload on %s", envelope.subscription)
        return Response(status_code=204)

    attributes = envelope.message.get("attributes") or {}
    if attributes.get("eventType"):
        event = {**event, "eventType": attributes["eventType"]}

    try:
        await process_events([event], analyzer)
    except Exception:
        logger.exception("Error processing Pub/Sub message")
        # non-2xx -> Pub/Sub redelivers; the run is idempotent
        return Response(status_code=500)
    return Response(status_code=204)


# ------------------------
# Eventarc storage handler
# ------------------------


@app.post("/gcs-events")
async def handle_gcs_events(request: Request, analyzer: CreativeAnalyzer = Depends(get_analyzer)):
    try:
        raw = await request.json()
    except json.JSONDecodeError:
        logger.error("Storage event body is not JSON")
        return Response(status_code=204)

    events = raw if isinstance(raw, list) else [raw]
    events = [e for e in events if isinstance(e, dict)]

    if events and events[0].get("eventType") == EVENT_GRID_VALIDATION:
        data = events[0].get("data")
        code = data.get("validationCode") if isinstance(data, dict) else None
        if not code:
            logger.error("Event Grid validation event without a validationCode")
            raise HTTPException(status_code=400, detail="validationCode missing")
        logger.info("Answering Event Grid subscription validation")
        return {"validationResponse": code}

    logger.info("Received %s storage event(s)", len(events))

    try:
        await process_events(events, analyzer)
    except Exception:
        logger.exception("Error processing storage events")
        return Response(status_code=500)
    return Response(status_code=204)


# ------------------------
# Side metadata and results
# ------------------------


class CreativeMetadataRequest(BaseModel):
    content_id: str = Field(alias="contentId", min_length=1)
    is_ctv: bool = Field(alias="isCtv", strict=True)
    display_name: str | None = Field(default=None, alias="displayName")


@app.post("/creative-metadata")
async def set_creative_metadata(
    body: CreativeMetadataRequest, store: MetadataStore = Depends(get_metadata_store)
):
    side = SideMetadata(
        content_id=body.content_id, is_ctv=body.is_ctv, display_name=body.display_name
    )
    await run_in_threadpool(store.set_side_metadata, side)
    logger.info("Stored side metadata for %s: is_ctv=%s", side.content_id, side.is_ctv)
    return {"contentId": side.content_id, "isCtv": side.is_ctv}


@app.get("/results/{content_id}", response_model=AnalysisRecord, response_model_by_alias=True)
async def get_analysis_result(content_id: str, store: MetadataStore = Depends(get_metadata_store)):
    try:
        record = await run_in_threadpool(store.get_record, content_id)
    except RecordSchemaError as e:
        raise HTTPException(status_code=500, detail=f"Stored analysis record is unreadable: {e}")
    if record is None:
        raise HTTPException(status_code=404, detail=f"No analysis result for {content_id}")
    return record
