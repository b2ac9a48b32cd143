# creative_worker/media_utils.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import filetype

from creative_worker.dto import Category, FileEvent
from creative_worker.utils import (
    file_extension,
    parse_object_key_metadata,
    split_blob_url,
)

logger = logging.getLogger(__name__)

# used only when the content signature is not recognised
EXTENSION_MIME_TYPES: Dict[str, str] = {
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "wav": "audio/wav",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "zip": "application/zip",
}

# sniffers disagree on a few names; keep the ones the rule tables use
MIME_ALIASES: Dict[str, str] = {
    "audio/x-wav": "audio/wav",
    "audio/wave": "audio/wav",
    "audio/vnd.wave": "audio/wav",
    "audio/mp3": "audio/mpeg",
    "audio/x-m4a": "audio/mp4",
    "application/x-zip-compressed": "application/zip",
}


@dataclass(frozen=True)
class Classification:
    mime_type: Optional[str]
    extension: Optional[str]
    category: Category
    from_extension: bool = False


def sniff_mime(content: bytes) -> Optional[tuple[str, str]]:
    """Return (mime, extension) from the content signature, or None."""
    if not content:
        return None
    kind = filetype.guess(content)
    if kind is None:
        return None
    return MIME_ALIASES.get(kind.mime, kind.mime), kind.extension


def classify_category(mime_type: Optional[str], is_ctv: bool) -> Category:
    if not mime_type:
        return Category.UNKNOWN

    if mime_type.startswith("image/"):
        return Category.DISPLAY
    if mime_type.startswith("audio/"):
        return Category.AUDIO
    if mime_type.startswith("video/"):
        return Category.VIDEO_CTV if is_ctv else Category.VIDEO_OLV
    if mime_type == "application/zip":
        return Category.HTML5

    return Category.UNKNOWN


def classify(content: bytes, filename: Optional[str], is_ctv: bool) -> Classification:
    sniffed = sniff_mime(content)
    if sniffed:
        mime_type, extension = sniffed
        category = classify_category(mime_type, is_ctv)
        logger.info(
            "Detected file type %s (.%s), category=%s", mime_type, extension, category.value
        )
        return Classification(mime_type, extension, category)

    extension = file_extension(filename)
    mime_type = EXTENSION_MIME_TYPES.get(extension) if extension else None
    category = classify_category(mime_type, is_ctv)
    if mime_type:
        logger.warning(
            "Could not sniff type of %s, inferred %s from extension", filename, mime_type
        )
    else:
        logger.warning("Could not determine type of %s, treating as unknown", filename)
    return Classification(mime_type, extension, category, from_extension=mime_type is not None)


def normalize_file_event(raw_event: Dict[str, Any]) -> FileEvent:
    """
    Normalize an Eventarc/CloudEvent, a Pub/Sub object notification, or a
    blob-created event carrying a URL into our FileEvent.

    Raises ValueError when the event does not identify an object.
    """
    if isinstance(raw_event.get("data"), dict):
        data = raw_event["data"]
    else:
        data = raw_event

    bucket = data.get("bucket")
    name = data.get("name")
    # object resources carry the name unencoded; only blob URLs need decoding
    if (not bucket or not name) and data.get("url"):
        parts = split_blob_url(data["url"])
        if parts:
            bucket, name = parts

    if not bucket or not name:
        raise ValueError(f"Event does not identify an object: {sorted(data)}")

    size_val = data.get("size", data.get("contentLength"))
    size_int = int(size_val) if size_val is not None else None

    # Identity comes from object metadata when the uploader set it,
    # otherwise from the object key convention.
    metadata = data.get("metadata") or {}
    parsed_content_id, parsed_display_name = parse_object_key_metadata(name)

    return FileEvent(
        bucket=bucket,
        name=name,
        content_type=data.get("contentType"),
        size=size_int,
        content_id=metadata.get("contentId") or parsed_content_id,
        display_name=metadata.get("displayName") or parsed_display_name,
        derived_from=metadata.get("derivedFrom"),
    )
