# creative_worker/utils.py
import re
from typing import Optional, Tuple
from urllib.parse import unquote, urlsplit

_UUID_PREFIX = re.compile(
    r"^([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})-(.+)$",
    re.IGNORECASE,
)


def decode_object_name(name: str) -> str:
    """
    Undo transport-level percent encoding so the name matches what the store
    holds (e.g. "my%20banner.jpg" -> "my banner.jpg").
    """
    return unquote(name) if name else name


def split_blob_url(url: str) -> Optional[Tuple[str, str]]:
    """
    Split a blob URL like

        https://account.blob.example.net/{container}/{path/to/name}

    into (container, decoded name). Returns None when the path does not hold
    both parts.
    """
    if not url:
        return None
    segments = [s for s in urlsplit(url).path.split("/") if s]
    if len(segments) < 2:
        return None
    return segments[0], decode_object_name("/".join(segments[1:]))


def parse_object_key_metadata(object_key: str) -> Tuple[str, str]:
    """
    Derive (content_id, display_name) from an object key whose last segment
    follows the upload convention:

        [prefix/]{uuid}-{original filename}

    If the key does not follow the convention the whole key is the
    content_id and its last segment is the display name.
    """
    basename = object_key.rstrip("/").rsplit("/", 1)[-1]
    match = _UUID_PREFIX.match(basename)
    if match:
        return match.group(1).lower(), match.group(2)
    return object_key, basename


def file_extension(filename: Optional[str]) -> Optional[str]:
    """Lower-cased extension without the dot, or None."""
    if not filename or "." not in filename.rsplit("/", 1)[-1]:
        return None
    ext = filename.rsplit(".", 1)[-1].lower()
    return ext or None
