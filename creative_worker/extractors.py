# creative_worker/extractors.py
"""
Format-specific metadata extractors.

Each extractor fills in the AnalysisRecord fields it knows about and records
its own failures as checks. Nothing here raises for bad creative content:
a broken file degrades the report, it never aborts the run.
"""
import io
import logging
import math
import posixpath
import re
import zipfile
import zlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from PIL import Image, UnidentifiedImageError

from creative_worker import spec_limits
from creative_worker.dto import AnalysisRecord, CheckStatus, Dimensions, Html5Info
from creative_worker.errors import ProbeError
from creative_worker.prober import MediaProber

logger = logging.getLogger(__name__)

BackupUploader = Callable[[str, bytes, str], str]

AD_SIZE_META = re.compile(
    r"""<meta\s+name=["']ad\.size["']\s+content=["']width=(\d+),height=(\d+)["']\s*/?>""",
    re.IGNORECASE,
)
CLICK_TAG_NAMES = ("clickTAG", "clickTag")


@dataclass(frozen=True)
class MediaMetadata:
    duration: Optional[float] = None
    bitrate_kbps: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    frame_rate: Optional[float] = None

    @property
    def resolution(self) -> Optional[str]:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None


# ------------------------
# Images
# ------------------------


def extract_image(record: AnalysisRecord, content: bytes) -> Optional[Dimensions]:
    try:
        with Image.open(io.BytesIO(content)) as img:
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.error("Error getting image dimensions for %s: %s", record.content_id, e)
        record.add_check("Dimensions", CheckStatus.FAIL, "Could not read image dimensions.")
        return None

    record.dimensions = Dimensions(width=width, height=height)
    logger.info("Image dimensions: %s", record.dimensions)
    return record.dimensions


# ------------------------
# Audio / video
# ------------------------


def parse_frame_rate(value: Any) -> Optional[float]:
    """
    Parse an ffprobe rate such as "30000/1001" or "25" into frames per second.
    Returns None for anything that is not a plain number or a num/den pair
    with a non-zero denominator.
    """
    if value is None:
        return None
    text = str(value).strip()
    num, sep, den = text.partition("/")
    try:
        numerator = float(num)
        denominator = float(den) if sep else 1.0
    except ValueError:
        return None
    if denominator == 0 or not math.isfinite(numerator) or not math.isfinite(denominator):
        return None
    return numerator / denominator


def _to_float(value: Any) -> Optional[float]:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _to_kbps(bits_per_second: Any) -> Optional[int]:
    bps = _to_float(bits_per_second)
    if not bps:
        return None
    # half-up, so 256500 b/s reads as 257 kbps
    return int(math.floor(bps / 1000 + 0.5))


def read_media_metadata(report: Dict[str, Any], want_video: bool) -> MediaMetadata:
    fmt = report.get("format") or {}
    streams = report.get("streams") or []

    width = height = frame_rate = None
    if want_video:
        video = next((s for s in streams if s.get("codec_type") == "video"), None)
        if video:
            width = video.get("width")
            height = video.get("height")
            frame_rate = parse_frame_rate(video.get("r_frame_rate"))

    return MediaMetadata(
        duration=_to_float(fmt.get("duration")),
        bitrate_kbps=_to_kbps(fmt.get("bit_rate")),
        width=width,
        height=height,
        frame_rate=frame_rate,
    )


def extract_media(
    record: AnalysisRecord,
    content: bytes,
    prober: MediaProber,
    want_video: bool,
) -> Optional[MediaMetadata]:
    suffix = f".{record.extension}" if record.extension else ""
    try:
        report = prober.probe(content, suffix)
    except ProbeError as e:
        logger.error("Error probing media for %s: %s", record.content_id, e)
        record.add_check(
            "Media Metadata",
            CheckStatus.FAIL,
            "Could not read media properties (duration, bitrate, etc.).",
        )
        return None

    meta = read_media_metadata(report, want_video)
    record.duration = meta.duration
    record.bitrate_kbps = meta.bitrate_kbps
    if want_video:
        record.frame_rate = meta.frame_rate
        if meta.width and meta.height:
            record.dimensions = Dimensions(width=meta.width, height=meta.height)
    logger.info(
        "Media metadata for %s: duration=%s bitrate=%s kbps resolution=%s fps=%s",
        record.content_id,
        meta.duration,
        meta.bitrate_kbps,
        meta.resolution,
        meta.frame_rate,
    )
    return meta


# ------------------------
# HTML5 archives
# ------------------------


def _find_primary_html(zf: zipfile.ZipFile) -> Optional[zipfile.ZipInfo]:
    for entry in zf.infolist():
        name = entry.filename
        if not entry.is_dir() and "/" not in name and name.lower().endswith(".html"):
            return entry
    return None


def _inspect_primary_html(record: AnalysisRecord, zf: zipfile.ZipFile, info: Html5Info) -> None:
    primary = _find_primary_html(zf)
    if primary is None:
        record.add_check(
            "Primary HTML (HTML5)",
            CheckStatus.FAIL,
            "No primary HTML file found in the root of the ZIP.",
        )
        return

    info.primary_html_file = primary.filename
    record.add_check(
        "Primary HTML (HTML5)",
        CheckStatus.PASS,
        f"Found primary HTML: {primary.filename}",
        value=primary.filename,
    )

    html = zf.read(primary).decode("utf-8", errors="replace")

    match = AD_SIZE_META.search(html)
    if match:
        info.ad_size_meta = f"{match.group(1)}x{match.group(2)}"
        record.add_check(
            "Ad Size Meta (HTML5)",
            CheckStatus.PASS,
            f"Found ad.size meta tag: {info.ad_size_meta}",
            value=info.ad_size_meta,
        )
    else:
        record.add_check(
            "Ad Size Meta (HTML5)",
            CheckStatus.FAIL,
            "Required ad.size meta tag not found or invalid.",
        )

    # lexical only; the script itself is never evaluated
    info.click_tag_detected = any(name in html for name in CLICK_TAG_NAMES)
    if info.click_tag_detected:
        record.add_check(
            "ClickTag (HTML5)",
            CheckStatus.PASS,
            "clickTAG/clickTag variable usage detected (basic check).",
            value="Detected",
        )
    else:
        record.add_check(
            "ClickTag (HTML5)",
            CheckStatus.WARN,
            "clickTAG/clickTag variable usage not detected (basic check).",
        )


def _upload_backup(
    record: AnalysisRecord,
    zf: zipfile.ZipFile,
    info: Html5Info,
    upload_backup: BackupUploader,
) -> None:
    ext = posixpath.splitext(info.backup_image_file)[1].lower()
    content_type = spec_limits.IMAGE_CONTENT_TYPES.get(ext, "application/octet-stream")
    backup_id = f"{record.content_id}-backup{ext}"
    try:
        data = zf.read(info.backup_image_file)
        info.extracted_backup_content_id = upload_backup(backup_id, data, content_type)
    except Exception:
        # the archive itself is still valid; a missing backup copy is not a check failure
        logger.warning(
            "Could not extract/upload backup image %s for %s",
            info.backup_image_file,
            record.content_id,
            exc_info=True,
        )
        return
    logger.info("Uploaded backup image %s as %s", info.backup_image_file, backup_id)


def _inspect_archive(
    record: AnalysisRecord,
    zf: zipfile.ZipFile,
    upload_backup: Optional[BackupUploader],
) -> Html5Info:
    limits = spec_limits.HTML5
    entries = zf.infolist()
    info = Html5Info(file_count=len(entries))
    logger.info("ZIP for %s has %s entries", record.content_id, info.file_count)

    _inspect_primary_html(record, zf, info)

    backup: Optional[zipfile.ZipInfo] = None
    for entry in entries:
        if entry.is_dir():
            continue
        info.total_uncompressed_size += entry.file_size
        ext = posixpath.splitext(entry.filename)[1].lower()
        if ext not in limits.allowed_extensions:
            record.add_check(
                "Allowed Files (HTML5)",
                CheckStatus.FAIL,
                f"Disallowed file type found: {entry.filename}",
                value=entry.filename,
            )
        if ext in limits.image_extensions and (backup is None or entry.file_size > backup.file_size):
            backup = entry

    if backup is not None:
        info.backup_image_file = backup.filename
        if upload_backup is not None:
            _upload_backup(record, zf, info, upload_backup)

    return info


def extract_archive(
    record: AnalysisRecord,
    content: bytes,
    upload_backup: Optional[BackupUploader] = None,
) -> Optional[Html5Info]:
    try:
        zf = zipfile.ZipFile(io.BytesIO(content))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
        logger.error("Error opening ZIP for %s: %s", record.content_id, e)
        record.add_check("ZIP Processing", CheckStatus.FAIL, "Could not process ZIP file.")
        return None

    with zf:
        try:
            info = _inspect_archive(record, zf, upload_backup)
        except (zipfile.BadZipFile, RuntimeError, OSError, EOFError, zlib.error) as e:
            logger.error("Error processing ZIP for %s: %s", record.content_id, e)
            record.add_check("ZIP Processing", CheckStatus.FAIL, "Could not process ZIP file.")
            return None

    record.html5_info = info
    logger.info(
        "ZIP processed for %s: primary=%s uncompressed=%s backup=%s",
        record.content_id,
        info.primary_html_file,
        info.total_uncompressed_size,
        info.backup_image_file,
    )
    return info
