# creative_worker/rules.py
import logging
from typing import Optional, Union, assert_never

from creative_worker import spec_limits
from creative_worker.dto import AnalysisRecord, Category, CheckStatus, Dimensions, Html5Info
from creative_worker.extractors import MediaMetadata
from creative_worker.spec_limits import GB, KB, MB, VideoLimits

logger = logging.getLogger(__name__)

Extracted = Union[Dimensions, MediaMetadata, Html5Info, None]

LABELS = {
    Category.DISPLAY: "Display",
    Category.AUDIO: "Audio",
    Category.VIDEO_OLV: "Video OLV",
    Category.VIDEO_CTV: "Video CTV",
    Category.HTML5: "HTML5",
    Category.UNKNOWN: "Unknown",
}


def _check_mime(record: AnalysisRecord, label: str, allowed: frozenset[str]) -> None:
    mime = record.mime_type
    if mime and mime in allowed:
        record.add_check(
            f"File Type ({label})", CheckStatus.PASS, f"Type {mime} is supported.", value=mime
        )
    else:
        record.add_check(
            f"File Type ({label})",
            CheckStatus.FAIL,
            f"Type {mime or 'unknown'} is not supported for {label}.",
            value=mime,
        )


def _check_size(record: AnalysisRecord, label: str, limit: int, unit: str) -> None:
    unit_bytes = {"KB": KB, "MB": MB, "GB": GB}[unit]
    measured = f"{record.size_bytes / unit_bytes:.1f} {unit}"
    limit_text = f"{limit} {unit}"
    if record.size_bytes > limit * unit_bytes:
        msg = f"File size ({measured}) exceeds limit ({limit_text})."
        logger.warning("%s: %s", record.content_id, msg)
        record.add_check(
            f"File Size ({label})", CheckStatus.FAIL, msg, value=measured, limit=limit_text
        )
    else:
        record.add_check(
            f"File Size ({label})",
            CheckStatus.PASS,
            f"File size ({measured}) is within limit ({limit_text}).",
            value=measured,
            limit=limit_text,
        )


def _check_range(
    record: AnalysisRecord,
    name: str,
    measured: Optional[float],
    minimum: float,
    maximum: Optional[float],
    unit: str,
    what: str,
) -> None:
    if measured is None:
        record.add_check(name, CheckStatus.WARN, f"Could not determine {what}.")
        return

    shown = f"{measured:.1f}{unit}" if isinstance(measured, float) else f"{measured} {unit}"
    limit_unit = "sec" if unit == "s" else unit
    if maximum is None:
        limit = f"Min {minimum:g} {limit_unit}"
    else:
        limit = f"{minimum:g}-{maximum:g} {limit_unit}"

    if measured >= minimum and (maximum is None or measured <= maximum):
        record.add_check(
            name, CheckStatus.PASS, f"{what.capitalize()} {shown} is within range.",
            value=shown, limit=limit,
        )
    else:
        record.add_check(
            name, CheckStatus.FAIL, f"{what.capitalize()} {shown} is outside allowed range.",
            value=shown, limit=limit,
        )


# ------------------------
# Per-category rules
# ------------------------


def validate_display(record: AnalysisRecord, dimensions: Optional[Dimensions]) -> None:
    limits = spec_limits.DISPLAY
    _check_mime(record, "Display", limits.mime_types)

    # unreadable headers were already reported by the extractor
    if dimensions is not None:
        dim = str(dimensions)
        if dim in limits.dimensions:
            record.add_check(
                "Dimensions (Display)",
                CheckStatus.PASS,
                f"Dimensions {dim} are supported.",
                value=dim,
                limit="See supported list",
            )
        else:
            record.add_check(
                "Dimensions (Display)",
                CheckStatus.FAIL,
                f"Dimensions {dim} are NOT supported for Display.",
                value=dim,
                limit="See supported list",
            )

    _check_size(record, "Display", limits.max_size_kb, "KB")


def validate_audio(record: AnalysisRecord, meta: Optional[MediaMetadata]) -> None:
    limits = spec_limits.AUDIO
    _check_mime(record, "Audio", limits.mime_types)
    record.add_check(
        "Dimensions (Audio)",
        CheckStatus.NOT_APPLICABLE,
        "Dimension check does not apply to audio.",
    )
    _check_size(record, "Audio", limits.max_size_mb, "MB")

    if meta is None:
        msg = "Could not read audio metadata (duration/bitrate)."
        record.add_check("Duration (Audio)", CheckStatus.FAIL, msg)
        record.add_check("Bitrate (Audio)", CheckStatus.FAIL, msg)
        return

    allowed = ", ".join(str(d) for d in limits.allowed_durations_sec)
    if meta.duration is None:
        record.add_check("Duration (Audio)", CheckStatus.WARN, "Could not determine duration.")
    elif any(
        abs(meta.duration - d) < limits.duration_tolerance_sec
        for d in limits.allowed_durations_sec
    ):
        record.add_check(
            "Duration (Audio)",
            CheckStatus.PASS,
            f"Duration {meta.duration:.1f}s is allowed.",
            value=f"{meta.duration:.1f}s",
            limit=f"{allowed} sec",
        )
    else:
        record.add_check(
            "Duration (Audio)",
            CheckStatus.FAIL,
            f"Duration {meta.duration:.1f}s is not one of the allowed durations.",
            value=f"{meta.duration:.1f}s",
            limit=f"{allowed} sec",
        )

    _check_range(
        record, "Bitrate (Audio)", meta.bitrate_kbps,
        limits.min_bitrate_kbps, limits.max_bitrate_kbps, "kbps", "bitrate",
    )


def _validate_video(
    record: AnalysisRecord,
    meta: Optional[MediaMetadata],
    label: str,
    limits: VideoLimits,
) -> None:
    _check_mime(record, label, limits.mime_types)
    if limits.max_size_gb is not None:
        _check_size(record, label, limits.max_size_gb, "GB")
    else:
        _check_size(record, label, limits.max_size_mb, "MB")

    if meta is None:
        record.add_check(
            f"Metadata ({label})",
            CheckStatus.FAIL,
            "Could not read video metadata (duration/bitrate/resolution).",
        )
        return

    _check_range(
        record, f"Duration ({label})", meta.duration,
        limits.min_duration_sec, limits.max_duration_sec, "s", "duration",
    )
    _check_range(
        record, f"Bitrate ({label})", meta.bitrate_kbps,
        limits.min_bitrate_kbps, limits.max_bitrate_kbps, "kbps", "bitrate",
    )

    name = f"Resolution ({label})"
    resolution = meta.resolution
    required = limits.required_resolution
    if resolution is None:
        record.add_check(name, CheckStatus.WARN, "Could not determine resolution.")
    elif required is None:
        record.add_check(name, CheckStatus.PASS, f"Resolution is {resolution}.", value=resolution)
    elif resolution == required:
        record.add_check(
            name, CheckStatus.PASS,
            f"Resolution {resolution} matches required {required}.",
            value=resolution, limit=required,
        )
    else:
        record.add_check(
            name, CheckStatus.FAIL,
            f"Resolution {resolution} does not match required {required}.",
            value=resolution, limit=required,
        )


def validate_html5(record: AnalysisRecord, info: Optional[Html5Info]) -> None:
    # an unopenable archive was reported as "ZIP Processing"; nothing to measure
    if info is None:
        return
    limits = spec_limits.HTML5

    if info.file_count > limits.max_file_count:
        record.add_check(
            "File Count (HTML5)",
            CheckStatus.FAIL,
            f"Exceeds limit of {limits.max_file_count} files.",
            value=info.file_count,
            limit=limits.max_file_count,
        )
    else:
        record.add_check(
            "File Count (HTML5)",
            CheckStatus.PASS,
            f"Contains {info.file_count} files.",
            value=info.file_count,
            limit=limits.max_file_count,
        )

    measured = f"{info.total_uncompressed_size / MB:.1f} MB"
    limit = f"{limits.max_uncompressed_mb} MB"
    if info.total_uncompressed_size > limits.max_uncompressed_mb * MB:
        record.add_check(
            "Uncompressed Size (HTML5)",
            CheckStatus.FAIL,
            f"Total uncompressed size ({measured}) exceeds limit.",
            value=measured,
            limit=limit,
        )
    else:
        record.add_check(
            "Uncompressed Size (HTML5)",
            CheckStatus.PASS,
            f"Total uncompressed size ({measured}) is within limit.",
            value=measured,
            limit=limit,
        )

    if info.backup_image_file:
        record.add_check(
            "Backup Image (HTML5)",
            CheckStatus.PASS,
            f"Potential backup image identified: {info.backup_image_file}",
            value=info.backup_image_file,
        )
    else:
        record.add_check(
            "Backup Image (HTML5)",
            CheckStatus.WARN,
            "No image file found in ZIP to identify as backup.",
        )


def validate_unknown(record: AnalysisRecord) -> None:
    record.add_check(
        "File Type (Unknown)",
        CheckStatus.WARN,
        f"No validation rules defined for type {record.mime_type or 'unknown'}.",
    )
    record.add_check("Dimensions (Unknown)", CheckStatus.NOT_APPLICABLE, "Checks not applicable.")
    record.add_check("File Size (Unknown)", CheckStatus.NOT_APPLICABLE, "Checks not applicable.")


def evaluate(record: AnalysisRecord, extracted: Extracted) -> None:
    """Append the category's checks for the extracted metadata to the record."""
    category = record.category
    logger.info("Running validations for category %s", category.value)
    match category:
        case Category.DISPLAY:
            validate_display(record, extracted)
        case Category.AUDIO:
            validate_audio(record, extracted)
        case Category.VIDEO_OLV:
            _validate_video(record, extracted, LABELS[category], spec_limits.VIDEO_OLV)
        case Category.VIDEO_CTV:
            _validate_video(record, extracted, LABELS[category], spec_limits.VIDEO_CTV)
        case Category.HTML5:
            validate_html5(record, extracted)
        case Category.UNKNOWN:
            validate_unknown(record)
        case _:
            assert_never(category)
