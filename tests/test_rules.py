from __future__ import annotations

import pytest

from creative_worker.dto import AnalysisRecord, Category, CheckStatus, Dimensions, Html5Info
from creative_worker.extractors import MediaMetadata
from creative_worker.rules import evaluate
from creative_worker.spec_limits import GB, KB, MB
from tests.helpers import CONTENT_ID


def record_for(category: Category, mime: str | None, size: int) -> AnalysisRecord:
    return AnalysisRecord(
        content_id=CONTENT_ID,
        display_name="creative",
        category=category,
        mime_type=mime,
        size_bytes=size,
    )


def statuses(record: AnalysisRecord) -> dict:
    return {c.check_name: c.status for c in record.validation_checks}


def check(record: AnalysisRecord, name: str):
    return next(c for c in record.validation_checks if c.check_name == name)


# -----------------------------
# Display
# -----------------------------
def test_display_within_limits():
    record = record_for(Category.DISPLAY, "image/jpeg", 120 * KB)
    evaluate(record, Dimensions(width=300, height=250))

    assert statuses(record) == {
        "File Type (Display)": CheckStatus.PASS,
        "Dimensions (Display)": CheckStatus.PASS,
        "File Size (Display)": CheckStatus.PASS,
    }
    size = check(record, "File Size (Display)")
    assert size.value == "120.0 KB"
    assert size.limit == "150 KB"


def test_display_over_limits():
    record = record_for(Category.DISPLAY, "image/webp", 200 * KB)
    evaluate(record, Dimensions(width=999, height=999))

    assert statuses(record) == {
        "File Type (Display)": CheckStatus.FAIL,
        "Dimensions (Display)": CheckStatus.FAIL,
        "File Size (Display)": CheckStatus.FAIL,
    }
    assert check(record, "Dimensions (Display)").value == "999x999"


def test_display_without_dimensions_skips_dimension_rule():
    record = record_for(Category.DISPLAY, "image/png", 1 * KB)
    evaluate(record, None)
    assert "Dimensions (Display)" not in statuses(record)


# -----------------------------
# Audio
# -----------------------------
@pytest.mark.parametrize(
    "duration,expected",
    [(30.2, CheckStatus.PASS), (14.6, CheckStatus.PASS), (60.5, CheckStatus.FAIL), (45.0, CheckStatus.FAIL)],
)
def test_audio_duration_tolerance(duration, expected):
    record = record_for(Category.AUDIO, "audio/mpeg", 5 * MB)
    evaluate(record, MediaMetadata(duration=duration, bitrate_kbps=256))
    assert statuses(record)["Duration (Audio)"] is expected


def test_audio_within_limits_echoes_values():
    record = record_for(Category.AUDIO, "audio/mpeg", 5 * MB)
    evaluate(record, MediaMetadata(duration=30.2, bitrate_kbps=256))

    assert statuses(record) == {
        "File Type (Audio)": CheckStatus.PASS,
        "Dimensions (Audio)": CheckStatus.NOT_APPLICABLE,
        "File Size (Audio)": CheckStatus.PASS,
        "Duration (Audio)": CheckStatus.PASS,
        "Bitrate (Audio)": CheckStatus.PASS,
    }
    bitrate = check(record, "Bitrate (Audio)")
    assert (bitrate.value, bitrate.limit) == ("256 kbps", "128-1000 kbps")
    duration = check(record, "Duration (Audio)")
    assert (duration.value, duration.limit) == ("30.2s", "15, 30, 60 sec")


def test_audio_missing_fields_warn():
    record = record_for(Category.AUDIO, "audio/ogg", 1 * MB)
    evaluate(record, MediaMetadata())
    assert statuses(record)["Duration (Audio)"] is CheckStatus.WARN
    assert statuses(record)["Bitrate (Audio)"] is CheckStatus.WARN


def test_audio_without_probe_data_fails():
    record = record_for(Category.AUDIO, "audio/wav", 1 * MB)
    evaluate(record, None)
    assert statuses(record)["Duration (Audio)"] is CheckStatus.FAIL
    assert statuses(record)["Bitrate (Audio)"] is CheckStatus.FAIL


# -----------------------------
# Video
# -----------------------------
def test_olv_duration_too_long():
    record = record_for(Category.VIDEO_OLV, "video/mp4", 50 * MB)
    evaluate(record, MediaMetadata(duration=400.0, bitrate_kbps=2000, width=1280, height=720))

    result = statuses(record)
    assert result["Duration (Video OLV)"] is CheckStatus.FAIL
    assert result["Bitrate (Video OLV)"] is CheckStatus.PASS
    assert result["Resolution (Video OLV)"] is CheckStatus.PASS
    assert check(record, "Duration (Video OLV)").limit == "5-300 sec"


def test_olv_bitrate_outside_range():
    record = record_for(Category.VIDEO_OLV, "video/webm", 50 * MB)
    evaluate(record, MediaMetadata(duration=30.0, bitrate_kbps=4000))
    assert statuses(record)["Bitrate (Video OLV)"] is CheckStatus.FAIL
    assert statuses(record)["Resolution (Video OLV)"] is CheckStatus.WARN


def test_ctv_rules():
    record = record_for(Category.VIDEO_CTV, "video/mp4", 2 * GB)
    evaluate(record, MediaMetadata(duration=30.0, bitrate_kbps=1000, width=1280, height=720))

    result = statuses(record)
    assert result["File Type (Video CTV)"] is CheckStatus.PASS
    assert result["File Size (Video CTV)"] is CheckStatus.PASS
    assert result["Bitrate (Video CTV)"] is CheckStatus.FAIL
    assert result["Resolution (Video CTV)"] is CheckStatus.FAIL
    assert check(record, "Bitrate (Video CTV)").limit == "Min 1200 kbps"
    assert check(record, "Resolution (Video CTV)").limit == "1920x1080"
    assert check(record, "File Size (Video CTV)").value == "2.0 GB"


def test_ctv_rejects_quicktime():
    record = record_for(Category.VIDEO_CTV, "video/quicktime", 1 * MB)
    evaluate(record, MediaMetadata(duration=30.0, bitrate_kbps=5000, width=1920, height=1080))
    assert statuses(record)["File Type (Video CTV)"] is CheckStatus.FAIL
    assert statuses(record)["Resolution (Video CTV)"] is CheckStatus.PASS


def test_video_without_probe_data():
    record = record_for(Category.VIDEO_OLV, "video/mp4", 1 * MB)
    evaluate(record, None)
    assert statuses(record)["Metadata (Video OLV)"] is CheckStatus.FAIL
    assert "Duration (Video OLV)" not in statuses(record)


# -----------------------------
# HTML5 / unknown
# -----------------------------
def test_html5_limits():
    record = record_for(Category.HTML5, "application/zip", 1 * MB)
    evaluate(record, Html5Info(file_count=101, total_uncompressed_size=12 * MB + 1))

    result = statuses(record)
    assert result["File Count (HTML5)"] is CheckStatus.FAIL
    assert result["Uncompressed Size (HTML5)"] is CheckStatus.FAIL
    assert result["Backup Image (HTML5)"] is CheckStatus.WARN
    assert check(record, "File Count (HTML5)").limit == 100


def test_html5_unopenable_archive_adds_nothing():
    record = record_for(Category.HTML5, "application/zip", 10)
    evaluate(record, None)
    assert record.validation_checks == []


def test_unknown_category():
    record = record_for(Category.UNKNOWN, "application/pdf", 10)
    evaluate(record, None)
    assert statuses(record) == {
        "File Type (Unknown)": CheckStatus.WARN,
        "Dimensions (Unknown)": CheckStatus.NOT_APPLICABLE,
        "File Size (Unknown)": CheckStatus.NOT_APPLICABLE,
    }


@pytest.mark.parametrize("category", list(Category))
def test_every_category_produces_checks(category):
    meta = {
        Category.DISPLAY: Dimensions(width=300, height=250),
        Category.HTML5: Html5Info(file_count=1),
    }.get(category, MediaMetadata())
    record = record_for(category, None, 0)
    evaluate(record, None if category is Category.UNKNOWN else meta)
    assert record.validation_checks


# -----------------------------
# Limits are inclusive
# -----------------------------
def test_display_exactly_at_size_limit():
    record = record_for(Category.DISPLAY, "image/png", 150 * KB)
    evaluate(record, Dimensions(width=300, height=250))
    assert statuses(record)["File Size (Display)"] is CheckStatus.PASS
    assert check(record, "File Size (Display)").value == "150.0 KB"


def test_display_one_byte_over_size_limit():
    record = record_for(Category.DISPLAY, "image/png", 150 * KB + 1)
    evaluate(record, Dimensions(width=300, height=250))
    assert statuses(record)["File Size (Display)"] is CheckStatus.FAIL


def test_html5_exactly_at_limits():
    record = record_for(Category.HTML5, "application/zip", 1 * MB)
    info = Html5Info(file_count=100, total_uncompressed_size=12 * MB, backup_image_file="b.jpg")
    evaluate(record, info)

    assert statuses(record) == {
        "File Count (HTML5)": CheckStatus.PASS,
        "Uncompressed Size (HTML5)": CheckStatus.PASS,
        "Backup Image (HTML5)": CheckStatus.PASS,
    }


def test_audio_exactly_at_limits():
    record = record_for(Category.AUDIO, "audio/mpeg", 10 * MB)
    evaluate(record, MediaMetadata(duration=60.0, bitrate_kbps=1000))
    result = statuses(record)
    assert result["File Size (Audio)"] is CheckStatus.PASS
    assert result["Bitrate (Audio)"] is CheckStatus.PASS


@pytest.mark.parametrize("duration,bitrate", [(5.0, 500), (300.0, 3500)])
def test_olv_range_bounds_pass(duration, bitrate):
    record = record_for(Category.VIDEO_OLV, "video/mp4", 200 * MB)
    evaluate(record, MediaMetadata(duration=duration, bitrate_kbps=bitrate, width=640, height=360))
    assert record.has_failures is False
