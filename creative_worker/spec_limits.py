# creative_worker/spec_limits.py
from dataclasses import dataclass

KB = 1024
MB = 1024 * KB
GB = 1024 * MB


@dataclass(frozen=True)
class DisplayLimits:
    max_size_kb: int
    mime_types: frozenset[str]
    dimensions: frozenset[str]


@dataclass(frozen=True)
class AudioLimits:
    max_size_mb: int
    mime_types: frozenset[str]
    min_bitrate_kbps: int
    max_bitrate_kbps: int
    allowed_durations_sec: tuple[int, ...]
    duration_tolerance_sec: float


@dataclass(frozen=True)
class VideoLimits:
    mime_types: frozenset[str]
    min_duration_sec: float
    max_duration_sec: float
    min_bitrate_kbps: int
    max_bitrate_kbps: int | None = None
    max_size_mb: int | None = None
    max_size_gb: int | None = None
    required_resolution: str | None = None


@dataclass(frozen=True)
class Html5Limits:
    max_file_count: int
    max_uncompressed_mb: int
    allowed_extensions: frozenset[str]
    image_extensions: tuple[str, ...]


DISPLAY = DisplayLimits(
    max_size_kb=150,
    mime_types=frozenset({"image/jpeg", "image/png", "image/gif"}),
    dimensions=frozenset(
        {
            "160x600", "300x250", "728x90", "300x600", "1024x768", "768x1024",
            "336x280", "300x50", "320x50", "1000x90", "1020x250", "120x240",
            "120x60", "120x600", "120x90", "125x125", "125x83", "1280x100",
            "180x150", "180x500", "226x850", "230x230", "230x600", "234x60",
            "240x400", "250x250", "250x360", "300x100", "300x1050", "300x240",
            "300x60", "320x160", "320x240", "320x250", "320x320", "320x480",
            "320x80", "400x400", "440x220", "450x250", "468x400", "468x60",
            "480x250", "480x280", "480x320", "480x80", "519x225", "544x225",
            "550x340", "551x289", "555x111", "555x333", "600x75", "640x480",
            "720x300", "720x480", "750x200", "800x250", "88x31", "930x180",
            "960x325", "960x60", "970x250", "970x66", "970x90", "975x300",
            "980x120", "980x150", "980x240", "980x250", "980x400", "980x90",
            "994x250",
        }
    ),
)

AUDIO = AudioLimits(
    max_size_mb=10,
    mime_types=frozenset({"audio/mpeg", "audio/mp4", "audio/ogg", "audio/wav"}),
    min_bitrate_kbps=128,
    max_bitrate_kbps=1000,
    allowed_durations_sec=(15, 30, 60),
    duration_tolerance_sec=0.5,
)

VIDEO_OLV = VideoLimits(
    max_size_mb=200,
    mime_types=frozenset({"video/mp4", "video/webm", "video/quicktime"}),
    min_duration_sec=5,
    max_duration_sec=300,
    min_bitrate_kbps=500,
    max_bitrate_kbps=3500,
)

VIDEO_CTV = VideoLimits(
    max_size_gb=10,
    mime_types=frozenset({"video/mp4"}),
    min_duration_sec=5,
    max_duration_sec=300,
    min_bitrate_kbps=1200,
    required_resolution="1920x1080",
)

HTML5 = Html5Limits(
    max_file_count=100,
    max_uncompressed_mb=12,
    allowed_extensions=frozenset(
        {".html", ".js", ".css", ".mp4", ".jpg", ".jpeg", ".gif", ".png", ".svg"}
    ),
    image_extensions=(".jpg", ".jpeg", ".png", ".gif"),
)

IMAGE_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
}
