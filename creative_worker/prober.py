# creative_worker/prober.py
import json
import logging
import os
import subprocess
import tempfile
from typing import Any, Dict, Protocol

from creative_worker.errors import ProbeError

logger = logging.getLogger(__name__)


class MediaProber(Protocol):
    def probe(self, content: bytes, suffix: str = "") -> Dict[str, Any]: ...


class FfprobeProber:
    """
    Runs ffprobe against a temporary copy of the buffer and returns its JSON
    report ({"format": {...}, "streams": [...]}).
    """

    def __init__(self, ffprobe_path: str = "ffprobe", timeout_seconds: float = 120.0):
        self.ffprobe_path = ffprobe_path
        self.timeout_seconds = timeout_seconds

    def _command(self, path: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_format",
            "-show_streams",
            path,
        ]

    def probe(self, content: bytes, suffix: str = "") -> Dict[str, Any]:
        fd, path = tempfile.mkstemp(prefix="creative-", suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)

            try:
                proc = subprocess.run(
                    self._command(path),
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_seconds,
                    check=False,
                )
            except FileNotFoundError as e:
                raise ProbeError(f"ffprobe not found at {self.ffprobe_path!r}") from e
            except subprocess.TimeoutExpired as e:
                raise ProbeError(f"ffprobe timed out after {self.timeout_seconds}s") from e

            if proc.returncode != 0:
                raise ProbeError(
                    f"ffprobe exited with {proc.returncode}: {(proc.stderr or '').strip()[-500:]}"
                )
            try:
                report = json.loads(proc.stdout or "")
            except json.JSONDecodeError as e:
                raise ProbeError("ffprobe produced unparsable output") from e
            if not isinstance(report, dict):
                raise ProbeError("ffprobe produced an unexpected report")
            return report
        finally:
            try:
                os.unlink(path)
            except OSError:
                logger.warning("Could not delete temporary file %s", path)
