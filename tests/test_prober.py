from __future__ import annotations

import json
import os
import subprocess
import tempfile

import pytest

from creative_worker import prober as prober_module
from creative_worker.errors import ProbeError
from creative_worker.prober import FfprobeProber

REPORT = {"format": {"duration": "30.0", "bit_rate": "256000"}, "streams": []}


@pytest.fixture
def temp_paths(monkeypatch):
    """Records every temporary file the prober creates."""
    paths = []
    real_mkstemp = tempfile.mkstemp

    def recording_mkstemp(*args, **kwargs):
        fd, path = real_mkstemp(*args, **kwargs)
        paths.append(path)
        return fd, path

    monkeypatch.setattr(prober_module.tempfile, "mkstemp", recording_mkstemp)
    return paths


def fake_run(monkeypatch, returncode=0, stdout="", stderr="", raises=None, seen=None):
    def run(cmd, **kwargs):
        if seen is not None:
            path = cmd[-1]
            with open(path, "rb") as fh:
                seen.append((cmd, path, fh.read(), kwargs))
        if raises is not None:
            raise raises
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    monkeypatch.setattr(prober_module.subprocess, "run", run)


def test_probe_returns_report(monkeypatch, temp_paths):
    seen = []
    fake_run(monkeypatch, stdout=json.dumps(REPORT), seen=seen)

    report = FfprobeProber("ffprobe", timeout_seconds=5).probe(b"ID3 bytes", ".mp3")

    assert report == REPORT
    ((cmd, path, content, kwargs),) = seen
    assert cmd[:-1] == [
        "ffprobe", "-v", "quiet", "-print_format", "json", "-show_format", "-show_streams",
    ]
    assert path.endswith(".mp3")
    assert content == b"ID3 bytes"
    assert kwargs["timeout"] == 5
    assert not os.path.exists(temp_paths[0])


def test_missing_binary(temp_paths):
    with pytest.raises(ProbeError, match="not found"):
        FfprobeProber("/nonexistent/bin/ffprobe").probe(b"data", ".mp4")
    assert not os.path.exists(temp_paths[0])


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"returncode": 1, "stderr": "moov atom not found"}, "moov atom not found"),
        ({"raises": subprocess.TimeoutExpired("ffprobe", 5)}, "timed out"),
        ({"stdout": "not json"}, "unparsable"),
        ({"stdout": "[]"}, "unexpected"),
    ],
)
def test_probe_failures(monkeypatch, temp_paths, kwargs, message):
    fake_run(monkeypatch, **kwargs)

    with pytest.raises(ProbeError, match=message):
        FfprobeProber().probe(b"data", ".mp4")
    assert len(temp_paths) == 1
    assert not os.path.exists(temp_paths[0])
