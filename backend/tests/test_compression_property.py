"""
Property-based tests for the adaptive compressor.

Property: small buffers pass through untouched, the bitrate ladder stops at
the first encode that fits, and a ladder that never fits ends in a
CapacityError. Temporary files never outlive an attempt.
"""

from pathlib import Path
from unittest.mock import patch

import pytest
from hypothesis import given, strategies as st, settings

from radiocheck.services import compression
from radiocheck.services.compression import optimize_audio
from radiocheck.services.errors import CapacityError

LADDER = ["48k", "32k", "24k", "16k"]


@settings(max_examples=100)
@given(data=st.binary(min_size=0, max_size=2048))
def test_buffers_under_passthrough_are_returned_unmodified(data):
    with patch("radiocheck.services.compression.compress_audio") as mock_compress:
        result = optimize_audio(data, "a.mp3", max_bytes=4096, passthrough_bytes=2048, bitrates=LADDER)

    mock_compress.assert_not_called()
    assert result is data


@settings(max_examples=50)
@given(oversize=st.integers(min_value=1, max_value=5000))
def test_never_fitting_ladder_raises_capacity_error(oversize):
    calls = []

    def fake_compress(data, filename, bitrate):
        calls.append(bitrate)
        return b"x" * (1000 + oversize)

    with patch("radiocheck.services.compression.compress_audio", side_effect=fake_compress):
        with pytest.raises(CapacityError):
            optimize_audio(b"y" * 5000, "a.wav", max_bytes=1000, passthrough_bytes=10, bitrates=LADDER)

    assert calls == LADDER


def test_ladder_stops_at_first_fitting_bitrate():
    sizes = {"48k": 3000, "32k": 900, "24k": 500, "16k": 100}
    attempts = []

    def fake_compress(data, filename, bitrate):
        return b"z" * sizes[bitrate]

    with patch("radiocheck.services.compression.compress_audio", side_effect=fake_compress):
        result = optimize_audio(
            b"y" * 5000,
            "a.wav",
            max_bytes=1000,
            passthrough_bytes=10,
            bitrates=LADDER,
            on_attempt=attempts.append,
        )

    assert len(result) == 900
    assert attempts == ["48k", "32k"]


def test_failed_encode_moves_to_next_bitrate():
    outputs = {"48k": None, "32k": b"ok"}

    with patch("radiocheck.services.compression.compress_audio", side_effect=lambda d, f, b: outputs[b]):
        result = optimize_audio(b"y" * 5000, "a.wav", max_bytes=1000, passthrough_bytes=10, bitrates=["48k", "32k"])

    assert result == b"ok"


def _fake_ffmpeg(seen_dirs, succeed=True):
    def run(cmd):
        source, target = Path(cmd[cmd.index("-i") + 1]), Path(cmd[-1])
        seen_dirs.append(source.parent)
        assert source.exists()
        assert "-ac" in cmd and cmd[cmd.index("-ac") + 1] == "1"
        assert cmd[cmd.index("-ar") + 1] == "16000"
        if not succeed:
            return 1, "", "boom"
        target.write_bytes(b"encoded-" + cmd[cmd.index("-b:a") + 1].encode())
        return 0, "", ""

    return run


def test_compress_audio_cleans_up_on_success():
    seen_dirs = []
    with patch.object(compression.utils, "run_cmd", side_effect=_fake_ffmpeg(seen_dirs)):
        result = compression.compress_audio(b"raw", "show.aac", "24k")

    assert result == b"encoded-24k"
    assert seen_dirs and not seen_dirs[0].exists()


def test_compress_audio_cleans_up_on_failure():
    seen_dirs = []
    with patch.object(compression.utils, "run_cmd", side_effect=_fake_ffmpeg(seen_dirs, succeed=False)):
        result = compression.compress_audio(b"raw", "show.aac", "24k")

    assert result is None
    assert seen_dirs and not seen_dirs[0].exists()


def test_compress_audio_cleans_up_when_ffmpeg_raises():
    seen_dirs = []

    def explode(cmd):
        seen_dirs.append(Path(cmd[cmd.index("-i") + 1]).parent)
        raise FileNotFoundError("ffmpeg")

    with patch.object(compression.utils, "run_cmd", side_effect=explode):
        with pytest.raises(FileNotFoundError):
            compression.compress_audio(b"raw", "show.aac", "24k")

    assert seen_dirs and not seen_dirs[0].exists()
