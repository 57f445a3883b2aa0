"""
Property-based tests for the transcription orchestrator.

Property: polling ends in exactly one of completed / failed / timed out, is
bounded by the attempt ceiling whatever the endpoint answers, and the
transcript is normalized to segment JSON when segments are present.
"""

import asyncio
import base64
import json

import httpx
import pytest
from hypothesis import given, strategies as st, settings

from radiocheck.services.errors import TranscriptionFailedError, TranscriptionTimeoutError
from radiocheck.services.transcription import (
    DECODE_CONFIG,
    RunPodClient,
    TranscriptionResult,
    transcribe_audio,
)


async def no_sleep(_seconds):
    return None


class ScriptedRunPod:
    """Answers status polls from a fixed script; repeats the last answer."""

    endpoint_id = "endpoint-test"

    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.polls = 0
        self.submitted = []

    async def submit(self, audio_b64, config=None):
        self.submitted.append(audio_b64)
        return "job-1"

    async def status(self, job_id):
        self.polls += 1
        index = min(self.polls - 1, len(self.statuses) - 1)
        return self.statuses[index]


status_strategy = st.one_of(
    st.none(),
    st.sampled_from([{"status": "IN_QUEUE"}, {"status": "IN_PROGRESS"}]),
)


@settings(max_examples=100)
@given(pending=st.lists(status_strategy, max_size=30), ceiling=st.integers(min_value=1, max_value=40))
def test_polling_is_bounded_by_ceiling(pending, ceiling):
    completed = {"status": "COMPLETED", "output": {"text": "hola"}, "executionTime": 2500}
    client = ScriptedRunPod(pending + [completed])

    if len(pending) < ceiling:
        result = asyncio.run(transcribe_audio(client, "QUJD", max_attempts=ceiling, sleep=no_sleep))
        assert result.text == "hola"
        assert result.processing_seconds == 2.5
        assert client.polls == len(pending) + 1
    else:
        with pytest.raises(TranscriptionTimeoutError):
            asyncio.run(transcribe_audio(client, "QUJD", max_attempts=ceiling, sleep=no_sleep))
        assert client.polls == ceiling


def test_never_terminal_job_times_out():
    client = ScriptedRunPod([{"status": "IN_PROGRESS"}])

    with pytest.raises(TranscriptionTimeoutError) as exc_info:
        asyncio.run(transcribe_audio(client, "QUJD", max_attempts=25, sleep=no_sleep))

    assert client.polls == 25
    assert "Tiempo de espera" in str(exc_info.value)


def test_failed_job_carries_service_error():
    client = ScriptedRunPod([{"status": "IN_PROGRESS"}, {"status": "FAILED", "error": {"message": "CUDA OOM"}}])

    with pytest.raises(TranscriptionFailedError) as exc_info:
        asyncio.run(transcribe_audio(client, "QUJD", max_attempts=10, sleep=no_sleep))

    assert exc_info.value.payload == {"message": "CUDA OOM"}
    assert "CUDA OOM" in str(exc_info.value)


def test_on_poll_receives_attempt_numbers():
    seen = []

    async def on_poll(attempt, ceiling):
        seen.append((attempt, ceiling))

    client = ScriptedRunPod([{"status": "IN_QUEUE"}, {"status": "IN_QUEUE"}, {"status": "COMPLETED", "output": {}}])
    asyncio.run(transcribe_audio(client, "QUJD", on_poll=on_poll, max_attempts=9, sleep=no_sleep))

    assert seen == [(1, 9), (2, 9), (3, 9)]


segment_strategy = st.fixed_dictionaries(
    {
        "start": st.floats(min_value=0, max_value=3600, allow_nan=False),
        "end": st.floats(min_value=0, max_value=3600, allow_nan=False),
        "text": st.text(max_size=40),
        "words": st.just([]),
    }
)


@settings(max_examples=100)
@given(segments=st.lists(segment_strategy, min_size=1, max_size=10), nested=st.booleans())
def test_segments_are_normalized_to_start_end_text(segments, nested):
    output = {"output": {"segments": segments}} if nested else {"segments": segments, "text": "ignored"}

    result = TranscriptionResult.from_output(output)

    decoded = json.loads(result.full_transcription)
    assert decoded == json.loads(result.context)
    assert len(decoded) == len(segments)
    for original, normalized in zip(segments, decoded):
        assert set(normalized) == {"start", "end", "text"}
        assert normalized["start"] == original["start"]
        assert normalized["text"] == original["text"].strip()
    assert "\n" in result.context


def test_flat_text_is_used_verbatim():
    assert TranscriptionResult.from_output({"transcription": "texto plano"}).context == "texto plano"
    assert TranscriptionResult.from_output({"output": {"text": "anidado"}}).full_transcription == "anidado"


def test_unknown_output_falls_back_to_raw_json():
    result = TranscriptionResult.from_output({"detected_language": "es"})
    assert json.loads(result.context) == {"detected_language": "es"}


def test_runpod_client_submits_decode_config_and_polls_status():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/run"):
            return httpx.Response(200, json={"id": "job-9", "status": "IN_QUEUE"})
        if request.url.path.endswith("/status/job-9"):
            return httpx.Response(200, json={"status": "COMPLETED", "output": {"text": "ok"}})
        return httpx.Response(404)

    async def run():
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = RunPodClient(api_key="key", endpoint_id="ep", base_url="https://rp.test/v2", http_client=http)
        try:
            return await transcribe_audio(client, base64.b64encode(b"audio").decode(), sleep=no_sleep)
        finally:
            await client.aclose()

    result = asyncio.run(run())

    assert result.text == "ok"
    submit = json.loads(requests[0].content)
    assert requests[0].url.path == "/v2/ep/run"
    assert requests[0].headers["Authorization"] == "Bearer key"
    assert submit["input"]["audio_base64"] == base64.b64encode(b"audio").decode()
    for key in ("temperature", "beam_size", "best_of", "word_timestamps", "initial_prompt"):
        assert submit["input"][key] == DECODE_CONFIG[key]


def test_runpod_status_errors_count_as_attempts():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/run"):
            return httpx.Response(200, json={"id": "job-1"})
        return httpx.Response(503)

    async def run():
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = RunPodClient(api_key="key", endpoint_id="ep", base_url="https://rp.test/v2", http_client=http)
        try:
            await transcribe_audio(client, "QUJD", max_attempts=3, sleep=no_sleep)
        finally:
            await client.aclose()

    with pytest.raises(TranscriptionTimeoutError):
        asyncio.run(run())


def test_runpod_submit_rejection_is_upstream_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized")

    async def run():
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = RunPodClient(api_key="bad", endpoint_id="ep", http_client=http)
        try:
            await client.submit("QUJD")
        finally:
            await client.aclose()

    with pytest.raises(TranscriptionFailedError):
        asyncio.run(run())


def test_non_json_status_body_is_a_failed_poll():
    answers = iter(
        [
            httpx.Response(200, text="<html>gateway</html>"),
            httpx.Response(200, json={"status": "COMPLETED", "output": {"text": "hola"}}),
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/run"):
            return httpx.Response(200, json={"id": "job-1"})
        return next(answers)

    async def run():
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = RunPodClient(api_key="key", endpoint_id="ep", base_url="https://rp.test/v2", http_client=http)
        try:
            return await transcribe_audio(client, "QUJD", max_attempts=3, sleep=no_sleep)
        finally:
            await client.aclose()

    assert asyncio.run(run()).full_transcription == "hola"
