"""
Tests for endpoint on/off control, the periodic crawl and the stream client.
"""

import asyncio
import json

import httpx
import pytest

from radiocheck.client import stream_verification
from radiocheck.models import Radio, Verification
from radiocheck.services.drive import DriveFile
from radiocheck.services.errors import UpstreamError
from radiocheck.services.progress_stream import StreamClosedError, StreamError
from radiocheck.services.runpod_control import RunPodControl
from radiocheck.worker.main import crawl_once


def graphql_handler(endpoint, mutations):
    def handler(request):
        assert request.url.params["api_key"] == "rp-key"
        body = json.loads(request.content)
        if "saveEndpoint" in body["query"]:
            mutations.append(body["variables"]["input"])
            return httpx.Response(200, json={"data": {"saveEndpoint": {"id": endpoint["id"]}}})
        return httpx.Response(200, json={"data": {"myself": {"endpoints": [{"id": "other"}, endpoint]}}})

    return handler


def make_control(endpoint, mutations):
    return RunPodControl(
        api_key="rp-key",
        endpoint_id="ep-1",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(graphql_handler(endpoint, mutations))),
    )


ENDPOINT_OFF = {
    "id": "ep-1",
    "name": "whisper",
    "gpuIds": "AMPERE_16",
    "templateId": "tpl",
    "workersMin": 0,
    "workersMax": 0,
    "pods": [],
}


def test_get_state_reads_matching_endpoint():
    state = asyncio.run(make_control(dict(ENDPOINT_OFF, pods=[{"desiredStatus": "RUNNING"}]), []).get_state())

    assert state.name == "whisper"
    assert state.active_workers == 1
    assert state.is_on


def test_enable_scales_to_one_worker_keeping_endpoint_fields():
    mutations = []
    state = asyncio.run(make_control(dict(ENDPOINT_OFF), mutations).set_enabled(True))

    (sent,) = mutations
    assert sent["workersMax"] == 1 and sent["workersMin"] == 0
    assert sent["templateId"] == "tpl" and sent["gpuIds"] == "AMPERE_16"
    assert "pods" not in sent
    assert state.is_on


def test_disable_when_already_off_sends_nothing():
    mutations = []
    state = asyncio.run(make_control(dict(ENDPOINT_OFF), mutations).set_enabled(False))

    assert mutations == []
    assert not state.is_on


def test_unknown_endpoint_is_upstream_error():
    with pytest.raises(UpstreamError):
        asyncio.run(make_control(dict(ENDPOINT_OFF, id="gone"), []).get_state())


class TreeDrive:
    def __init__(self, tree):
        self.tree = tree

    async def list_audio_files(self, folder_id):
        return self.tree.get(folder_id, ([], []))[0]

    async def list_folders(self, folder_id):
        return self.tree.get(folder_id, ([], []))[1]


def test_crawl_once_imports_new_files_for_each_radio(db_session):
    db_session.add_all(
        [
            Radio(name="Norte", user_id="u", drive_folder_id="f-norte"),
            Radio(name="Sur", user_id="u", drive_folder_id="f-sur"),
            Radio(name="Sin carpeta", user_id="u"),
        ]
    )
    db_session.commit()
    drive = TreeDrive(
        {
            "f-norte": ([DriveFile(id="n1", name="NORTE_2026-01-30-0644.mp3")], []),
            "f-sur": ([DriveFile(id="s1", name="s1.mp3"), DriveFile(id="s2", name="s2.mp3")], []),
        }
    )

    assert asyncio.run(crawl_once(db_session, drive)) == 3
    assert asyncio.run(crawl_once(db_session, drive)) == 0
    rows = db_session.query(Verification).all()
    assert {r.drive_file_id for r in rows} == {"n1", "s1", "s2"}
    assert all(r.status == "pending" for r in rows)


def ndjson(*frames):
    return b"".join((json.dumps(f) + "\n").encode() for f in frames)


def stream_client(body, chunk_size=7):
    def handler(request):
        assert request.url.path == "/api/verify"
        assert request.headers["Authorization"] == "Bearer tok"
        chunks = [body[i : i + chunk_size] for i in range(0, len(body), chunk_size)]
        return httpx.Response(200, stream=httpx.ByteStream(b"".join(chunks)))

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_stream_client_returns_result_and_reports_progress():
    body = ndjson(
        {"type": "progress", "percentage": 5, "message": "Iniciando..."},
        {"type": "progress", "percentage": 64, "message": "Transcribiendo audio... (68s)"},
        {"type": "result", "data": {"success": True, "verification_ids": [7]}},
    )
    seen = []

    result = asyncio.run(
        stream_verification(
            "http://api.test/", "tok", {"radioId": 1}, on_progress=seen.append, http_client=stream_client(body)
        )
    )

    assert result == {"success": True, "verification_ids": [7]}
    assert [f.percentage for f in seen] == [5, 64]


def test_stream_client_raises_on_error_frame():
    body = ndjson({"type": "error", "error": "Tiempo de espera agotado para la transcripción."})

    with pytest.raises(StreamError, match="Tiempo de espera"):
        asyncio.run(stream_verification("http://api.test", "tok", {}, http_client=stream_client(body)))


def test_stream_client_raises_when_closed_without_result():
    body = ndjson({"type": "progress", "percentage": 5, "message": "x"})

    with pytest.raises(StreamClosedError):
        asyncio.run(stream_verification("http://api.test", "tok", {}, http_client=stream_client(body)))
