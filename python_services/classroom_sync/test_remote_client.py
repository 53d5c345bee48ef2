"""Tests for the remote store client."""

import httpx
import pytest

from classroom_sync.errors import RemoteStoreError
from classroom_sync.remote_client import RemoteStoreClient


async def test_save_then_fetch_lesson(remote, remote_store):
    lesson = {"id": "L1", "title": "T", "accessCode": "ABC"}
    body = await remote.save_lesson(lesson)
    assert body["success"] is True
    assert await remote.get_lesson("L1") == lesson
    assert await remote.get_lesson_by_code("abc") == lesson
    assert await remote.list_lessons() == [lesson]
    assert remote_store.calls[0] == ("POST", "/lessons/save")


async def test_not_found_is_flagged(remote):
    with pytest.raises(RemoteStoreError) as excinfo:
        await remote.get_session("student_missing")
    assert excinfo.value.status_code == 404
    assert excinfo.value.is_not_found


async def test_server_error_is_not_not_found(remote, remote_store):
    remote_store.fail_status = 503
    with pytest.raises(RemoteStoreError) as excinfo:
        await remote.list_lessons()
    assert excinfo.value.status_code == 503
    assert not excinfo.value.is_not_found


async def test_transport_error_becomes_remote_error(remote, remote_store):
    remote_store.offline = True
    with pytest.raises(RemoteStoreError) as excinfo:
        await remote.list_active_sessions("L1")
    assert excinfo.value.status_code is None


async def test_envelope_without_payload_key_is_a_failure():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"items": []}))
    client = RemoteStoreClient("http://store.test/", transport=transport)
    with pytest.raises(RemoteStoreError):
        await client.list_lessons()


async def test_non_json_body_is_a_failure():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
    client = RemoteStoreClient("http://store.test", transport=transport)
    with pytest.raises(RemoteStoreError):
        await client.get_lesson("L1")


async def test_ids_are_path_escaped():
    seen = []

    def handler(request):
        seen.append(request.url.raw_path)
        return httpx.Response(200, json={"success": True})

    client = RemoteStoreClient("http://store.test", transport=httpx.MockTransport(handler))
    await client.delete_session("a/b")
    assert seen == [b"/sessions/a%2Fb"]
