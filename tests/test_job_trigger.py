"""Tests for the fire-and-forget job trigger (HTTP mocked with pytest-httpx)."""

import json
import logging
import uuid

import httpx
import pytest

from painpoint.services.job_trigger import JobTrigger

WORKER_URL = "http://worker.test/analyze"


class TestJobTrigger:
    @pytest.mark.asyncio
    async def test_posts_search_id(self, httpx_mock):
        httpx_mock.add_response(url=WORKER_URL, method="POST", status_code=202)
        trigger = JobTrigger(WORKER_URL, token="secret")
        search_id = str(uuid.uuid4())

        assert trigger.trigger(search_id) is True
        await trigger.aclose()

        request = httpx_mock.get_request()
        assert json.loads(request.content) == {"searchId": search_id}
        assert request.headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_token(self, httpx_mock):
        httpx_mock.add_response(url=WORKER_URL, method="POST", status_code=200)
        trigger = JobTrigger(WORKER_URL)

        assert await trigger._send(str(uuid.uuid4())) is True
        assert "Authorization" not in httpx_mock.get_request().headers
        await trigger.aclose()

    @pytest.mark.asyncio
    async def test_worker_error_status(self, httpx_mock):
        httpx_mock.add_response(url=WORKER_URL, method="POST", status_code=500)
        trigger = JobTrigger(WORKER_URL)

        assert await trigger._send(str(uuid.uuid4())) is False
        await trigger.aclose()

    @pytest.mark.asyncio
    async def test_timeout_is_logged_not_raised(self, httpx_mock):
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))
        trigger = JobTrigger(WORKER_URL, timeout=0.1)

        assert trigger.trigger(str(uuid.uuid4())) is True
        await trigger.drain()
        assert await trigger._send(str(uuid.uuid4())) is False
        await trigger.aclose()

    @pytest.mark.asyncio
    async def test_connection_error(self, httpx_mock):
        httpx_mock.add_exception(httpx.ConnectError("refused"))
        trigger = JobTrigger(WORKER_URL)

        assert await trigger._send(str(uuid.uuid4())) is False
        await trigger.aclose()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged(self, caplog):
        caplog.set_level(logging.ERROR, logger="painpoint.services.job_trigger")
        trigger = JobTrigger("http://[::1")
        search_id = str(uuid.uuid4())

        assert trigger.trigger(search_id) is True
        await trigger.aclose()

        crashed = [r for r in caplog.records if "Worker trigger crashed" in r.getMessage()]
        assert len(crashed) == 1
        assert search_id in crashed[0].getMessage()
        assert not trigger._tasks

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        trigger = JobTrigger("")
        assert trigger.configured is False
        assert trigger.trigger(str(uuid.uuid4())) is False

    def test_without_running_loop(self):
        trigger = JobTrigger(WORKER_URL)
        assert trigger.trigger(str(uuid.uuid4())) is False

    @pytest.mark.asyncio
    async def test_repeat_trigger_is_safe(self, httpx_mock):
        httpx_mock.add_response(url=WORKER_URL, method="POST", status_code=202)
        httpx_mock.add_response(url=WORKER_URL, method="POST", status_code=202)
        trigger = JobTrigger(WORKER_URL)
        search_id = str(uuid.uuid4())

        assert trigger.trigger(search_id) is True
        assert trigger.trigger(search_id) is True
        await trigger.aclose()

        assert len(httpx_mock.get_requests()) == 2
