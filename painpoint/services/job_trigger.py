"""Job trigger — fire-and-forget invocation of the analysis worker.

POSTs {"searchId": ...} to the worker in a detached task. The request path
never waits for the worker; failures and timeouts only reach the log. A
search that was never picked up stays `pending` for the backend scheduler.
"""

import asyncio
import logging
import time

import httpx

logger = logging.getLogger(__name__)


class JobTrigger:
    """Launch analysis jobs without blocking the caller on their outcome."""

    def __init__(
        self,
        worker_url: str,
        token: str = "",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.worker_url = worker_url
        self.token = token
        self.timeout = timeout
        self._client = client
        self._tasks: set[asyncio.Task] = set()

    @property
    def configured(self) -> bool:
        return bool(self.worker_url)

    def trigger(self, search_id: str) -> bool:
        """Dispatch a job for search_id. True means the request was sent off,
        not that the job succeeded. Safe to repeat for the same id.
        """
        if not self.configured:
            logger.error("Job trigger unconfigured | search=%s", search_id)
            return False

        try:
            task = asyncio.get_running_loop().create_task(
                self._send(search_id), name=f"trigger:{search_id}",
            )
        except RuntimeError as e:
            logger.error("Job trigger could not be scheduled | search=%s | %s", search_id, str(e)[:200])
            return False

        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return True

    def _on_done(self, task: asyncio.Task):
        """Forget a finished trigger; log whatever escaped `_send`."""
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Worker trigger crashed | task=%s | %s: %s",
                task.get_name(), type(exc).__name__, str(exc)[:200],
            )

    async def drain(self):
        """Wait for in-flight triggers to settle (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self):
        await self.drain()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(self, search_id: str) -> bool:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        start = time.monotonic()
        try:
            client = self._get_client()
            resp = await client.post(
                self.worker_url,
                json={"searchId": search_id},
                headers=headers,
                timeout=self.timeout,
            )
            elapsed_ms = int((time.monotonic() - start) * 1000)
            if resp.status_code >= 400:
                logger.warning(
                    "Worker trigger rejected | search=%s | status=%d | %dms",
                    search_id, resp.status_code, elapsed_ms,
                )
                return False
            logger.info("Worker triggered | search=%s | status=%d | %dms", search_id, resp.status_code, elapsed_ms)
            return True

        except httpx.TimeoutException:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                "Worker trigger timeout | search=%s | %dms (worker may still be running)",
                search_id, elapsed_ms,
            )
            return False
        except httpx.HTTPError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error("Worker trigger error | search=%s | %dms | %s", search_id, elapsed_ms, str(e)[:200])
            return False

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client
