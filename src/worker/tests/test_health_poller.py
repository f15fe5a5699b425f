"""Tests for the background health poller."""

import asyncio
import unittest

import httpx

from worker.health_poller import HEALTH_PATH, poll_once, run_health_poller


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHealthPoller(unittest.IsolatedAsyncioTestCase):

    async def test_poll_once_healthy(self):
        async with _client(lambda request: httpx.Response(200, json={'status': 'healthy'})) as client:
            self.assertTrue(await poll_once(client, 'http://test/v1/health'))

    async def test_poll_once_unhealthy(self):
        async with _client(lambda request: httpx.Response(503)) as client:
            self.assertFalse(await poll_once(client, 'http://test/v1/health'))

    async def test_poll_once_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError('refused', request=request)

        async with _client(refuse) as client:
            self.assertFalse(await poll_once(client, 'http://test/v1/health'))

    async def test_runs_until_cancelled(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200)

        async with _client(handler) as client:
            task = asyncio.create_task(run_health_poller(8080, interval=0.01, client=client))
            while len(seen) < 2:
                await asyncio.sleep(0.01)
            task.cancel()
            with self.assertRaises(asyncio.CancelledError):
                await task

        self.assertEqual(seen[:2], [HEALTH_PATH, HEALTH_PATH])


if __name__ == '__main__':
    unittest.main()
