"""Background health poller.

Periodically calls the service's own HTTP health endpoint and logs the
outcome. Runs as an asyncio task next to the servers and stops when the
task is cancelled at shutdown.
"""

import asyncio
import logging
import time

import httpx

logger = logging.getLogger(__name__)

HEALTH_PATH = "/v1/health"
REQUEST_TIMEOUT_SECONDS = 5.0


async def poll_once(client: httpx.AsyncClient, url: str) -> bool:
    """Call ``url`` once. Returns True on a 200 answer."""
    start = time.perf_counter()
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        logger.warning("Health poll failed", extra={"url": url, "error": str(e)[:200]})
        return False

    latency_ms = round((time.perf_counter() - start) * 1000, 2)
    healthy = response.status_code == 200
    log = logger.info if healthy else logger.warning
    log("Health poll", extra={"url": url, "status": response.status_code, "latency_ms": latency_ms})
    return healthy


async def run_health_poller(
    http_port: int,
    interval: float,
    host: str = "127.0.0.1",
    client: httpx.AsyncClient | None = None,
) -> None:
    """Poll until cancelled, waiting ``interval`` seconds between calls."""
    url = f"http://{host}:{http_port}{HEALTH_PATH}"
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS)
    logger.info("Health poller started", extra={"url": url, "interval_s": interval})
    try:
        while True:
            await asyncio.sleep(interval)
            await poll_once(client, url)
    finally:
        if owns_client:
            await client.aclose()
        logger.info("Health poller stopped")
