import time

import aiohttp

from pagewatch.main.config import get_settings
from pagewatch.main.exceptions import NotReadyException
from pagewatch.main.logging import get_logger

logger = get_logger(__name__)


class AioHttpClient:
    session: aiohttp.ClientSession = None

    def _create_trace_config(self) -> aiohttp.TraceConfig:
        """Create TraceConfig for request timing observability."""
        trace = aiohttp.TraceConfig()

        async def on_request_start(session, trace_config_ctx, params):
            trace_config_ctx._request_start_time = time.perf_counter()

        async def on_request_end(session, trace_config_ctx, params):
            if not hasattr(trace_config_ctx, "_request_start_time"):
                return

            duration_ms = (time.perf_counter() - trace_config_ctx._request_start_time) * 1000

            # Remote sources are slow enough already; anything above 10s eats the invocation budget
            if duration_ms > 10_000:
                logger.warning(
                    f"SLOW request detected for {params.url.host}",
                    extra={
                        "event": "request_slow",
                        "method": params.method,
                        "host": params.url.host,
                        "status": params.response.status,
                        "duration_ms": int(duration_ms),
                    },
                )
            else:
                logger.debug(
                    f"Request completed for {params.url.host}",
                    extra={
                        "event": "request_end",
                        "method": params.method,
                        "host": params.url.host,
                        "status": params.response.status,
                        "duration_ms": int(duration_ms),
                    },
                )

        trace.on_request_start.append(on_request_start)
        trace.on_request_end.append(on_request_end)

        return trace

    def start(self):
        settings = get_settings()

        # Per-request timeouts can override these
        timeout = aiohttp.ClientTimeout(
            total=settings.scraper_timeout_seconds,
            connect=10.0,
        )

        connector = aiohttp.TCPConnector(
            limit=20,
            limit_per_host=5,
            enable_cleanup_closed=True,
            use_dns_cache=True,
            ttl_dns_cache=300,
        )

        self.session = aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            trace_configs=[self._create_trace_config()],
            headers={"User-Agent": settings.scraper_user_agent},
        )

    async def stop(self):
        if self.session is None:
            return
        await self.session.close()
        self.session = None

    def __call__(self) -> aiohttp.ClientSession:
        if self.session is None:
            raise NotReadyException("HTTP client session is not started!")
        return self.session


aiohttp_client = AioHttpClient()
