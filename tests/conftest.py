import asyncio
import json
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path
from typing import Any

import pytest

from mediahub.models import SiteDescriptor, SiteStatus


@pytest.fixture
def make_site() -> Callable[..., SiteDescriptor]:
    """Factory for SiteDescriptors served from https://<key>.example.com/api."""

    def _make(
        key: str = "s1",
        *,
        priority: int = 1,
        status: SiteStatus = "active",
        adapter: str = "generic",
        detail: str | None = None,
    ) -> SiteDescriptor:
        return SiteDescriptor(
            key=key,
            endpoint=f"https://{key}.example.com/api",
            display_name=f"Site {key.upper()}",
            detail_url_template=detail,
            priority=priority,
            status=status,
            adapter=adapter,
        )

    return _make


@pytest.fixture
def sample_config_data() -> dict[str, Any]:
    return {
        "api_site": {
            "s1": {
                "api": "https://s1.example.com/api",
                "name": "Site One",
                "detail": "https://s1.example.com/detail",
                "priority": 1,
                "status": "active",
            },
            "s2": {
                "api": "https://s2.example.com/api",
                "name": "Site Two",
                "priority": 2,
                "status": "maintenance",
            },
        },
        "resource_filters": {"exclude_low_quality": True},
    }


@pytest.fixture
def config_file(tmp_path: Path, sample_config_data: dict[str, Any]) -> Path:
    path = tmp_path / "sites.json"
    path.write_text(json.dumps(sample_config_data), encoding="utf-8")
    return path


@pytest.fixture
def trickle_server() -> Callable[..., AbstractAsyncContextManager[str]]:
    """Factory for a local HTTP server that dribbles its response out slowly.

    ``head`` goes out at once; ``body`` follows one byte every ``delay``
    seconds, so no single read ever waits long. Yields the endpoint URL.
    """

    @asynccontextmanager
    async def _serve(body: bytes, *, head: bytes = b"", delay: float = 0.1) -> AsyncIterator[str]:
        writers: list[asyncio.StreamWriter] = []

        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            writers.append(writer)
            try:
                await reader.readuntil(b"\r\n\r\n")
                writer.write(head)
                for i in range(len(body)):
                    if writer.is_closing():
                        return
                    writer.write(body[i : i + 1])
                    await writer.drain()
                    await asyncio.sleep(delay)
            except (ConnectionError, asyncio.IncompleteReadError):
                return
            finally:
                writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            yield f"http://127.0.0.1:{port}/api"
        finally:
            for writer in writers:
                writer.close()
            server.close()
            await server.wait_closed()

    return _serve
