"""
Shared fixtures for unit and integration tests.
"""

import asyncio
from typing import Callable, List, Optional
from urllib.parse import parse_qsl, urlsplit

import pytest
import pytest_asyncio
import structlog
from aiohttp import web
from aiohttp.test_utils import TestServer

from refract.core.http_client import ProbeResponse


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: tests that run a local HTTP server")


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any logging configuration done by the CLI"""
    yield
    structlog.reset_defaults()


class FakeClient:
    """In-memory stand-in for ProbeClient driven by a handler function"""

    def __init__(self, handler: Callable[[str], ProbeResponse]):
        self.handler = handler
        self.requests: List[str] = []

    async def fetch(self, url: str, method: str = "GET") -> ProbeResponse:
        self.requests.append(url)
        await asyncio.sleep(0)
        return self.handler(url)


def html(body: str, status: int = 200, content_type: Optional[str] = "text/html; charset=utf-8") -> ProbeResponse:
    """Build a ProbeResponse; content_type=None leaves the header out"""
    headers = {} if content_type is None else {"Content-Type": content_type}
    return ProbeResponse(status=status, headers=headers, body=body.encode("utf-8"))


def query_of(url: str) -> dict:
    """Decoded query parameters of a URL (last value wins)"""
    return dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))


def echo(url: str) -> ProbeResponse:
    """Reflect every query value verbatim"""
    values = "".join(f"<p>{value}</p>" for value in query_of(url).values())
    return html(f"<html><body>{values}</body></html>")


@pytest.fixture
def make_client():
    return FakeClient


@pytest.fixture
def make_response():
    return html


@pytest.fixture
def parse_query():
    return query_of


@pytest.fixture
def echo_handler():
    return echo


@pytest_asyncio.fixture
async def start_server():
    """Start aiohttp applications on local test servers"""
    servers: List[TestServer] = []

    async def _start(app: web.Application) -> TestServer:
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        await server.close()
