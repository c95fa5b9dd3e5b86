"""
Shared fixtures for the auth client tests.

The stub backend is a real aiohttp server; each route answers from a queue of
canned responses and every request is recorded for assertions.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import keyring
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from client.api_client import GroceryAPIClient
from client.auth.token_storage import InMemoryTokenStorage

API_PREFIX = "/api/v1"


def envelope(status: int = 200, message: str = "OK", data: Any = None, errors: Optional[list] = None) -> Dict[str, Any]:
    """Build a response envelope as the backend sends it."""
    return {
        "status": status,
        "message": message,
        "data": data,
        "timestamp": "2024-11-17T15:36:44.202192695",
        "errors": errors,
    }


@dataclass
class RecordedRequest:
    method: str
    path: str
    authorization: Optional[str]
    content_type: Optional[str]
    headers: Dict[str, str]
    body: Any


class StubBackend:
    """In-process backend answering from per-route response queues."""

    def __init__(self):
        self.requests: List[RecordedRequest] = []
        self._routes: Dict[tuple, list] = {}
        self.base_url = ""

    def add(self, method: str, path: str, *responses):
        """
        Queue responses for a route.

        Each response is ``(http_status, body)`` where body is a dict (sent as
        JSON), raw bytes/str, or a callable taking the RecordedRequest and
        returning ``(http_status, body)``. The last response repeats.
        """
        self._routes.setdefault((method, path), []).extend(responses)

    def calls(self, path: str, method: Optional[str] = None) -> List[RecordedRequest]:
        return [
            r for r in self.requests
            if r.path == path and (method is None or r.method == method)
        ]

    async def handle(self, request: web.Request) -> web.Response:
        raw = await request.read()
        try:
            body = json.loads(raw) if raw else None
        except ValueError:
            body = raw

        path = request.path[len(API_PREFIX):] if request.path.startswith(API_PREFIX) else request.path
        recorded = RecordedRequest(
            method=request.method,
            path=path,
            authorization=request.headers.get("Authorization"),
            content_type=request.headers.get("Content-Type"),
            headers=dict(request.headers),
            body=body,
        )
        self.requests.append(recorded)

        queue = self._routes.get((request.method, path))
        if not queue:
            return web.json_response(envelope(404, "Not found"), status=404)

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            response = response(recorded)
        status, payload = response

        if isinstance(payload, str):
            payload = payload.encode()
        if isinstance(payload, bytes):
            return web.Response(status=status, body=payload, content_type="application/json")
        return web.json_response(payload, status=status)


@pytest.fixture
async def stub_backend():
    backend = StubBackend()
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", backend.handle)

    server = TestServer(app)
    await server.start_server()
    backend.base_url = str(server.make_url(API_PREFIX))

    yield backend

    await server.close()


@pytest.fixture
def token_storage():
    return InMemoryTokenStorage()


@pytest.fixture
async def api_client(stub_backend, token_storage):
    async with GroceryAPIClient(stub_backend.base_url, token_storage, timeout=5.0) as client:
        yield client


class MemoryKeyring(KeyringBackend):
    """Keyring backend that keeps secrets in a dict."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.entries: Dict[tuple, str] = {}

    def get_password(self, service, username):
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError(username)


class BrokenKeyring(KeyringBackend):
    """Keyring backend whose every operation fails."""

    priority = 1

    def get_password(self, service, username):
        raise KeyringError("keyring locked")

    def set_password(self, service, username, password):
        raise KeyringError("keyring locked")

    def delete_password(self, service, username):
        raise KeyringError("keyring locked")


@pytest.fixture
def memory_keyring():
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def broken_keyring():
    previous = keyring.get_keyring()
    backend = BrokenKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)
