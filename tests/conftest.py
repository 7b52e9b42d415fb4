"""Shared fixtures for tfs-admin tests."""

import json

import pytest

from tfs_admin.connectors.tfs.client import Client
from tfs_admin.schemas import FieldRecord


class FakeResponse:
    """Stands in for an aiohttp response used as an async context manager"""

    def __init__(self, status: int = 200, payload=None, text: str = ""):
        self.status = status
        self.payload = payload
        self._text = text

    async def json(self, content_type=None):
        if self.payload is None:
            return json.loads(self._text) if self._text else None
        return self.payload

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Replays queued responses (or raises queued exceptions) in order"""

    def __init__(self, responses=None, **kwargs):
        self.responses = list(responses or [])
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


def make_fields(*pairs):
    return [FieldRecord(reference_name=ref, name=name) for ref, name in pairs]


@pytest.fixture
def client():
    """A PAT client pointed at a fictional server, not yet connected"""
    return Client("https://tfs.example.com/tfs/", "DefaultCollection", auth_token="secret-pat")


@pytest.fixture
def connected_client(client):
    """Client with a FakeSession already attached"""
    client._session = FakeSession()
    return client
