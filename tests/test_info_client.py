"""Tests for InfoClient request bodies and failure mapping."""

import asyncio

import aiohttp
import pytest

from core.trade_history import load_positions
from data_collector.info_client import InfoClient
from models.errors import LoadFailed
from storage.session_store import SessionStore


class FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self.payload = payload

    async def json(self, content_type=None):
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, status=200, payload=None, error=None):
        self.status = status
        self.payload = payload
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, json=None):
        self.calls.append((url, json))
        if self.error:
            raise self.error
        return FakeResponse(self.status, self.payload)

    async def close(self):
        self.closed = True


def _fill(side, sz, px, time, tid):
    return {"coin": "ETH", "side": side, "sz": sz, "px": px, "time": time, "tid": tid, "oid": tid}


class TestInfoClient:
    def test_snapshot_request_body(self):
        session = FakeSession(payload={"coin": "ETH", "levels": [[], []]})
        client = InfoClient(info_url="http://info", session=session)

        result = asyncio.run(client.fetch_l2_snapshot("ETH"))
        assert result["coin"] == "ETH"
        assert session.calls == [("http://info", {"type": "l2Book", "coin": "ETH"})]

    def test_user_fills_request_body(self):
        session = FakeSession(payload=[])
        client = InfoClient(info_url="http://info", session=session)

        asyncio.run(client.fetch_user_fills("  0xabc "))
        assert session.calls == [("http://info", {"type": "userFills", "user": "0xabc"})]

    def test_empty_address_rejected(self):
        client = InfoClient(session=FakeSession())
        with pytest.raises(LoadFailed):
            asyncio.run(client.fetch_user_fills("   "))

    def test_http_error_is_load_failed(self):
        client = InfoClient(session=FakeSession(status=500))
        with pytest.raises(LoadFailed):
            asyncio.run(client.fetch_l2_snapshot("ETH"))
        assert client.get_stats()["failed_requests"] == 1

    def test_client_error_is_load_failed(self):
        client = InfoClient(session=FakeSession(error=aiohttp.ClientConnectionError("down")))
        with pytest.raises(LoadFailed):
            asyncio.run(client.fetch_l2_snapshot("ETH"))

    def test_borrowed_session_not_closed(self):
        session = FakeSession()
        client = InfoClient(session=session)
        asyncio.run(client.close())
        assert not session.closed


class TestLoadPositions:
    def test_reconstructs_and_stores(self):
        payload = {"fills": [
            _fill("B", "1", "100", 0, 1),
            _fill("A", "1", "110", 10, 2),
            _fill("B", "1", "100", 20, 3),
        ]}
        client = InfoClient(session=FakeSession(payload=payload))
        store = SessionStore()

        records = asyncio.run(load_positions("0xabc", client, store))
        assert len(records) == 1
        assert records[0].close_timestamp == 10
        assert store.get_positions("0xabc") == records

    def test_by_order_summary(self):
        payload = [
            dict(_fill("A", "1", "110", 10, 1), dir="Close Long", closedPnl="10"),
            dict(_fill("B", "1", "90", 20, 2), dir="Close Short", closedPnl="-2"),
        ]
        client = InfoClient(session=FakeSession(payload=payload))

        records = asyncio.run(load_positions("0xabc", client, by_order=True))
        assert [r.close_timestamp for r in records] == [20, 10]

    def test_load_failure_propagates(self):
        client = InfoClient(session=FakeSession(status=429))
        with pytest.raises(LoadFailed):
            asyncio.run(load_positions("0xabc", client))
