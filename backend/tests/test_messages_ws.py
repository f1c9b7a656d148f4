"""
Tests for the /api/v1/messages/ws live channel.

The websocket handler opens its own database session, so these tests build
a database up front and run the app under fastapi's TestClient.
"""
import asyncio
from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from starlette.websockets import WebSocketDisconnect

from app.api import deps
from app.api.v1 import messages
from app.core.rate_limiter import limiter
from app.db.base import Base
from app.main import app
from app.services.realtime import ChangeBroadcaster

API = "/api/v1"


async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def live_client(tmp_path, monkeypatch):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ws.db'}", poolclass=NullPool)
    asyncio.run(_create_schema(engine))
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    broadcaster = ChangeBroadcaster()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    @asynccontextmanager
    async def test_db_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_broadcaster] = lambda: broadcaster
    monkeypatch.setattr(messages, "get_db_session", test_db_session)
    monkeypatch.setattr(messages, "get_broadcaster", lambda: broadcaster)
    limiter.enabled = False
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True
        broadcaster.close_all()
        asyncio.run(engine.dispose())


@pytest.fixture
def token(live_client):
    response = live_client.post(f"{API}/companies/register", json={
        "company_name": "Delta Bau",
        "company_email": "info@delta.example.com",
        "admin_email": "owner@delta.example.com",
        "admin_name": "Dana Owner",
        "password": "long-enough-password",
        "subscription_tier": "basic",
    })
    assert response.status_code == 201
    return response.json()["access_token"]


class TestMessagesWebsocket:
    def test_initial_page_then_events(self, live_client, token):
        headers = {"Authorization": f"Bearer {token}"}
        posted = live_client.post(f"{API}/messages/channels/safety", json={"content": "Helmets on"}, headers=headers)
        assert posted.status_code == 201

        with live_client.websocket_connect(f"{API}/messages/ws?token={token}&channel=safety") as ws:
            initial = ws.receive_json()
            ws.send_json({"content": "Gloves too"})
            event = ws.receive_json()

        assert initial["type"] == "initial"
        assert [m["message"] for m in initial["messages"]] == ["Helmets on"]
        # The message from the initial page is not delivered a second time
        assert event["type"] == "event"
        assert event["change"]["type"] == "INSERT"
        assert event["change"]["table"] == "notifications"
        assert event["change"]["record"]["message"] == "Gloves too"

    def test_other_channel_events_are_not_forwarded(self, live_client, token):
        headers = {"Authorization": f"Bearer {token}"}

        with live_client.websocket_connect(f"{API}/messages/ws?token={token}&channel=safety") as ws:
            assert ws.receive_json() == {"type": "initial", "messages": []}
            live_client.post(f"{API}/messages/channels/general", json={"content": "Lunch"}, headers=headers)
            ws.send_json({"content": "Ear protection"})
            event = ws.receive_json()

        assert event["change"]["record"]["message"] == "Ear protection"

    def test_rejected_message_gets_error_frame(self, live_client, token):
        with live_client.websocket_connect(f"{API}/messages/ws?token={token}&channel=safety") as ws:
            ws.receive_json()
            ws.send_json({"content": "   "})
            error = ws.receive_json()

        assert error["type"] == "error"
        assert error["code"] == "validation_error"

    def test_invalid_token_closes_connection(self, live_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with live_client.websocket_connect(f"{API}/messages/ws?token=not-a-jwt") as ws:
                ws.receive_json()

        assert exc_info.value.code == 4001
