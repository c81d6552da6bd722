"""Shared fixtures: a clean in-memory store and an HTTP test client."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.store.conversation_store import ConversationStore, conversation_store


@pytest.fixture
def store() -> ConversationStore:
    """Fresh, isolated ConversationStore."""
    return ConversationStore()


@pytest.fixture
def client():
    """TestClient over the app with the shared store emptied before and after."""
    asyncio.run(conversation_store.clear())
    with TestClient(app) as test_client:
        yield test_client
    asyncio.run(conversation_store.clear())
