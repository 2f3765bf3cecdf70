# tests/conftest.py
import asyncio
import os
import sys

# Must be set before app.tutorcenter.config is imported anywhere.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("SEED_DEMO_DATA", "true")

import pytest_asyncio

from app.tutorcenter.db.memory_store import MemoryStore

# This is the crucial fix for Windows asyncio issues with pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest_asyncio.fixture
async def store() -> MemoryStore:
    """An empty in-memory store per test."""
    return MemoryStore()
