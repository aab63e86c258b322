"""Shared fixtures: an engine wired to in-memory repositories and fake channels."""

import asyncio
import random

import pytest
from fakes import FakeChannels, FakeSurface, InMemoryDatabase, RecordingHooks

from linekeeper.config import EngineConfig
from linekeeper.context import EngineContext
from linekeeper.engine import QueueEngine

DEBOUNCE = 0.02


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def channels():
    return FakeChannels()


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def hooks():
    return RecordingHooks()


@pytest.fixture
def ctx(db, channels, surface, hooks):
    return EngineContext(
        config=EngineConfig(display_debounce=DEBOUNCE),
        queues=db.queues,
        guilds=db.guilds,
        members=db.members,
        displays=db.displays,
        channels=channels,
        surface=surface,
        hooks=hooks,
        clock=db.now,
        rng=random.Random(1234),
    )


@pytest.fixture
async def engine(ctx):
    engine = QueueEngine(ctx)
    await engine.start()
    yield engine
    await engine.stop()


@pytest.fixture
def settle():
    """Wait past the display coalescing window so pending renders complete."""

    async def _settle(windows: float = 3):
        await asyncio.sleep(DEBOUNCE * windows)

    return _settle
