"""Shared test fixtures for chatty-terminal."""

import asyncio

import pytest

from chatty_terminal.core import Message
from chatty_terminal.store import MessageStore, StoreError
from chatty_terminal.terminal import Terminal


class RecordingStore(MessageStore):
    """Store that records posts and can be told to fail the first N appends."""

    def __init__(self, fail_times: int = 0):
        self.posted: list[Message] = []
        self.attempts = 0
        self.fail_times = fail_times

    async def append(self, message):
        self.attempts += 1
        if self.attempts <= self.fail_times:
            raise StoreError("backend unreachable")
        self.posted.append(message)
        return True

    async def fetch_recent(self, limit=500):
        return self.posted[-limit:]

    @property
    def contents(self) -> list[str]:
        return [m.content for m in self.posted]


class ScriptedLogStore(MessageStore):
    """Store whose log is set directly by the test."""

    def __init__(self, delay: float = 0.0):
        self.logs: list[Message] = []
        self.fail = False
        self.fetches = 0
        self.delay = delay

    async def append(self, message):
        self.logs.append(message)
        return True

    async def fetch_recent(self, limit=500):
        self.fetches += 1
        await asyncio.sleep(self.delay)
        if self.fail:
            raise StoreError("offline")
        return list(self.logs[-limit:])

    def add(self, count: int) -> None:
        start = len(self.logs)
        for i in range(start, start + count):
            self.logs.append(Message(alias=f"user{i}", content=f"msg_{i}", at="lobby"))


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def make_terminal():
    """Factory for initialized terminals; background post loops are closed afterwards."""
    created = []

    def factory(**kwargs):
        term = Terminal(**kwargs).initialize()
        created.append(term)
        return term

    yield factory
    for term in created:
        term.close()


@pytest.fixture
def terminal(store, make_terminal):
    """An initialized terminal posting into a RecordingStore."""
    return make_terminal(store=store)


@pytest.fixture
def log_store():
    return ScriptedLogStore()
