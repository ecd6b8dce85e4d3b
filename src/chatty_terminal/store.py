"""Message store clients.

The chat backend exposes two read-style endpoints: ``GET /msg/{alias}/{content}/{at}``
appends a message and ``GET /logs?depth=N`` returns the most recent N messages,
oldest first. The store assigns ``time`` on write; any time set by the client
is ignored. There is no authentication: anyone may post as any alias.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

import httpx

from .config import DEFAULT_LOG_DEPTH
from .core import Message

logger = logging.getLogger(__name__)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9]")


class StoreError(Exception):
    """Raised when the message store cannot be reached or answers garbage."""


def url_safe(text: str) -> str:
    """Replace every character outside ``[A-Za-z0-9]`` with an underscore."""
    return _UNSAFE_RE.sub("_", text)


@dataclass(frozen=True)
class RetryPolicy:
    """How often a failed append is retried.

    ``retries`` extra attempts are made after the first one, waiting
    ``backoff * attempt`` seconds before each. The default never retries.
    """

    retries: int = 0
    backoff: float = 0.0

    @property
    def attempts(self) -> int:
        return max(self.retries, 0) + 1

    def delay(self, attempt: int) -> float:
        return self.backoff * attempt


class MessageStore(ABC):
    """Base class for message stores."""

    @abstractmethod
    async def append(self, message: Message) -> bool:
        """Persist ``message`` and return True once the store acknowledged it."""
        ...

    @abstractmethod
    async def fetch_recent(self, limit: int = DEFAULT_LOG_DEPTH) -> list[Message]:
        """Return up to ``limit`` most recent messages, oldest first."""
        ...

    async def append_with_retry(self, message: Message, policy: RetryPolicy) -> bool:
        """Append under ``policy``. Failures are logged, never raised."""
        for attempt in range(1, policy.attempts + 1):
            try:
                return await self.append(message)
            except Exception as e:
                if attempt == policy.attempts:
                    logger.error("Dropping message from %s: %s", message.alias, e)
                    return False
                logger.warning(
                    "Posting message from %s failed (attempt %d/%d): %s",
                    message.alias, attempt, policy.attempts, e,
                )
                await asyncio.sleep(policy.delay(attempt))
        return False


class HttpMessageStore(MessageStore):
    """Client for the chat backend over HTTP."""

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def message_url(self, message: Message) -> str:
        segments = [quote(url_safe(part), safe="") for part in (message.alias, message.content, message.at)]
        return f"{self.base_url}/msg/{'/'.join(segments)}"

    async def append(self, message: Message) -> bool:
        try:
            resp = await self._get_client().get(self.message_url(message))
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"append failed: {e}") from e
        return True

    async def fetch_recent(self, limit: int = DEFAULT_LOG_DEPTH) -> list[Message]:
        try:
            resp = await self._get_client().get(f"{self.base_url}/logs", params={"depth": limit})
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise StoreError(f"fetch failed: {e}") from e
        except ValueError as e:
            raise StoreError(f"malformed log payload: {e}") from e

        # The backend may answer with an index-keyed object instead of a list.
        records = list(data.values()) if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise StoreError(f"unexpected log payload type: {type(data).__name__}")
        try:
            return [Message.from_dict(r) for r in records[-limit:]] if limit > 0 else []
        except (AttributeError, TypeError, ValueError) as e:
            raise StoreError(f"malformed message record: {e}") from e

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class MemoryMessageStore(MessageStore):
    """In-process store, used by the demo backend and tests."""

    def __init__(self):
        self._messages: list[Message] = []

    async def append(self, message: Message) -> bool:
        self.add(message.alias, message.content, message.at)
        return True

    def add(self, alias: str, content: str, at: str = "") -> Message:
        """Synchronously store a message, stamping it with a strictly increasing time."""
        now = datetime.now(timezone.utc)
        if self._messages and now <= self._messages[-1].time:
            now = self._messages[-1].time + timedelta(microseconds=1)
        stored = Message(alias=alias, content=content, at=at, time=now)
        self._messages.append(stored)
        return stored

    def recent(self, limit: int = DEFAULT_LOG_DEPTH) -> list[Message]:
        if limit <= 0:
            return []
        return list(self._messages[-limit:])

    async def fetch_recent(self, limit: int = DEFAULT_LOG_DEPTH) -> list[Message]:
        return self.recent(limit)

    def __len__(self) -> int:
        return len(self._messages)
