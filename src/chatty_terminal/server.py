"""FastAPI demo backend for chatty-terminal."""

import logging

from fastapi import FastAPI, Query
from fastapi.responses import PlainTextResponse

from .config import DEFAULT_LOG_DEPTH
from .store import MemoryMessageStore

logger = logging.getLogger(__name__)

app = FastAPI(title="chatty-terminal", version="0.1.0")

# Message store (created on first request)
_store: MemoryMessageStore | None = None


def _get_store() -> MemoryMessageStore:
    """Lazily create and cache the message store."""
    global _store
    if _store is None:
        _store = MemoryMessageStore()
        logger.info("Created in-memory message store")
    return _store


# ── Routes ───────────────────────────────────────────────────────


@app.get("/msg/{alias}/{content}/{at}", response_class=PlainTextResponse)
async def post_message(alias: str, content: str, at: str):
    """Append a message. The server stamps the time."""
    message = _get_store().add(alias, content, at)
    logger.debug("Stored message from %s at %s", message.alias, message.at)
    return "x"


@app.get("/logs")
async def get_logs(depth: int = Query(DEFAULT_LOG_DEPTH, ge=1, le=10000)):
    """Return the most recent messages, oldest first."""
    return [m.to_dict() for m in _get_store().recent(depth)]
