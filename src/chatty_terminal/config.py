"""Environment-driven settings for the chat client and demo backend."""

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://127.0.0.1:5000"
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_LOG_DEPTH = 500
DEFAULT_POST_RETRIES = 0

_TRUTHY = {"1", "true", "yes", "on"}


def get_server_url() -> str:
    """Return the base URL of the message backend."""
    env = os.environ.get("CHATTY_SERVER_URL")
    if env:
        return env.rstrip("/")
    return DEFAULT_SERVER_URL


def get_poll_interval() -> float:
    """Return the history poll period in seconds."""
    return _read_number("CHATTY_POLL_INTERVAL", float, DEFAULT_POLL_INTERVAL)


def get_log_depth() -> int:
    """Return how many recent messages each poll asks for."""
    return _read_number("CHATTY_LOG_DEPTH", int, DEFAULT_LOG_DEPTH)


def get_post_retries() -> int:
    """Return how many extra attempts a failed message post gets."""
    return _read_number("CHATTY_POST_RETRIES", int, DEFAULT_POST_RETRIES)


def get_strict_parsing() -> bool:
    """Return True if command keywords must match the first token exactly."""
    return os.environ.get("CHATTY_STRICT_PARSING", "").strip().lower() in _TRUTHY


def _read_number(name, cast, default):
    env = os.environ.get(name)
    if not env:
        return default
    try:
        value = cast(env)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, env, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r, using %s", name, env, default)
        return default
    return value
