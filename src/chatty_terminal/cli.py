"""CLI entry point for chatty-terminal."""

import asyncio
import logging

import click
import uvicorn

from .config import get_log_depth, get_poll_interval, get_post_retries, get_server_url, get_strict_parsing
from .render import plain_text
from .store import HttpMessageStore, RetryPolicy
from .sync import HistorySynchronizer
from .terminal import Terminal


class EchoSink:
    """History output that prints each rendered line as plain text."""

    def append(self, line: str) -> None:
        click.echo(plain_text(line))


@click.group()
def main():
    """Terminal-style chat client and demo message backend."""
    pass


@main.command()
@click.option("--port", default=5000, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the message backend."""
    click.echo(f"Starting chatty-terminal backend on http://{host}:{port}")
    uvicorn.run("chatty_terminal.server:app", host=host, port=port, reload=False)


@main.command()
@click.option("--server-url", default=None, help="Backend URL (default: $CHATTY_SERVER_URL).")
@click.option("--user", default="alias", help="Alias to post as.")
@click.option("--interval", type=float, default=None, help="History poll period in seconds.")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
)
def chat(server_url: str | None, user: str, interval: float | None, log_level: str):
    """Open an interactive chat terminal."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    url = server_url or get_server_url()
    click.echo(f"Connecting to {url} as {user}. Type 'help' for commands, Ctrl-D to quit.")
    asyncio.run(_chat(url, user, interval if interval is not None else get_poll_interval()))


async def _chat(url: str, user: str, interval: float) -> None:
    store = HttpMessageStore(url)
    terminal = Terminal(
        user=user,
        store=store,
        strict_parsing=get_strict_parsing(),
        retry_policy=RetryPolicy(retries=get_post_retries()),
    ).initialize()
    terminal.focus()
    sync = HistorySynchronizer(store, EchoSink(), interval=interval, depth=get_log_depth())

    shown = 0
    try:
        while True:
            prompt = plain_text(terminal.prompt())
            try:
                line = await asyncio.to_thread(
                    click.prompt, prompt, default="", show_default=False, prompt_suffix=" "
                )
            except (EOFError, click.Abort):
                break
            terminal.type_text(line + "\n")

            # Print command output below the entered line; the screen resets on clear/cd.
            lines = terminal.transcript_lines()
            if len(lines) - 1 < shown:
                shown = 0
            for out in lines[shown + 1:-1]:
                click.echo(out)
            shown = len(lines) - 1
    finally:
        sync.stop()
        await terminal.drain()
        await store.aclose()
