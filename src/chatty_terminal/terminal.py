"""Interactive terminal model: input buffering, command dispatch and output.

The terminal keeps two strings: ``stdin``, the editable input text, and
``stdout``, the rendered HTML transcript. Each keystroke hands the full input
text to :meth:`Terminal.take_input`, which renders line breaks into prompts,
runs every registered command over the text and writes the result back to
both. When the line just entered is plain text rather than a command, it is
posted to the message store without waiting for the answer: on the running
event loop when there is one, otherwise on a background loop the terminal
starts on first use and keeps until :meth:`Terminal.close`.
"""

import asyncio
import html
import logging
import threading
from concurrent.futures import Future
from typing import Iterable, Optional
from urllib.parse import unquote

from .commands import CommandRegistry, Transform, builtin_commands
from .core import Message, Session, ThemeState
from .parser import DECODED, ArgumentParser
from .render import LINE_BREAK, page_style, plain_text, render_prompt, stdout_style
from .store import MessageStore, RetryPolicy

logger = logging.getLogger(__name__)


class Terminal:
    """Ubuntu style shell emulation with an extendable command table.

    Add commands with :meth:`add_command`. A command is a function that takes
    the input text, calls ``terminal.parser.parse()`` to check for its name,
    acts, and returns the input text.
    """

    def __init__(
        self,
        user: str = "alias",
        system: str = "ubuntu",
        path: str = "~",
        ps1: str = "$",
        store: Optional[MessageStore] = None,
        excluded_commands: Iterable[str] = (),
        strict_parsing: bool = False,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.session = Session(user=user, system=system, path=path, ps1=ps1)
        self.theme = ThemeState()
        self.parser = ArgumentParser(self.prompt, strict=strict_parsing)
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy()

        self.commands = CommandRegistry(builtin_commands(self))
        for name in excluded_commands:
            self.commands.remove(name)

        self.stdin = ""
        self.stdout = ""
        self.title = ""
        self.focused = False
        self.directory_changed = False
        self.term_class = f"{system}-terminal"
        self._buffer = 0
        self._pending: set[asyncio.Task] = set()
        self._futures: set[Future] = set()
        self._post_loop: Optional[asyncio.AbstractEventLoop] = None
        self._post_thread: Optional[threading.Thread] = None

    # ── Session ──────────────────────────────────────────────────────

    @property
    def user(self) -> str:
        return self.session.user

    @property
    def path(self) -> str:
        return self.session.path

    def prompt(self) -> str:
        """Current shell prompt as HTML."""
        s = self.session
        return render_prompt(s.user, s.system, s.path, s.ps1)

    def rename(self, user: str) -> None:
        """Switch to a new alias and start over with a clean screen."""
        self.session.user = user
        self.clear()

    # ── Widget surface ───────────────────────────────────────────────

    def initialize(self) -> "Terminal":
        """Write the title and first prompt."""
        self.refresh()
        return self

    def focus(self) -> None:
        self.focused = True

    def defocus(self, input_active: bool = False) -> None:
        """Drop focus styling unless the input area is still the active element."""
        if not input_active:
            self.focused = False

    def clear(self) -> None:
        self.stdout = ""
        self.stdin = ""
        self._buffer = 0
        self.refresh()

    def refresh(self) -> None:
        """Update the title bar and write a prompt to stdout."""
        s = self.session
        self.title = f"Message History ── {s.user}@{s.system}:{s.path}"
        self.stdout = self.prompt()

    def render(self) -> str:
        """Render the terminal widget as HTML.

        ``stdout`` is inserted as is; typed characters were escaped by
        :meth:`keystroke` when they were entered.
        """
        focus = " focus" if self.focused else ""
        return (
            f'<div class="{self.term_class}" style="{page_style(self.theme)}">'
            f'<div class="termtitle">{html.escape(self.title)}</div>'
            f'<div class="tbody"><div class="stdout{focus}" style="{stdout_style(self.theme)}">'
            f"{self.stdout}</div></div></div>"
        )

    def transcript_lines(self) -> list[str]:
        """The interactive transcript as plain text lines."""
        return [plain_text(chunk) for chunk in self.stdout.split(LINE_BREAK)]

    # ── Commands ─────────────────────────────────────────────────────

    def add_command(self, name: str, transform: Transform, keywords: Iterable[str] = ()) -> None:
        self.commands.add(name, transform, keywords)

    def remove_command(self, name: str) -> None:
        self.commands.remove(name)

    @property
    def command_names(self) -> list[str]:
        return self.commands.names()

    # ── Input processing ─────────────────────────────────────────────

    def keystroke(self, char: str) -> Optional[str]:
        """Append one typed character to the input and process it.

        The character is HTML-escaped, so typed text is shown literally.
        """
        return self.take_input(self.stdin + html.escape(char, quote=False))

    def type_text(self, text: str) -> None:
        for char in text:
            self.keystroke(char)

    def take_input(self, text: str) -> Optional[str]:
        """Process the full input text after a key event.

        Returns the formatted text written back to ``stdin``, or None when
        the event was ignored because the input length did not change
        (modifier keys and other no-op events).

        ``text`` is used as markup: callers pass the previous ``stdin`` plus
        escaped input, as :meth:`keystroke` does.
        """
        if len(text) == self._buffer:
            self.stdin = text
            return None
        self._buffer = len(text)
        self.directory_changed = False

        line = text.replace("\n", f"{LINE_BREAK}{self.prompt()} ")
        line = self.commands.run(line)

        # "clear" and a directory change leave an empty screen behind.
        if self.parser.parse(line, "clear") or self.directory_changed:
            formatted = ""
        else:
            formatted = line

        self.stdout = f"{self.prompt()} {formatted} "
        self.stdin = unquote(formatted)

        message = self.parser.parse(formatted, DECODED)
        if message and message.split()[0] not in self.commands.triggers():
            self._persist(html.unescape(message))
        return formatted

    # ── Persistence ──────────────────────────────────────────────────

    def _persist(self, content: str) -> None:
        if self.store is None:
            return
        message = Message(alias=self.session.user, content=content, at=self.session.path)
        logger.debug("Posting message from %s at %s", message.alias, message.at)
        coro = self.store.append_with_retry(message, self.retry_policy)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            future = asyncio.run_coroutine_threadsafe(coro, self._background_loop())
            self._futures.add(future)
            future.add_done_callback(self._futures.discard)
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for message posts that are still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until posts handed to the background loop have finished."""
        for future in list(self._futures):
            future.result(timeout)

    def close(self) -> None:
        """Stop the background post loop, if one was started."""
        if self._post_loop is None:
            return
        self.flush()
        self._post_loop.call_soon_threadsafe(self._post_loop.stop)
        self._post_thread.join()
        self._post_loop.close()
        self._post_loop = None
        self._post_thread = None

    def _background_loop(self) -> asyncio.AbstractEventLoop:
        # One long-lived loop, so store clients stay bound to a loop that is open.
        if self._post_loop is None:
            self._post_loop = asyncio.new_event_loop()
            self._post_thread = threading.Thread(
                target=self._post_loop.run_forever, name="terminal-posts", daemon=True
            )
            self._post_thread.start()
        return self._post_loop
