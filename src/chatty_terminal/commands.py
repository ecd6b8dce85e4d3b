"""Command table and the built-in shell commands.

Every command runs on every processed input, in registration order. A command
receives the rendered input text, decides through the terminal's argument
parser whether it applies, performs its side effects and returns the
(possibly rewritten) text.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from .render import LINE_BREAK

logger = logging.getLogger(__name__)

Transform = Callable[[str], str]

HELP_DIALOG = LINE_BREAK.join([
    "Example Commands:",
    "",
    "cd $LOCATION",
    "color $COLOR",
    "text $COLOR",
    "darkmode",
    "lightmode",
    "echo $STRING",
])

LIGHT_FILTER = "brightness(1.1) greyscale(.2)"
DARK_FILTER = "invert(1)"


@dataclass(frozen=True)
class Command:
    """A named transform plus any extra words that trigger it."""

    name: str
    transform: Transform
    keywords: tuple = ()

    def apply(self, text: str) -> str:
        return self.transform(text)

    @property
    def triggers(self) -> tuple:
        return (self.name, *self.keywords)


class CommandRegistry:
    """Ordered, mutable mapping of command name to Command."""

    def __init__(self, commands: Iterable[Command] = ()):
        self._commands: dict[str, Command] = {}
        for command in commands:
            self.register(command)

    def register(self, command: Command) -> Command:
        if not command.name or any(ch.isspace() for ch in command.name):
            raise ValueError(f"Invalid command name: {command.name!r}")
        self._commands[command.name] = command
        logger.debug("Registered command %s", command.name)
        return command

    def add(self, name: str, transform: Transform, keywords: Iterable[str] = ()) -> Command:
        """Register ``transform`` under ``name``; re-adding keeps the original position."""
        return self.register(Command(name, transform, tuple(keywords)))

    def remove(self, name: str) -> Optional[Command]:
        """Delete a command. Unknown names are ignored."""
        command = self._commands.pop(name, None)
        if command is None:
            logger.debug("No command named %s to remove", name)
        return command

    def names(self) -> list[str]:
        return list(self._commands)

    def triggers(self) -> set:
        """All names and keywords that mark a line as a command."""
        words = set()
        for command in self._commands.values():
            words.update(command.triggers)
        return words

    def run(self, text: str) -> str:
        for command in list(self._commands.values()):
            text = command.apply(text)
        return text

    def __contains__(self, name) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[Command]:
        return iter(list(self._commands.values()))

    def __len__(self) -> int:
        return len(self._commands)


def pop_prompt(text: str, prompt: str) -> str:
    """Remove the trailing prompt (and the line break before it) from ``text``."""
    for suffix in (prompt + " ", prompt):
        if text.endswith(suffix):
            text = text[: -len(suffix)]
            break
    if text.endswith(LINE_BREAK):
        text = text[: -len(LINE_BREAK)]
    return text


def builtin_commands(terminal) -> list[Command]:
    """Create the default command set bound to ``terminal``.

    The commands read the terminal's ``parser``, ``session`` and ``theme``
    and may set its ``directory_changed`` flag.
    """
    parser = terminal.parser
    theme = terminal.theme

    def echo(text):
        arg = parser.parse(text, "echo", True)
        if arg:
            prompt = terminal.prompt()
            return f"{pop_prompt(text, prompt)}{LINE_BREAK}{arg}{LINE_BREAK}{prompt} "
        return text

    def help_(text):
        if parser.parse(text, "help"):
            prompt = terminal.prompt()
            # No trailing space: the dialog itself must never parse as a line.
            return f"{pop_prompt(text, prompt)}{LINE_BREAK}{HELP_DIALOG}{LINE_BREAK}{prompt}"
        return text

    def color(text):
        arg = parser.parse(text, "color", True)
        if arg:
            theme.background = arg
        return text

    def text_color(text):
        arg = parser.parse(text, "text", True)
        if arg:
            theme.foreground = arg
        return text

    def toggle_theme(text):
        for mode, page_filter in (("lightmode", LIGHT_FILTER), ("darkmode", DARK_FILTER)):
            if not parser.parse(text, mode):
                continue
            if theme.mode == mode:
                theme.reset()
            else:
                theme.background = "white"
                theme.foreground = "#121212"
                theme.filter = page_filter
                theme.mode = mode
        return text

    def cd(text):
        arg = parser.parse(text, "cd ", True)
        if arg:
            terminal.session.path += f"/{arg}"
            terminal.directory_changed = True
        return text

    return [
        Command("echo", echo),
        Command("help", help_),
        Command("color", color),
        Command("text", text_color),
        Command("theme", toggle_theme, ("lightmode", "darkmode")),
        Command("cd", cd),
    ]
