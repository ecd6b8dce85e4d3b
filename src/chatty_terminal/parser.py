"""Argument parsing over the rendered terminal transcript."""

from typing import Callable, Optional, Union

from .render import LINE_BREAK

DECODED = "decoded"


class ArgumentParser:
    """Find command keywords and their positional argument on the current line.

    The current line is the segment between the last two prompts of the
    rendered text. It only counts while the text still ends right after a
    freshly rendered prompt, i.e. the user just pressed enter; half-typed
    lines are never parsed.

    By default a keyword matches anywhere inside the line ("cd" is found in
    "abcd"), which is how the terminal always behaved. With ``strict=True``
    the keyword has to be the first whitespace-separated token instead.
    """

    def __init__(self, prompt: Callable[[], str], strict: bool = False):
        self._prompt = prompt
        self.strict = strict

    def current_line(self, text: str) -> Optional[str]:
        """Return the most recently entered line, or None mid-render."""
        segments = text.replace(LINE_BREAK, "").split(self._prompt())
        if len(segments) < 2:
            return None
        current = segments[-2]
        if not current or len(text) < 2 or text[-2] != ">":
            return None
        return current

    def parse(
        self, text: str, command: str, wants_argument: bool = False
    ) -> Union[str, bool, None]:
        """Check the current line for ``command``.

        Returns the trimmed line for the special name ``"decoded"``. Otherwise
        returns True (presence only) or the remaining text with the keyword
        removed (``wants_argument``), and None if the command is absent.
        """
        current = self.current_line(text)
        if current is None:
            return None
        if command == DECODED:
            return current.strip()
        if self.strict:
            return self._match_token(current, command, wants_argument)
        if command not in current:
            return None
        if not wants_argument:
            return True
        return current.replace(command, "", 1).strip()

    @staticmethod
    def _match_token(current, command, wants_argument):
        keyword = command.strip()
        line = current.strip()
        tokens = line.split(None, 1)
        if not tokens or tokens[0] != keyword:
            return None
        if not wants_argument:
            return True
        return tokens[1].strip() if len(tokens) > 1 else ""
