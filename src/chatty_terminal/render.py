"""HTML rendering for prompts, history lines and terminal theme state.

All helpers are pure functions: they read the values passed in and return
markup strings. Colors refer to the CSS variables the terminal page defines
(``--secondary-text`` for the user, ``--tertiary-text`` for the path,
``--primary-text`` for the prompt symbol).
"""

import html
import re

from .core import Message, ThemeState

LINE_BREAK = "<br />"

USER_COLOR = "var(--secondary-text)"
PATH_COLOR = "var(--tertiary-text)"
PS1_COLOR = "var(--primary-text)"

_TAG_RE = re.compile(r"<[^>]+>")


def render_prompt(user: str, system: str, path: str, ps1: str = "$") -> str:
    """Render ``user@system:path$`` as colored spans.

    The result always ends with ``>``; the argument parser relies on that to
    detect that an input ends exactly at a line boundary.
    """
    return (
        f'<span style="color: {USER_COLOR}">{html.escape(user)}@{html.escape(system)}:</span>'
        f'<span style="color: {PATH_COLOR}">{html.escape(path)}</span>'
        f'<span style="color: {PS1_COLOR}">{html.escape(ps1)}</span>'
    )


def render_message(message: Message, ps1: str = "$", location: str = "") -> str:
    """Render one stored message as a history line.

    Formatted as ``alias@at:<location><ps1> content``. Underscores in the
    content are turned back into spaces, undoing the URL-safe substitution
    applied before the message was posted.
    """
    content = message.content.replace("_", " ")
    return (
        f'<div><span style="color: {USER_COLOR}">{html.escape(message.alias)}'
        f"@{html.escape(message.at)}:</span>"
        f'<span style="color: {PATH_COLOR}">{html.escape(location)}</span>'
        f'<span style="color: {PS1_COLOR}">{html.escape(ps1)}</span>'
        f" {html.escape(content)}</div>"
    )


def stdout_style(theme: ThemeState) -> str:
    """Inline style of the output pane."""
    return f"background: {theme.background}; color: {theme.foreground};"


def page_style(theme: ThemeState) -> str:
    """Inline style of the page root (global light/dark filter)."""
    return f"filter: {theme.filter};"


def plain_text(markup: str) -> str:
    """Strip tags and unescape entities, for console output."""
    return html.unescape(_TAG_RE.sub("", markup))
