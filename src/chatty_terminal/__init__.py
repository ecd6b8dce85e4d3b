"""Terminal-style chat client with command interpreter and history polling."""

__version__ = "0.1.0"
