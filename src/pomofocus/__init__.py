"""Pomofocus: a Pomodoro timer with task tracking and usage statistics."""

__version__ = "0.1.0"
