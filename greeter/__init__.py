"""Greets known people seen on a webcam, at most once per cooldown window."""

__version__ = "0.1.0"
