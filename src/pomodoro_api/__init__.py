"""Pomodoro timer with a REST API for per-user preferences and custom presets."""

__version__ = "0.1.0"
