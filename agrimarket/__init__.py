"""Agrimarket dashboard service: widgets, marketplace and the AI farm assistant."""

__version__ = "1.0.0"
