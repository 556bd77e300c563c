"""Input validation and throttling helpers."""
