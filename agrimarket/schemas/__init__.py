"""Pydantic schemas for API payloads and view state."""
