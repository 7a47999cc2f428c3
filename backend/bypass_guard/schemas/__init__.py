"""Pydantic/SQLModel request and response schemas."""
