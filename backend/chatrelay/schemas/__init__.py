"""Schemas — Pydantic models for the HTTP boundary."""
