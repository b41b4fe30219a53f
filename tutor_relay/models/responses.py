"""Pydantic models for API response serialization."""
from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error body: ``{"error": "...", "code": "..."}``."""
    error: str = Field(..., description="Caller-safe error message")
    code: str = Field(default="internal_error", description="Machine-readable error kind")


class HealthResponse(BaseModel):
    """Body of GET /health."""
    status: str
    version: str
    dependencies: dict[str, str] = Field(default_factory=dict)
