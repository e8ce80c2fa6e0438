"""Core schemas for the application."""

from typing import Any, Dict

from pydantic import BaseModel


class HealthCheck(BaseModel):
    """Schema for health check response."""
    service_name: str
    status: str
    database: str


class ErrorResponse(BaseModel):
    """Body rendered for every LedgerError."""
    error_code: str
    message: str
    details: Dict[str, Any] = {}
