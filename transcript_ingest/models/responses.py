"""
Pydantic models for API responses
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TranscriptionResponse(BaseModel):
    """Successful transcription response"""
    transcription: str = Field(description="Transcribed text")
    message: str = Field(description="Status message")


class HealthCheckResponse(BaseModel):
    """Health Check Response"""
    status: str = Field(description="Service status (healthy/unhealthy)")
    timestamp: datetime = Field(description="Check time")
    version: str = Field(description="Service version")
    uptime_seconds: int = Field(description="Seconds since startup")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Pipeline configuration details"
    )


class ErrorResponse(BaseModel):
    """Standardized error response"""
    error: str = Field(description="Error type")
    message: str = Field(description="Error description")
    request_id: Optional[str] = Field(default=None, description="Request id for debugging")
    timestamp: datetime = Field(description="Error time")


class RateLimitResponse(BaseModel):
    """Rate Limit Exceeded Response"""
    error: str = Field(default="rate_limit_exceeded")
    message: str = Field(description="Rate limit message")
    retry_after: int = Field(description="Seconds until the next attempt")
    limit: int = Field(description="Request limit")
    window: int = Field(description="Window in seconds")
    timestamp: datetime = Field(description="Error time")
