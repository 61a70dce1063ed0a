"""
Common schemas for API responses and error handling.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Schema for detailed error information."""

    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    suggestions: Optional[List[str]] = Field(None, description="Helpful suggestions for resolving the error")


class ErrorResponse(BaseModel):
    """Schema for API error responses."""

    error: ErrorDetail

    class Config:
        json_schema_extra = {
            "examples": [
                {
                    "error": {
                        "code": "QUOTA_EXCEEDED",
                        "message": "Seat limit exceeded. You already reserved 1 seat(s). Max total is 2.",
                        "details": {"already": 1, "requested": 2, "quota": 2},
                        "suggestions": ["You can reserve at most 1 more seat(s)"]
                    }
                },
                {
                    "error": {
                        "code": "SEATS_UNAVAILABLE",
                        "message": "Seats unavailable: A1",
                        "details": {"conflicting_ids": ["A1"]}
                    }
                }
            ]
        }


class HealthStatus(BaseModel):
    """Schema for health check responses."""

    status: str = Field(..., description="Overall health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: str = Field(..., description="Health check timestamp")
