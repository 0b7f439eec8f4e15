"""Response models for the non-RPC endpoints."""

from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Liveness response for / and /health."""

    status: str
    server: str
    version: str
    timestamp: datetime
