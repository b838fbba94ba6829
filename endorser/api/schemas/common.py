"""
Pydantic schemas for the liveness probe.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EndorsementStatus(BaseModel):
    account: Optional[str] = None
    last_endorse_height: int = 0
    last_submitted_height: int = 0
    network_launched: bool = False


class HealthCheckResponse(BaseModel):
    """Validator health report."""
    status: str = Field(description="healthy or unhealthy")
    version: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    endorsement: EndorsementStatus
    scheduler: Dict[str, Any] = Field(default_factory=dict)
