"""
Pydantic schema for the audit trail.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from alphafund.engine.state import EventKind


class EventResponse(BaseModel):
    id: int
    kind: EventKind
    account: Optional[str] = None
    amount: int
    shares: int
    proposal_id: Optional[int] = None
    data: Dict[str, Any]
    ledger_time: Optional[int] = None
    recorded_at: datetime

    model_config = ConfigDict(from_attributes=True)
