from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Optional


@dataclass(frozen=True)
class WorkflowTransitionEvent:
    """
    An applied workflow transition, consumed by notification fan-out.

    Carries the application identifiers the notification templates need so
    fan-out does not have to re-read the application.
    """
    application_id: str
    reference: str
    application_type: str
    title: str
    entity_name: Optional[str]
    submitted_by: int
    from_state: str
    to_state: str
    action: str
    actor_id: int
    version: int
    timestamp: datetime

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data
