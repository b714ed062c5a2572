# File: slotwise/models/hosts.py

from dataclasses import dataclass

from slotwise.core.errors import ValidationError
from .common import get_timezone


@dataclass
class Host:
    """A team member who can be booked for an event type."""
    user_id: str
    is_fixed: bool = False
    priority: int = 2   # higher wins ties
    weight: float = 100.0
    timezone: str = "UTC"

    def __post_init__(self):
        self.user_id = str(self.user_id)
        if self.weight <= 0:
            raise ValidationError(f"Host weight must be positive: {self.user_id}", field="weight")
        get_timezone(self.timezone)


def host_from_dict(data: dict) -> Host:
    """Create Host from dictionary with loose boolean parsing."""
    raw_fixed = str(data.get('is_fixed', data.get('isFixed', False))).lower()
    return Host(
        user_id=str(data.get('user_id', data.get('userId', data.get('id', '')))),
        is_fixed=raw_fixed in ['yes', 'true', '1', 'y', 't'],
        priority=int(data.get('priority', 2)),
        weight=float(data.get('weight', 100)),
        timezone=data.get('timezone', data.get('timeZone', 'UTC')),
    )
