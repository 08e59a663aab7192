"""SQLAlchemy ORM models."""

from ckflow.models.base import Base
from ckflow.models.bay import BayRow
from ckflow.models.repair_order import RepairOrderRow
from ckflow.models.event_log import EventLogRow
from ckflow.models.calendar_event import CalendarEventRow
from ckflow.models.profile import Profile

__all__ = [
    "Base", "BayRow", "RepairOrderRow", "EventLogRow", "CalendarEventRow", "Profile",
]
