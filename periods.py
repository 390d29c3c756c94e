from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Scope:
    month: int
    year: int

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def label(self) -> str:
        return self.start.strftime("%B %Y")

    def previous(self) -> "Scope":
        if self.month == 1:
            return Scope(12, self.year - 1)
        return Scope(self.month - 1, self.year)


def today_local(tz: Optional[str] = None) -> date:
    zone = ZoneInfo(tz or get_settings().timezone)
    return datetime.now(zone).date()


def resolve_scope(today: Optional[date] = None) -> Scope:
    today = today or today_local()
    return Scope(month=today.month, year=today.year)
