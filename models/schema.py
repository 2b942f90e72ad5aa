from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class PunchKind(str, Enum):
    ENTRY = "Entry"
    BREAK_START = "BreakStart"
    BREAK_END = "BreakEnd"
    EXIT = "Exit"
    EXTRA_ENTRY = "ExtraEntry"


class PunchEvent(BaseModel):
    """A single clock-in/out event. Serialized as {id, time, type, timestamp}."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    display_time: str = Field(alias="time")
    kind: PunchKind = Field(alias="type")
    timestamp: int  # epoch milliseconds


class DayRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str  # DD/MM/YYYY
    balance: int


class DailyStats(BaseModel):
    minutes_worked: int
    balance: int


class LedgerState(BaseModel):
    today_punches: List[PunchEvent] = []
    date_key: str
    history: List[DayRecord] = []


class ClockSummary(BaseModel):
    date_key: str
    minutes_worked: int
    balance: int
    monthly_balance: int
    worked_display: str
    balance_display: str
    monthly_display: str
    punches: List[PunchEvent]
