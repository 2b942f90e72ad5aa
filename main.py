import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

from models.schema import ClockSummary, DailyStats, DayRecord, LedgerState, PunchEvent, PunchKind
from utils.helper import (
    KeyValueStore,
    TODAY_DATE_KEY,
    TODAY_PUNCHES_KEY,
    append_history,
    format_date_key,
    format_display_time,
    load_date_key,
    load_history,
    load_punches,
    now,
    parse_date_key,
    save_punches,
    to_epoch_ms,
)
from utils.report import render_report_pdf, report_filename

DAILY_GOAL_MINUTES = 8 * 60

KIND_SEQUENCE = [PunchKind.ENTRY, PunchKind.BREAK_START, PunchKind.BREAK_END, PunchKind.EXIT]
OPENING_KINDS = {PunchKind.ENTRY, PunchKind.BREAK_END}
CLOSING_KINDS = {PunchKind.BREAK_START, PunchKind.EXIT}


def determine_punch_kind(count: int) -> PunchKind:
    if count < len(KIND_SEQUENCE):
        return KIND_SEQUENCE[count]
    return PunchKind.EXTRA_ENTRY


def compute_daily(punches: List[PunchEvent]) -> DailyStats:
    """
    Worked minutes over closed periods only. A period left open at the end
    of the list counts for nothing. ExtraEntry punches neither open nor close.
    """
    # stored newest-first; reverse before sorting so ties keep creation order
    chronological = sorted(reversed(punches), key=lambda p: p.timestamp)
    minutes_worked = 0
    entry_time = None

    for punch in chronological:
        if punch.kind in OPENING_KINDS:
            if entry_time is None:
                entry_time = punch.timestamp
        elif punch.kind in CLOSING_KINDS and entry_time is not None:
            minutes_worked += (punch.timestamp - entry_time) // 60000
            entry_time = None

    return DailyStats(minutes_worked=minutes_worked, balance=minutes_worked - DAILY_GOAL_MINUTES)


def compute_monthly_balance(today_balance: int, history: List[DayRecord], reference_date: date) -> int:
    monthly_balance = today_balance
    for day in history:
        parsed = parse_date_key(day.date)
        if parsed is None:
            logging.debug(f"Skipping history entry with malformed date key: {day.date!r}")
            continue
        _, month, year = parsed
        if month == reference_date.month and year == reference_date.year:
            monthly_balance += day.balance
    return monthly_balance


def format_minutes(minutes: int) -> str:
    sign = "-" if minutes < 0 else ""
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"


def archive_day(history: List[DayRecord], date_key: str, punches: List[PunchEvent]) -> Optional[DayRecord]:
    if any(h.date == date_key for h in history):
        logging.warning(f"Day {date_key} already archived, skipping")
        return None
    record = DayRecord(date=date_key, balance=compute_daily(punches).balance)
    history.append(record)
    logging.info(f"Archived day {date_key} with balance {record.balance} min")
    return record


def initialize(
    persisted_today: Optional[List[PunchEvent]],
    persisted_date_key: Optional[str],
    persisted_history: Optional[List[DayRecord]],
    today_key: str,
) -> LedgerState:
    history = list(persisted_history) if persisted_history else []

    if persisted_today is not None and persisted_date_key == today_key:
        return LedgerState(today_punches=list(persisted_today), date_key=today_key, history=history)

    if persisted_today is not None and persisted_date_key:
        archive_day(history, persisted_date_key, persisted_today)

    return LedgerState(today_punches=[], date_key=today_key, history=history)


def add_punch(today_punches: List[PunchEvent], moment: datetime) -> PunchEvent:
    timestamp = to_epoch_ms(moment)
    punch_id = timestamp
    if today_punches:
        punch_id = max(punch_id, max(p.id for p in today_punches) + 1)

    punch = PunchEvent(
        id=punch_id,
        display_time=format_display_time(moment),
        kind=determine_punch_kind(len(today_punches)),
        timestamp=timestamp,
    )
    today_punches.insert(0, punch)
    return punch


def clear_today(today_punches: List[PunchEvent]) -> List[PunchEvent]:
    today_punches.clear()
    return today_punches


class TimeClock:
    """Owns the ledger state; every mutation is written back to the store right away."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = now):
        self.store = store
        self.clock = clock
        self.state: Optional[LedgerState] = None

    def load(self) -> LedgerState:
        persisted_today = load_punches(self.store)
        persisted_history = load_history(self.store)
        persisted_date_key = load_date_key(self.store)
        today_key = format_date_key(self.clock().date())

        history_size = len(persisted_history or [])
        self.state = initialize(persisted_today, persisted_date_key, persisted_history, today_key)

        if len(self.state.history) != history_size:
            append_history(self.store, self.state.history[-1])
        if persisted_date_key != today_key:
            self.store.remove(TODAY_PUNCHES_KEY)
            self.store.set(TODAY_DATE_KEY, today_key)
        return self.state

    def _require_state(self) -> LedgerState:
        # a long-running host may cross midnight between calls
        if self.state is None or self.state.date_key != format_date_key(self.clock().date()):
            return self.load()
        return self.state

    def add_punch(self) -> PunchEvent:
        state = self._require_state()
        punch = add_punch(state.today_punches, self.clock())
        save_punches(self.store, state.today_punches, state.date_key)
        logging.info(f"Punch {punch.kind.value} registered at {punch.display_time}")
        return punch

    def clear_today(self) -> None:
        state = self._require_state()
        clear_today(state.today_punches)
        save_punches(self.store, state.today_punches, state.date_key)
        logging.info(f"Cleared punches for {state.date_key}")

    def summary(self) -> ClockSummary:
        state = self._require_state()
        stats = compute_daily(state.today_punches)
        monthly = compute_monthly_balance(stats.balance, state.history, self.clock().date())
        return ClockSummary(
            date_key=state.date_key,
            minutes_worked=stats.minutes_worked,
            balance=stats.balance,
            monthly_balance=monthly,
            worked_display=format_minutes(stats.minutes_worked),
            balance_display=format_minutes(stats.balance),
            monthly_display=format_minutes(monthly),
            punches=list(state.today_punches),
        )

    def report(self) -> Tuple[str, bytes]:
        state = self._require_state()
        chronological = list(reversed(state.today_punches))
        return report_filename(state.date_key), render_report_pdf(chronological, state.date_key)
