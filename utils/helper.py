import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from models.schema import DayRecord, PunchEvent

TODAY_PUNCHES_KEY = "today_punches"
TODAY_DATE_KEY = "today_date_key"
HISTORY_KEY = "history"
HISTORY_BACKUP_KEY = "history_unreadable"

DATE_KEY_FORMAT = "%d/%m/%Y"
DISPLAY_TIME_FORMAT = "%H:%M"

_punch_list = TypeAdapter(List[PunchEvent])


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """Dict-backed store, used by tests and as a scratch store."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """
    Key-value store kept in a single JSON object on disk.
    Every write rewrites the whole file; an unreadable file is treated as empty.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.data: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logging.warning(f"Unreadable store file {self.path}, starting empty: {e}")
            return {}
        if not isinstance(raw, dict):
            logging.warning(f"Store file {self.path} does not hold an object, starting empty")
            return {}
        return {k: v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        # write aside and swap in, so a crash never leaves a half-written file
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(self.data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if self.data.pop(key, None) is not None:
            self._flush()


def now() -> datetime:
    return datetime.now()


def format_date_key(d: date) -> str:
    return d.strftime(DATE_KEY_FORMAT)


def format_display_time(moment: datetime) -> str:
    return moment.strftime(DISPLAY_TIME_FORMAT)


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def parse_date_key(key: str) -> Optional[tuple]:
    """Returns (day, month, year) or None when the key is not three integers."""
    parts = key.split("/")
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(p) for p in parts)
    except ValueError:
        return None
    return day, month, year


def load_punches(store: KeyValueStore) -> Optional[List[PunchEvent]]:
    raw = store.get(TODAY_PUNCHES_KEY)
    if raw is None:
        return None
    try:
        return _punch_list.validate_json(raw)
    except ValidationError as e:
        logging.warning(f"Corrupt '{TODAY_PUNCHES_KEY}' entry ignored: {e.error_count()} error(s)")
        return None


def load_history(store: KeyValueStore) -> Optional[List[DayRecord]]:
    """Valid entries only; a bad entry is skipped without dropping the rest."""
    raw = store.get(HISTORY_KEY)
    if raw is None:
        return None
    try:
        entries = json.loads(raw)
    except json.JSONDecodeError as e:
        logging.warning(f"Corrupt '{HISTORY_KEY}' entry ignored: {e}")
        return None
    if not isinstance(entries, list):
        logging.warning(f"Corrupt '{HISTORY_KEY}' entry ignored: expected a list")
        return None

    history = []
    for idx, entry in enumerate(entries):
        try:
            history.append(DayRecord.model_validate(entry))
        except ValidationError as e:
            logging.warning(f"History entry {idx} skipped: {e.error_count()} error(s)")
    return history


def load_date_key(store: KeyValueStore) -> Optional[str]:
    return store.get(TODAY_DATE_KEY) or None


def save_punches(store: KeyValueStore, punches: List[PunchEvent], date_key: str) -> None:
    store.set(TODAY_PUNCHES_KEY, _punch_list.dump_json(punches, by_alias=True).decode("utf-8"))
    store.set(TODAY_DATE_KEY, date_key)


def append_history(store: KeyValueStore, record: DayRecord) -> None:
    """
    Appends to the stored array as-is, so entries that failed validation on
    load are kept verbatim. An unreadable value is moved aside before a fresh
    array is started.
    """
    raw = store.get(HISTORY_KEY)
    entries = []
    if raw is not None:
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError:
            entries = None
        if not isinstance(entries, list):
            logging.warning(f"Unreadable '{HISTORY_KEY}' moved to '{HISTORY_BACKUP_KEY}'")
            store.set(HISTORY_BACKUP_KEY, raw)
            entries = []
    entries.append(record.model_dump())
    store.set(HISTORY_KEY, json.dumps(entries, ensure_ascii=False))
