import time
import datetime

from .config import DATA_FILE
from .errors import PersistenceError
from .store import SessionStore
from .utils import seconds_to_hhmmss, today_bounds


def _sessions_today(store: SessionStore, today: datetime.date | None):
    start, end = today_bounds(today)
    return [s for s in store.list_sessions() if start <= s.start_time < end]


def total_focus_time_today(store: SessionStore, now: int | None = None, today: datetime.date | None = None) -> int:
    now = int(time.time()) if now is None else now
    return sum(s.duration(now) for s in _sessions_today(store, today))


def total_distractions_today(store: SessionStore, today: datetime.date | None = None) -> int:
    return sum(s.distraction_attempts for s in _sessions_today(store, today))


def total_focus_sessions_today(store: SessionStore, today: datetime.date | None = None) -> int:
    return len(_sessions_today(store, today))


def main() -> int:
    store = SessionStore(DATA_FILE)
    try:
        store.load()
    except PersistenceError as e:
        print(f"Failed to open store: {e}")
        return 1
    print(f"Focus time today: {seconds_to_hhmmss(total_focus_time_today(store))}")
    print(f"Distractions today: {total_distractions_today(store)}")
    print(f"Focus sessions today: {total_focus_sessions_today(store)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
