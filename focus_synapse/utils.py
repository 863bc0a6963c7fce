import os
import uuid
import datetime

from .errors import ClockError


def ensure_dir(path: str) -> None:
    if path:
        os.makedirs(path, exist_ok=True)


def seconds_to_hhmmss(seconds: float) -> str:
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def epoch_seconds(clock) -> int:
    value = clock()
    if value < 0:
        raise ClockError(f"system clock is before the epoch ({value})")
    return int(value)


def new_id() -> str:
    return str(uuid.uuid4())


def today_bounds(today: datetime.date | None = None) -> tuple[int, int]:
    # Local midnight to local midnight, as epoch seconds
    day = today or datetime.date.today()
    start = datetime.datetime.combine(day, datetime.time.min)
    end = start + datetime.timedelta(days=1)
    return int(start.timestamp()), int(end.timestamp())
