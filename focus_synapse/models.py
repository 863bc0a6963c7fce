import copy
from dataclasses import dataclass, field

from .utils import new_id

STATUS_ALLOWED = "allowed"
STATUS_BLOCKED = "blocked"


@dataclass
class FocusSession:
    start_time: int
    work_apps: list[str] = field(default_factory=list)
    end_time: int | None = None
    distraction_attempts: int = 0
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if self.end_time is not None and self.end_time < self.start_time:
            self.end_time = self.start_time

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def apps_key(self) -> tuple[str, ...]:
        return tuple(sorted({a.lower() for a in self.work_apps}))

    def add_work_app(self, name: str) -> bool:
        if name in self.work_apps:
            return False
        self.work_apps.append(name)
        return True

    def record_distraction(self) -> int:
        self.distraction_attempts += 1
        return self.distraction_attempts

    def finish(self, end_time: int) -> None:
        # A clock stepping backwards must not produce end < start
        self.end_time = max(int(end_time), self.start_time)

    def duration(self, now: int) -> int:
        end = self.end_time if self.end_time is not None else now
        return max(0, end - self.start_time)

    def clone(self) -> "FocusSession":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_time": int(self.start_time),
            "end_time": None if self.end_time is None else int(self.end_time),
            "work_apps": list(self.work_apps),
            "distraction_attempts": int(self.distraction_attempts),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FocusSession":
        apps = data.get("work_apps") or []
        if isinstance(apps, str):
            apps = [a for a in apps.split(",") if a]
        end = data.get("end_time")
        return cls(
            id=str(data["id"]),
            start_time=int(data["start_time"]),
            end_time=None if end is None else int(end),
            work_apps=[str(a) for a in apps],
            distraction_attempts=max(0, int(data.get("distraction_attempts") or 0)),
        )


@dataclass
class AppUsageEvent:
    process_name: str
    status: str
    start_time: int
    end_time: int
    session_id: str | None = None
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if self.end_time < self.start_time:
            self.end_time = self.start_time

    @property
    def duration_secs(self) -> int:
        return self.end_time - self.start_time

    def close(self, end_time: int, status: str) -> None:
        self.end_time = max(int(end_time), self.start_time)
        self.status = status

    def clone(self) -> "AppUsageEvent":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "process_name": self.process_name,
            "status": self.status,
            "session_id": self.session_id,
            "start_time": int(self.start_time),
            "end_time": int(self.end_time),
            "duration_secs": self.duration_secs,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AppUsageEvent":
        start = int(data["start_time"])
        end = data.get("end_time")
        sid = data.get("session_id")
        return cls(
            id=str(data["id"]),
            process_name=str(data["process_name"]),
            status=str(data.get("status") or STATUS_ALLOWED),
            start_time=start,
            end_time=start if end is None else int(end),
            session_id=None if sid is None else str(sid),
        )


@dataclass(frozen=True)
class ClosedInterval:
    app: str
    start: int
    end: int
    event_id: str | None = None

    @property
    def duration(self) -> int:
        return self.end - self.start
