from .models import ClosedInterval
from .utils import new_id


class UsageTracker:
    """Follows which single process holds focus and emits an interval when it changes."""

    def __init__(self):
        self.current_app: str | None = None
        self.current_app_start: int | None = None
        self.last_open_event_id: str | None = None

    def observe(self, process_name: str, now: int) -> ClosedInterval | None:
        if self.current_app is None:
            self._begin(process_name, now)
            return None
        if process_name == self.current_app:
            return None
        closed = self._close(now)
        self._begin(process_name, now)
        return closed

    def finalize(self, now: int) -> ClosedInterval | None:
        if self.current_app is None:
            return None
        closed = self._close(now)
        self.reset()
        return closed

    def reset(self) -> None:
        self.current_app = None
        self.current_app_start = None
        self.last_open_event_id = None

    def _begin(self, process_name: str, now: int) -> None:
        self.current_app = process_name
        self.current_app_start = now
        self.last_open_event_id = new_id()

    def _close(self, now: int) -> ClosedInterval:
        start = self.current_app_start if self.current_app_start is not None else now
        return ClosedInterval(
            app=self.current_app,
            start=start,
            end=max(now, start),
            event_id=self.last_open_event_id,
        )
