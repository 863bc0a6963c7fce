import os
import json
import logging
import threading

from .config import LOGGER_NAME
from .errors import PersistenceError
from .models import AppUsageEvent, FocusSession
from .utils import ensure_dir

SCHEMA_VERSION = 1


class SessionStore:
    def __init__(self, path: str | None = None, logger: logging.Logger | None = None):
        self._path = path
        self._logger = logger or logging.getLogger(LOGGER_NAME)
        self._lock = threading.RLock()
        self._sessions: dict[str, dict] = {}
        self._events: dict[str, dict] = {}

    @property
    def path(self) -> str | None:
        return self._path

    def load(self) -> None:
        if self._path is None:
            return
        ensure_dir(os.path.dirname(os.path.abspath(self._path)))
        if not os.path.exists(self._path):
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"failed to load store {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"store {self._path} must hold a JSON object")
        raw_sessions = data.get("sessions") or {}
        raw_events = data.get("usage_events") or {}
        if not isinstance(raw_sessions, dict) or not isinstance(raw_events, dict):
            raise PersistenceError(f"store {self._path} has malformed sessions or usage_events")

        sessions: dict[str, dict] = {}
        for raw in raw_sessions.values():
            try:
                s = FocusSession.from_dict(raw)
            except (AttributeError, KeyError, TypeError, ValueError):
                self._logger.warning(f"Skipping malformed session record: {raw!r}")
                continue
            sessions[s.id] = s.to_dict()

        events: dict[str, dict] = {}
        for raw in raw_events.values():
            try:
                e = AppUsageEvent.from_dict(raw)
            except (AttributeError, KeyError, TypeError, ValueError):
                self._logger.warning(f"Skipping malformed usage event record: {raw!r}")
                continue
            events[e.id] = e.to_dict()

        with self._lock:
            self._sessions = sessions
            self._events = events
        self._logger.info(f"Store loaded sessions={len(sessions)} usage_events={len(events)}")

    def save(self) -> None:
        if self._path is None:
            return
        with self._lock:
            data = {
                "schema": SCHEMA_VERSION,
                "sessions": self._sessions,
                "usage_events": self._events,
            }
            tmp = f"{self._path}.tmp"
            try:
                ensure_dir(os.path.dirname(os.path.abspath(self._path)))
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp, self._path)
            except (OSError, TypeError, ValueError) as e:
                raise PersistenceError(f"failed to save store {self._path}: {e}") from e

    # Sessions
    def insert_session(self, session: FocusSession) -> None:
        with self._lock:
            self._sessions[session.id] = session.to_dict()
            self.save()

    def update_session(
        self,
        session_id: str,
        end_time: int | None,
        work_apps: list[str],
        distraction_attempts: int,
    ) -> None:
        with self._lock:
            rec = self._require_session(session_id)
            rec["end_time"] = None if end_time is None else int(end_time)
            rec["work_apps"] = list(work_apps)
            rec["distraction_attempts"] = int(distraction_attempts)
            self.save()

    def update_distraction_count(self, session_id: str, count: int) -> None:
        with self._lock:
            rec = self._require_session(session_id)
            rec["distraction_attempts"] = int(count)
            self.save()

    def upsert_sessions(self, sessions: list[FocusSession]) -> None:
        with self._lock:
            for s in sessions:
                self._sessions[s.id] = s.to_dict()
            self.save()

    def remove_sessions(self, session_ids) -> None:
        with self._lock:
            for sid in session_ids:
                self._sessions.pop(sid, None)
            self.save()

    def get_session(self, session_id: str) -> FocusSession | None:
        with self._lock:
            rec = self._sessions.get(session_id)
            return FocusSession.from_dict(rec) if rec else None

    def list_sessions(self) -> list[FocusSession]:
        with self._lock:
            items = [FocusSession.from_dict(r) for r in self._sessions.values()]
        return sorted(items, key=lambda s: (s.start_time, s.id))

    # Usage events
    def insert_usage_event(self, event: AppUsageEvent) -> None:
        with self._lock:
            self._events[event.id] = event.to_dict()
            self.save()

    def update_usage_event(
        self,
        event_id: str,
        end_time: int,
        duration_secs: int,
        status: str | None = None,
    ) -> None:
        with self._lock:
            rec = self._events.get(event_id)
            if rec is None:
                raise PersistenceError(f"unknown usage event {event_id}")
            rec["end_time"] = int(end_time)
            rec["duration_secs"] = int(duration_secs)
            if status is not None:
                rec["status"] = status
            self.save()

    def list_usage_events(self) -> list[AppUsageEvent]:
        with self._lock:
            items = [AppUsageEvent.from_dict(r) for r in self._events.values()]
        return sorted(items, key=lambda e: (e.start_time, e.id))

    def usage_events_for_session(self, session_id: str) -> list[AppUsageEvent]:
        return [e for e in self.list_usage_events() if e.session_id == session_id]

    def _require_session(self, session_id: str) -> dict:
        rec = self._sessions.get(session_id)
        if rec is None:
            raise PersistenceError(f"unknown session {session_id}")
        return rec
