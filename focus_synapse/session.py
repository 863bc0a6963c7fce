import logging

from .config import LOGGER_NAME
from .errors import PersistenceError
from .models import STATUS_ALLOWED, STATUS_BLOCKED, AppUsageEvent, ClosedInterval, FocusSession
from .notifier import Notifier
from .rules import RuleSet
from .store import SessionStore
from .usage_tracker import UsageTracker


class SessionStateMachine:
    """Turns focus samples into focus sessions, usage events and distraction counts.

    Idle -> Active when any work app is running, Active -> Idle when none is
    left (or on shutdown). Not thread safe on its own: the orchestrator holds
    one lock around every call.
    """

    def __init__(
        self,
        rules: RuleSet,
        store: SessionStore,
        notifier: Notifier | None = None,
        logger: logging.Logger | None = None,
    ):
        self.rules = rules
        self._store = store
        self._notifier = notifier
        self._logger = logger or logging.getLogger(LOGGER_NAME)

        self.tracker = UsageTracker()
        self.current_session: FocusSession | None = None
        self.last_distraction_app: str | None = None
        self.last_checked_process: str | None = None
        self.last_blocked = False

        self._allowances: dict[str, int] = {}
        self._open_event: AppUsageEvent | None = None
        self._session_saved = False
        self._session_dirty = False

        self._out_sessions: list[FocusSession] = []
        self._out_events: list[AppUsageEvent] = []

    # Rules and allowances
    def set_rules(self, rules: RuleSet) -> None:
        self.rules = rules

    def snooze(self, app_name: str, duration_secs: int, now: int) -> int:
        allowed_until = now + max(0, int(duration_secs))
        self._allowances[app_name.lower()] = allowed_until
        self._logger.info(f"Snoozing app={app_name} until={allowed_until}")
        return allowed_until

    def is_temporarily_allowed(self, app_name: str, now: int) -> bool:
        key = app_name.lower()
        allowed_until = self._allowances.get(key)
        if allowed_until is None:
            return False
        if now < allowed_until:
            return True
        del self._allowances[key]
        self._logger.info(f"Allowance expired app={app_name}")
        return False

    def is_blocked(self, app_name: str, now: int) -> bool:
        if not self.rules.is_blocked(app_name):
            return False
        return not self.is_temporarily_allowed(app_name, now)

    def any_work_app_running(self, running: list[str]) -> bool:
        return any(self.rules.is_work_app(name) for name in running)

    # Tick
    def tick(self, running: list[str] | None, foreground: str | None, now: int) -> FocusSession | None:
        if running is None:
            # Without a process list there is no basis to start or end a session
            self.lose_focus()
            return None

        any_work = self.any_work_app_running(running)
        if any_work:
            self.start_session_if_needed(running, now)

        if foreground:
            self.observe_foreground(foreground, running, now)
        else:
            self.lose_focus()

        return self.close_if_idle(any_work, now)

    def start_session_if_needed(self, running: list[str], now: int) -> FocusSession | None:
        if self.current_session is not None:
            return None

        work_apps: list[str] = []
        for name in running:
            if self.rules.is_work_app(name) and name not in work_apps:
                work_apps.append(name)

        session = FocusSession(start_time=now, work_apps=work_apps)
        self.current_session = session
        self._session_saved = False
        self._session_dirty = False
        self._logger.info(f"Focus session started id={session.id} apps={work_apps}")

        self._write_session()
        self._out_sessions.append(session.clone())
        return session

    def observe_foreground(self, proc_name: str, running: list[str], now: int) -> None:
        blocked = self.is_blocked(proc_name, now)

        closed = self.tracker.observe(proc_name, now)
        if closed is not None:
            self._close_interval(closed, now)
        if self._open_event is None or self._open_event.id != self.tracker.last_open_event_id:
            self._open_interval(proc_name, now)

        self.last_checked_process = proc_name
        self.last_blocked = blocked
        self._handle_distraction(proc_name, blocked)

        if self.current_session is not None:
            self._update_work_apps(running)

    def lose_focus(self) -> None:
        self.tracker.reset()
        self._open_event = None
        self.last_checked_process = None
        self.last_blocked = False
        self.last_distraction_app = None

    def close_if_idle(self, any_work_app_running: bool, now: int) -> FocusSession | None:
        if self.current_session is None or any_work_app_running:
            return None
        self._finalize_interval(now)
        return self._finish_session(now, reason="no work app running")

    def end_active_session(self, now: int) -> FocusSession | None:
        self._finalize_interval(now)
        if self.current_session is None:
            return None
        return self._finish_session(now, reason="shutdown")

    def drain_outbox(self) -> tuple[list[FocusSession], list[AppUsageEvent]]:
        sessions, events = self._out_sessions, self._out_events
        self._out_sessions, self._out_events = [], []
        return sessions, events

    # Internals
    def _handle_distraction(self, proc_name: str, blocked: bool) -> None:
        if not blocked:
            self.last_distraction_app = None
            return
        if self.last_distraction_app is not None and self.last_distraction_app == proc_name.lower():
            return

        session = self.current_session
        if session is None:
            return

        count = session.record_distraction()
        self._logger.info(f"Distraction app={proc_name} session={session.id} count={count}")
        if self._session_saved and not self._session_dirty:
            try:
                self._store.update_distraction_count(session.id, count)
            except PersistenceError:
                self._session_dirty = True
                self._logger.exception(f"Failed to persist distraction count session={session.id}")
        else:
            self._write_session()

        self._notify(proc_name)
        self.last_distraction_app = proc_name.lower()

    def _notify(self, proc_name: str) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(proc_name)
        except Exception:
            self._logger.warning(f"Distraction notice failed app={proc_name}", exc_info=True)

    def _update_work_apps(self, running: list[str]) -> None:
        session = self.current_session
        added = [n for n in running if self.rules.is_work_app(n) and session.add_work_app(n)]
        if added:
            self._logger.info(f"Session {session.id} work apps added={added}")
            self._write_session()

    def _open_interval(self, proc_name: str, now: int) -> None:
        session = self.current_session
        event = AppUsageEvent(
            id=self.tracker.last_open_event_id,
            process_name=proc_name,
            status=STATUS_BLOCKED if self.is_blocked(proc_name, now) else STATUS_ALLOWED,
            session_id=session.id if session is not None else None,
            start_time=self.tracker.current_app_start,
            end_time=self.tracker.current_app_start,
        )
        self._open_event = event
        try:
            self._store.insert_usage_event(event)
        except PersistenceError:
            self._logger.exception(f"Failed to persist usage event app={proc_name}")

    def _close_interval(self, closed: ClosedInterval, now: int) -> None:
        # Status reflects rules and allowances at closure time
        status = STATUS_BLOCKED if self.is_blocked(closed.app, now) else STATUS_ALLOWED
        event = self._open_event
        if event is None or event.id != closed.event_id:
            event = AppUsageEvent(
                id=closed.event_id,
                process_name=closed.app,
                status=status,
                start_time=closed.start,
                end_time=closed.start,
            )
        event.close(closed.end, status)
        self._open_event = None

        try:
            self._store.update_usage_event(event.id, event.end_time, event.duration_secs, status)
        except PersistenceError:
            self._logger.exception(f"Failed to close usage event id={event.id} app={event.process_name}")
        self._out_events.append(event.clone())

    def _finalize_interval(self, now: int) -> None:
        closed = self.tracker.finalize(now)
        if closed is not None:
            self._close_interval(closed, now)

    def _finish_session(self, now: int, reason: str) -> FocusSession:
        session = self.current_session
        session.finish(now)
        self.current_session = None
        self.last_distraction_app = None

        self._write_session(session)
        self._logger.info(
            f"Focus session ended id={session.id} reason={reason} apps={session.work_apps} "
            f"distractions={session.distraction_attempts} duration={session.duration(now)}s"
        )
        closed = session.clone()
        self._out_sessions.append(closed.clone())
        return closed

    def _write_session(self, session: FocusSession | None = None) -> None:
        session = session or self.current_session
        try:
            if self._session_saved and not self._session_dirty:
                self._store.update_session(
                    session.id, session.end_time, session.work_apps, session.distraction_attempts
                )
            else:
                self._store.insert_session(session.clone())
                self._session_saved = True
            self._session_dirty = False
        except PersistenceError:
            self._session_dirty = True
            self._logger.exception(f"Failed to persist session id={session.id}")
