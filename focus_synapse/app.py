import time
import signal
import logging
import threading

from .config import (
    APPDATA_DIR,
    DATA_FILE,
    DEFAULT_SNOOZE_SEC,
    LOGGER_NAME,
    POLL_INTERVAL_SEC,
    RULES_FILE,
    SYNC_FLUSH_TIMEOUT_SEC,
)
from .errors import ClockError, ConfigError, PersistenceError, PlatformError
from .logging_setup import setup_logger
from .metrics import Metrics
from .models import FocusSession
from .notifier import Notifier, TrayNotifier
from .process_monitor import ProcessProbe
from .rules import RuleSet, RulesWatcher, load_rules
from .session import SessionStateMachine
from .store import SessionStore
from .sync import SupabaseClient, SyncEngine
from .utils import ensure_dir, epoch_seconds


class FocusSynapseApp:
    def __init__(
        self,
        rules: RuleSet,
        store: SessionStore,
        probe: ProcessProbe | None = None,
        notifier: Notifier | None = None,
        sync: SyncEngine | None = None,
        clock=time.time,
        metrics: Metrics | None = None,
        poll_interval: float = POLL_INTERVAL_SEC,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

        self._probe = probe or ProcessProbe()
        self._notifier = notifier
        self._sync = sync
        self._clock = clock
        self._poll_interval = poll_interval

        self.machine = SessionStateMachine(rules, store, notifier=notifier, logger=self.logger)
        self.metrics = metrics or Metrics()

        self._rules_watcher: RulesWatcher | None = None
        self._signals_lock = threading.Lock()
        self._signals_installed = False

    # Public API, safe from any thread
    def poll(self) -> FocusSession | None:
        running, foreground = self._sample()

        with self._lock:
            try:
                now = epoch_seconds(self._clock)
            except ClockError:
                self.logger.exception("Skipping tick, clock unavailable")
                return None

            closed = self.machine.tick(running, foreground, now)
            sessions, events = self.machine.drain_outbox()

            current = self.machine.current_session
            self.metrics.update_from_state(
                self.machine.last_checked_process,
                self.machine.last_blocked,
                current.work_apps if current is not None else (),
            )
            if self.metrics.should_log_summary():
                self.metrics.log_summary(self.logger)

        self._dispatch(sessions, events)
        return closed

    def end_active_session(self) -> FocusSession | None:
        with self._lock:
            try:
                now = epoch_seconds(self._clock)
            except ClockError:
                self.logger.exception("Cannot end session, clock unavailable")
                return None
            closed = self.machine.end_active_session(now)
            sessions, events = self.machine.drain_outbox()

        self._dispatch(sessions, events)
        return closed

    def snooze_app(self, app_name: str, duration_secs: int = DEFAULT_SNOOZE_SEC) -> int | None:
        with self._lock:
            try:
                now = epoch_seconds(self._clock)
            except ClockError:
                self.logger.exception(f"Cannot snooze app={app_name}, clock unavailable")
                return None
            return self.machine.snooze(app_name, duration_secs, now)

    def set_rules(self, rules: RuleSet) -> None:
        with self._lock:
            self.machine.set_rules(rules)
        self.logger.info(f"Rules updated: {rules!r}")

    def current_session(self) -> FocusSession | None:
        with self._lock:
            session = self.machine.current_session
            return session.clone() if session is not None else None

    def last_checked_process(self) -> str | None:
        with self._lock:
            return self.machine.last_checked_process

    def last_blocked(self) -> bool:
        with self._lock:
            return self.machine.last_blocked

    def sync_status(self) -> dict | None:
        return self._sync.status.snapshot() if self._sync is not None else None

    # Lifecycle
    def install_signal_handlers(self) -> bool:
        with self._signals_lock:
            if self._signals_installed:
                return False
            self._signals_installed = True

        def _handler(signum, frame):
            self.logger.info(f"Signal {signum} received, shutting down")
            self.request_shutdown()

        signal.signal(signal.SIGINT, _handler)
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, _handler)
        self.logger.info("Shutdown signal handlers installed")
        return True

    def start_rules_watcher(self, path: str = RULES_FILE) -> None:
        if self._rules_watcher is not None:
            return
        self._rules_watcher = RulesWatcher(path, on_rules=self.set_rules, logger=self.logger)
        self._rules_watcher.start()

    def request_shutdown(self) -> None:
        self._stop_event.set()

    def is_stopping(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        self.logger.info("Monitor loop started")
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:
                self.logger.exception("Poll cycle failed")
            self._stop_event.wait(self._poll_interval)
        self.shutdown()

    def shutdown(self) -> None:
        self.logger.info("Shutdown requested")
        try:
            self.end_active_session()
        except Exception:
            self.logger.exception("Failed to finalize session at shutdown")

        if self._rules_watcher is not None:
            self._rules_watcher.stop()
            self._rules_watcher = None
        if self._sync is not None:
            self._sync.stop(flush_timeout=SYNC_FLUSH_TIMEOUT_SEC)
        if self._notifier is not None:
            try:
                self._notifier.close()
            except Exception:
                self.logger.warning("Notifier did not close cleanly", exc_info=True)
        self.logger.info("App stopped")

    # Internals
    def _sample(self) -> tuple[list[str] | None, str | None]:
        try:
            running = self._probe.list_running_process_names()
        except PlatformError:
            self.logger.warning("Process enumeration failed", exc_info=True)
            return None, None
        try:
            foreground = self._probe.get_foreground_process_name()
        except PlatformError:
            self.logger.warning("Foreground process lookup failed", exc_info=True)
            foreground = None
        return running, foreground

    def _dispatch(self, sessions: list[FocusSession], events: list) -> None:
        if self._sync is None:
            return
        for s in sessions:
            self._sync.push_session(s)
        if events:
            self._sync.push_usage_events(events)


def build_sync(logger: logging.Logger) -> SyncEngine | None:
    try:
        client = SupabaseClient.from_env()
    except ConfigError as e:
        logger.info(f"Remote sync disabled: {e}")
        return None
    engine = SyncEngine(client, logger=logger)
    engine.start()
    return engine


def main() -> None:
    ensure_dir(APPDATA_DIR)
    logger = setup_logger(console=True)
    logger.info("App start")

    try:
        rules = load_rules(RULES_FILE)
    except ConfigError:
        logger.exception("Invalid rules file, starting with empty rules")
        rules = RuleSet()

    store = SessionStore(DATA_FILE, logger)
    try:
        store.load()
    except PersistenceError:
        logger.exception("Store load failed, starting fresh")

    sync = build_sync(logger)
    if sync is not None:
        sync.reconcile_store(store)

    app = None

    def on_quit():
        if app is not None:
            app.request_shutdown()

    try:
        notifier = TrayNotifier(on_quit=on_quit)
        notifier.start()
    except Exception:
        logger.warning("Tray notifications unavailable", exc_info=True)
        notifier = None

    app = FocusSynapseApp(rules, store, notifier=notifier, sync=sync, logger=logger)
    app.install_signal_handlers()
    app.start_rules_watcher(RULES_FILE)
    app.run()


if __name__ == "__main__":
    main()
