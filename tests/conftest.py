import pytest

from focus_synapse.errors import PersistenceError, PlatformError, SyncError
from focus_synapse.models import FocusSession
from focus_synapse.notifier import Notifier
from focus_synapse.rules import RuleSet
from focus_synapse.session import SessionStateMachine
from focus_synapse.store import SessionStore


class FakeClock:
    def __init__(self, now: int = 1_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, secs: int) -> int:
        self.now += secs
        return self.now


class FakeProbe:
    def __init__(self, running=None, foreground=None):
        self.running = list(running or [])
        self.foreground = foreground
        self.fail_listing = False
        self.fail_foreground = False

    def list_running_process_names(self):
        if self.fail_listing:
            raise PlatformError("listing failed")
        return list(self.running)

    def get_foreground_process_name(self):
        if self.fail_foreground:
            raise PlatformError("foreground failed")
        return self.foreground


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.calls: list[str] = []
        self.fail = fail

    def notify(self, app_name: str) -> None:
        self.calls.append(app_name)
        if self.fail:
            raise PlatformError("popup failed")


class FlakyStore(SessionStore):
    def __init__(self):
        super().__init__(path=None)
        self.fail = False

    def save(self) -> None:
        if self.fail:
            raise PersistenceError("disk full")


class FakeClient:
    def __init__(self, remote_sessions=None):
        self.sessions: list[FocusSession] = []
        self.events = []
        self.remote_sessions = list(remote_sessions or [])
        self.fail = False
        self.fail_pull = False

    def upsert_sessions(self, sessions):
        if self.fail:
            raise SyncError("network down")
        self.sessions.extend(sessions)

    def upsert_usage_events(self, events):
        if self.fail:
            raise SyncError("network down")
        self.events.extend(events)

    def fetch_sessions(self):
        if self.fail_pull:
            raise SyncError("pull failed")
        return [s.clone() for s in self.remote_sessions]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rules():
    return RuleSet(["editor", "ide"], ["chat", "game"], platform="linux")


@pytest.fixture
def store():
    return SessionStore(path=None)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def machine(rules, store, notifier):
    return SessionStateMachine(rules, store, notifier=notifier)
