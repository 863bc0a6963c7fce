from focus_synapse.models import STATUS_ALLOWED, STATUS_BLOCKED
from focus_synapse.rules import RuleSet
from focus_synapse.session import SessionStateMachine

from conftest import FlakyStore, RecordingNotifier


def test_no_work_app_never_starts_a_session(machine, store, notifier):
    for i, fg in enumerate(["chat", "browser", "game", None, "chat"]):
        assert machine.tick(["chat", "browser", "game"], fg, 100 + i) is None
        assert machine.current_session is None
    assert store.list_sessions() == []
    assert notifier.calls == []


def test_session_starts_with_running_work_apps(machine, store):
    machine.tick(["editor", "shell", "ide", "editor"], "shell", 100)
    session = machine.current_session
    assert session is not None
    assert session.start_time == 100
    assert session.work_apps == ["editor", "ide"]
    assert store.get_session(session.id).work_apps == ["editor", "ide"]


def test_same_blocked_app_twice_counts_once(machine, store, notifier):
    machine.tick(["editor", "chat"], "chat", 100)
    machine.tick(["editor", "chat"], "chat", 101)

    sessions = store.list_sessions()
    assert len(sessions) == 1
    assert machine.current_session.distraction_attempts == 1
    assert sessions[0].distraction_attempts == 1
    assert notifier.calls == ["chat"]


def test_switching_away_and_back_counts_again(machine, notifier):
    running = ["editor", "chat"]
    machine.tick(running, "chat", 100)
    machine.tick(running, "editor", 101)
    machine.tick(running, "chat", 102)
    assert machine.current_session.distraction_attempts == 2
    assert notifier.calls == ["chat", "chat"]


def test_neutral_app_resets_debounce(machine):
    running = ["editor", "chat", "terminal"]
    machine.tick(running, "chat", 100)
    machine.tick(running, "terminal", 101)
    machine.tick(running, "chat", 102)
    assert machine.current_session.distraction_attempts == 2


def test_different_blocked_apps_each_count(machine):
    running = ["editor", "chat", "game"]
    machine.tick(running, "chat", 100)
    machine.tick(running, "game", 101)
    machine.tick(running, "chat", 102)
    assert machine.current_session.distraction_attempts == 3


def test_distraction_counter_follows_debounce_law(machine):
    running = ["editor", "chat", "game"]
    sequence = ["chat", "chat", "game", "game", "editor", "game", "chat", "chat", "ide", "ide", "chat"]
    expected = 0
    previous_blocked = None
    for i, fg in enumerate(sequence):
        before = machine.current_session.distraction_attempts if machine.current_session else 0
        machine.tick(running, fg, 100 + i)
        after = machine.current_session.distraction_attempts
        assert after >= before
        if fg in ("chat", "game") and fg != previous_blocked:
            expected += 1
            assert after == before + 1
        else:
            assert after == before
        previous_blocked = fg if fg in ("chat", "game") else None
    assert machine.current_session.distraction_attempts == expected


def test_no_distraction_outside_a_session(machine, notifier):
    machine.tick(["chat"], "chat", 100)
    assert machine.current_session is None
    assert notifier.calls == []


def test_new_work_apps_are_appended_in_order(machine, store):
    machine.tick(["editor"], "editor", 100)
    machine.tick(["editor", "ide"], "editor", 101)
    machine.tick(["ide", "editor"], "ide", 102)
    session = machine.current_session
    assert session.work_apps == ["editor", "ide"]
    assert store.get_session(session.id).work_apps == ["editor", "ide"]


def test_session_closes_when_work_apps_exit(machine, store):
    machine.tick(["editor"], "editor", 100)
    machine.tick(["editor", "ide"], "ide", 105)
    closed = machine.tick(["chat"], "chat", 110)

    assert closed is not None
    assert closed.end_time == 110
    assert closed.end_time >= closed.start_time
    assert closed.work_apps == ["editor", "ide"]
    assert machine.current_session is None

    stored = store.get_session(closed.id)
    assert stored.end_time == 110
    assert stored.work_apps == ["editor", "ide"]


def test_finalized_session_is_not_reopened(machine):
    machine.tick(["editor"], "editor", 100)
    first = machine.tick([], None, 110)
    assert first.end_time == 110

    machine.tick(["editor"], "editor", 120)
    second = machine.current_session
    assert second.id != first.id
    assert second.start_time == 120
    assert first.end_time == 110


def test_usage_intervals_are_recorded(machine, store):
    running = ["editor", "chat"]
    machine.tick(running, "editor", 100)
    session_id = machine.current_session.id
    machine.tick(running, "chat", 103)
    machine.tick(running, "editor", 110)

    events = store.list_usage_events()
    assert [(e.process_name, e.start_time, e.end_time, e.duration_secs) for e in events] == [
        ("editor", 100, 103, 3),
        ("chat", 103, 110, 7),
        ("editor", 110, 110, 0),
    ]
    assert [e.status for e in events[:2]] == [STATUS_ALLOWED, STATUS_BLOCKED]
    assert all(e.session_id == session_id for e in events)
    for e in events:
        assert e.duration_secs == e.end_time - e.start_time >= 0


def test_usage_outside_session_has_no_session_id(machine, store):
    machine.tick(["browser"], "browser", 100)
    machine.tick(["browser", "shell"], "shell", 104)
    events = store.list_usage_events()
    assert events[0].process_name == "browser"
    assert events[0].session_id is None
    assert events[0].duration_secs == 4


def test_snooze_overrides_block_until_expiry(machine):
    machine.snooze("Chat", 60, now=100)
    assert not machine.is_blocked("chat", 100)
    assert not machine.is_blocked("CHAT", 159)
    assert machine.is_blocked("chat", 160)
    assert machine.is_blocked("chat", 200)


def test_snoozed_app_is_not_a_distraction(machine, notifier):
    machine.snooze("chat", 60, now=100)
    machine.tick(["editor", "chat"], "chat", 110)
    assert machine.current_session.distraction_attempts == 0
    assert machine.last_blocked is False
    assert notifier.calls == []

    machine.tick(["editor", "chat"], "editor", 165)
    machine.tick(["editor", "chat"], "chat", 170)
    assert machine.current_session.distraction_attempts == 1


def test_interval_status_uses_rules_at_closure(machine, store):
    running = ["editor", "chat"]
    machine.tick(running, "chat", 100)
    machine.snooze("chat", 300, now=105)
    machine.tick(running, "editor", 110)

    chat = [e for e in store.list_usage_events() if e.process_name == "chat"][0]
    assert chat.status == STATUS_ALLOWED
    assert chat.duration_secs == 10


def test_losing_focus_resets_tracking_but_keeps_session(machine, store):
    running = ["editor", "chat"]
    machine.tick(running, "chat", 100)
    session = machine.current_session
    machine.tick(running, None, 101)

    assert machine.current_session is session
    assert machine.tracker.current_app is None
    assert machine.last_checked_process is None

    machine.tick(running, "chat", 102)
    assert session.distraction_attempts == 2
    assert len(store.list_usage_events()) == 2


def test_missing_process_list_leaves_session_alone(machine):
    machine.tick(["editor"], "editor", 100)
    session = machine.current_session
    assert machine.tick(None, None, 101) is None
    assert machine.current_session is session
    assert session.end_time is None


def test_end_active_session_closes_interval_and_session(machine, store):
    machine.tick(["editor", "chat"], "chat", 100)
    closed = machine.end_active_session(130)

    assert closed.end_time == 130
    assert machine.current_session is None
    assert store.get_session(closed.id).end_time == 130
    event = store.list_usage_events()[0]
    assert (event.end_time, event.duration_secs) == (130, 30)
    assert machine.end_active_session(140) is None


def test_outbox_collects_started_and_closed_records(machine):
    machine.tick(["editor"], "editor", 100)
    sessions, events = machine.drain_outbox()
    assert len(sessions) == 1 and sessions[0].end_time is None
    assert events == []

    machine.tick([], None, 120)
    sessions, events = machine.drain_outbox()
    assert len(sessions) == 1 and sessions[0].end_time == 120
    assert events == []
    assert machine.drain_outbox() == ([], [])


def test_outbox_holds_copies(machine):
    machine.tick(["editor", "chat"], "editor", 100)
    sessions, _ = machine.drain_outbox()
    machine.tick(["editor", "chat"], "chat", 101)
    assert sessions[0].distraction_attempts == 0
    _, events = machine.drain_outbox()
    assert [e.process_name for e in events] == ["editor"]


def test_persistence_failure_keeps_counting_and_retries():
    store = FlakyStore()
    notifier = RecordingNotifier()
    machine = SessionStateMachine(RuleSet(["editor"], ["chat", "game"], platform="linux"), store, notifier)
    running = ["editor", "chat", "game"]
    machine.tick(running, "editor", 100)
    session_id = machine.current_session.id

    store.fail = True
    machine.tick(running, "chat", 101)
    assert machine.current_session.distraction_attempts == 1
    assert notifier.calls == ["chat"]

    store.fail = False
    machine.tick(running, "game", 102)
    assert store.get_session(session_id).distraction_attempts == 2


def test_failing_notifier_is_not_fatal(rules, store):
    notifier = RecordingNotifier(fail=True)
    machine = SessionStateMachine(rules, store, notifier)
    machine.tick(["editor", "chat"], "chat", 100)
    assert machine.current_session.distraction_attempts == 1
    assert notifier.calls == ["chat"]


def test_rules_swap_keeps_session(machine):
    machine.tick(["editor", "chat"], "chat", 100)
    session = machine.current_session
    machine.set_rules(RuleSet(["editor"], [], platform="linux"))
    machine.tick(["editor", "chat"], "editor", 101)
    machine.tick(["editor", "chat"], "chat", 102)
    assert machine.current_session is session
    assert session.distraction_attempts == 1
