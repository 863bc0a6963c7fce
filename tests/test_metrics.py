import logging

from focus_synapse.metrics import Metrics

from conftest import FakeClock


def test_counts_checks_and_blocks():
    m = Metrics(interval_sec=60, clock=FakeClock(0))
    m.update("chat", True)
    m.update("editor", False)
    m.update("chat", True)
    assert m.total_checks == 3
    assert m.blocked_count == 2
    assert m.top_apps() == [("chat", 2), ("editor", 1)]


def test_update_from_state_counts_running_work_apps():
    m = Metrics(interval_sec=60, clock=FakeClock(0))
    m.update_from_state("chat", True, ["editor", "ide"])
    m.update_from_state(None, False, ["editor"])
    assert m.total_checks == 1
    assert m.app_frequency == {"chat": 1, "editor": 2, "ide": 1}


def test_top_apps_breaks_ties_by_name():
    m = Metrics(interval_sec=60, clock=FakeClock(0))
    for name in ["b", "a", "c", "a", "b"]:
        m.update(name, False)
    assert m.top_apps(2) == [("a", 2), ("b", 2)]


def test_summary_cadence(caplog):
    ticks = FakeClock(0)
    m = Metrics(interval_sec=60, clock=ticks)
    assert not m.should_log_summary()
    ticks.advance(59)
    assert not m.should_log_summary()
    ticks.advance(1)
    assert m.should_log_summary()

    logger = logging.getLogger("FocusSynapse.test")
    m.update("chat", True)
    with caplog.at_level("INFO", logger="FocusSynapse.test"):
        m.log_summary(logger)
    assert "checks=1 blocked=1" in caplog.text
    assert "chat x1" in caplog.text
    assert not m.should_log_summary()


def test_empty_summary(caplog):
    m = Metrics(interval_sec=60, clock=FakeClock(0))
    logger = logging.getLogger("FocusSynapse.test")
    with caplog.at_level("INFO", logger="FocusSynapse.test"):
        m.log_summary(logger)
    assert "(none)" in caplog.text
