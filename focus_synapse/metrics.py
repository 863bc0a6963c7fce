import time
import logging

from .config import SUMMARY_INTERVAL_SEC, SUMMARY_TOP_APPS


class Metrics:
    def __init__(self, interval_sec: float = SUMMARY_INTERVAL_SEC, clock=time.monotonic):
        self._interval = interval_sec
        self._clock = clock
        self.total_checks = 0
        self.blocked_count = 0
        self.app_frequency: dict[str, int] = {}
        self.last_summary = clock()

    def update(self, process: str, is_blocked: bool) -> None:
        self.total_checks += 1
        if is_blocked:
            self.blocked_count += 1
        self.app_frequency[process] = self.app_frequency.get(process, 0) + 1

    def update_from_state(self, last_checked_process: str | None, last_blocked: bool, work_apps=()) -> None:
        if last_checked_process:
            self.update(last_checked_process, last_blocked)
        for app in work_apps:
            self.app_frequency[app] = self.app_frequency.get(app, 0) + 1

    def should_log_summary(self) -> bool:
        return (self._clock() - self.last_summary) >= self._interval

    def top_apps(self, n: int = SUMMARY_TOP_APPS) -> list[tuple[str, int]]:
        items = sorted(self.app_frequency.items(), key=lambda kv: (-kv[1], kv[0]))
        return items[:n]

    def log_summary(self, logger: logging.Logger) -> None:
        top = ", ".join(f"{name} x{count}" for name, count in self.top_apps()) or "(none)"
        logger.info(
            f"Focus summary checks={self.total_checks} blocked={self.blocked_count} top_apps: {top}"
        )
        self.last_summary = self._clock()
