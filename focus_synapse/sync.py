import os
import time
import queue
import logging
import threading

import requests
from dotenv import load_dotenv

from .config import (
    LOGGER_NAME,
    SESSIONS_TABLE,
    SUPABASE_API_KEY_ENV,
    SUPABASE_URL_ENV,
    SYNC_QUEUE_SIZE,
    SYNC_TIMEOUT_SEC,
    SYNC_WORKERS,
    USAGE_EVENTS_TABLE,
)
from .errors import ConfigError, PersistenceError, SyncError
from .models import AppUsageEvent, FocusSession


class SyncStatus:
    def __init__(self, clock=time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self.last_sync_time: float | None = None
        self.last_result: bool | None = None
        self.last_error: str | None = None

    def update(self, success: bool, error: str | None = None) -> None:
        with self._lock:
            self.last_sync_time = self._clock()
            self.last_result = success
            self.last_error = error

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "last_sync_time": self.last_sync_time,
                "last_result": self.last_result,
                "last_error": self.last_error,
            }


class SupabaseClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = SYNC_TIMEOUT_SEC,
        http: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._http = http or requests.Session()

    @classmethod
    def from_env(cls) -> "SupabaseClient":
        load_dotenv()
        base_url = os.getenv(SUPABASE_URL_ENV)
        api_key = os.getenv(SUPABASE_API_KEY_ENV)
        if not base_url:
            raise ConfigError(f"{SUPABASE_URL_ENV} not set")
        if not api_key:
            raise ConfigError(f"{SUPABASE_API_KEY_ENV} not set")
        return cls(base_url, api_key)

    def _headers(self) -> dict:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def upsert(self, table: str, rows: list[dict]) -> None:
        if not rows:
            return
        headers = self._headers()
        headers["Prefer"] = "resolution=merge-duplicates,return=minimal"
        try:
            resp = self._http.post(
                f"{self.base_url}/{table}",
                params={"on_conflict": "id"},
                json=rows,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SyncError(f"request error: {e}") from e
        if not resp.ok:
            raise SyncError(f"upsert into {table} failed: {resp.status_code} - {resp.text}")

    def fetch_all(self, table: str) -> list[dict]:
        try:
            resp = self._http.get(
                f"{self.base_url}/{table}",
                params={"select": "*"},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SyncError(f"request error: {e}") from e
        if not resp.ok:
            raise SyncError(f"pull from {table} failed: {resp.status_code} - {resp.text}")
        try:
            rows = resp.json()
        except ValueError as e:
            raise SyncError(f"deserialization error: {e}") from e
        if not isinstance(rows, list):
            raise SyncError(f"pull from {table} returned {type(rows).__name__}, expected a list")
        return rows

    def upsert_sessions(self, sessions: list[FocusSession]) -> None:
        self.upsert(SESSIONS_TABLE, [s.to_dict() for s in sessions])

    def upsert_usage_events(self, events: list[AppUsageEvent]) -> None:
        self.upsert(USAGE_EVENTS_TABLE, [e.to_dict() for e in events])

    def fetch_sessions(self) -> list[FocusSession]:
        try:
            return [FocusSession.from_dict(r) for r in self.fetch_all(SESSIONS_TABLE)]
        except (KeyError, TypeError, ValueError) as e:
            raise SyncError(f"deserialization error: {e}") from e


def reconcile(local: list[FocusSession], remote: list[FocusSession]) -> list[FocusSession]:
    """Last-write-wins merge of two session histories.

    Sessions sharing a start time and a set of work apps are one entity. On a
    collision the start times are equal, so the remote copy wins. Applying the
    merge again with the same remote list changes nothing.
    """
    merged: dict[tuple[int, tuple[str, ...]], FocusSession] = {}
    for s in [*local, *remote]:
        merged[(s.start_time, s.apps_key)] = s
    return sorted(merged.values(), key=lambda s: (s.start_time, s.apps_key, s.id))


class SyncEngine:
    def __init__(
        self,
        client: SupabaseClient,
        status: SyncStatus | None = None,
        workers: int = SYNC_WORKERS,
        queue_size: int = SYNC_QUEUE_SIZE,
        retries: int = 2,
        retry_delay: float = 0.5,
        logger: logging.Logger | None = None,
    ):
        self._client = client
        self.status = status or SyncStatus()
        self._workers = max(1, int(workers))
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._retries = max(0, int(retries))
        self._retry_delay = retry_delay
        self._logger = logger or logging.getLogger(LOGGER_NAME)
        self._threads: list[threading.Thread] = []
        self._stop_event = threading.Event()

    def start(self) -> None:
        if self._threads:
            return
        self._stop_event.clear()
        for i in range(self._workers):
            t = threading.Thread(target=self._worker_loop, name=f"sync-worker-{i}", daemon=True)
            t.start()
            self._threads.append(t)
        self._logger.info(f"Sync engine started workers={self._workers}")

    def push_session(self, session: FocusSession) -> bool:
        return self._enqueue("session", [session.clone()])

    def push_usage_events(self, events: list[AppUsageEvent]) -> bool:
        if not events:
            return True
        return self._enqueue("usage_events", [e.clone() for e in events])

    def pull_all_sessions(self) -> list[FocusSession]:
        try:
            sessions = self._client.fetch_sessions()
        except SyncError as e:
            self.status.update(False, str(e))
            raise
        self.status.update(True)
        return sessions

    def reconcile_store(self, store) -> list[FocusSession] | None:
        try:
            remote = self.pull_all_sessions()
        except SyncError:
            self._logger.warning("History reconcile skipped, remote pull failed", exc_info=True)
            return None
        local = store.list_sessions()
        merged = reconcile(local, remote)
        kept = {s.id for s in merged}
        try:
            store.upsert_sessions(merged)
            store.remove_sessions([s.id for s in local if s.id not in kept])
        except PersistenceError:
            self._logger.exception("Failed to store reconciled sessions")
            return None
        self._logger.info(f"History reconciled local={len(local)} remote={len(remote)} merged={len(merged)}")
        return merged

    def flush(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def stop(self, flush_timeout: float = 0.0) -> None:
        if flush_timeout > 0 and self._threads:
            if not self.flush(flush_timeout):
                self._logger.warning(f"Sync flush timed out, pending={self._queue.qsize()}")
        self._stop_event.set()
        for t in self._threads:
            t.join(timeout=1.0)
        self._threads = []
        self._logger.info("Sync engine stopped")

    def pending(self) -> int:
        return self._queue.unfinished_tasks

    def _enqueue(self, kind: str, records: list) -> bool:
        try:
            self._queue.put_nowait((kind, records))
        except queue.Full:
            msg = f"sync queue full, dropped {len(records)} {kind} record(s)"
            self.status.update(False, msg)
            self._logger.warning(msg)
            return False
        return True

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                kind, records = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue
            try:
                self._deliver(kind, records)
            finally:
                self._queue.task_done()

    def _deliver(self, kind: str, records: list) -> None:
        attempt = 0
        while True:
            try:
                if kind == "session":
                    self._client.upsert_sessions(records)
                else:
                    self._client.upsert_usage_events(records)
            except Exception as e:
                if attempt < self._retries and not self._stop_event.is_set():
                    attempt += 1
                    time.sleep(self._retry_delay * attempt)
                    continue
                self.status.update(False, str(e))
                self._logger.warning(f"Sync of {len(records)} {kind} record(s) failed: {e}")
                return
            self.status.update(True)
            self._logger.info(f"Synced {len(records)} {kind} record(s)")
            return
