import os
import sys
import json
import logging
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .config import LOGGER_NAME
from .errors import ConfigError


def normalize_names(names, platform: str = sys.platform) -> frozenset[str]:
    expanded: set[str] = set()
    for name in names or []:
        n = str(name).strip().lower()
        if not n:
            continue
        expanded.add(n)
        if platform == "win32" and not n.endswith(".exe"):
            expanded.add(f"{n}.exe")
    return frozenset(expanded)


class RuleSet:
    def __init__(self, work=(), block=(), platform: str = sys.platform):
        self._platform = platform
        self._lists = (normalize_names(work, platform), normalize_names(block, platform))

    @property
    def work(self) -> frozenset[str]:
        return self._lists[0]

    @property
    def block(self) -> frozenset[str]:
        return self._lists[1]

    def is_work_app(self, name: str | None) -> bool:
        if not name:
            return False
        return name.lower() in self._lists[0]

    def is_blocked(self, name: str | None) -> bool:
        if not name:
            return False
        return name.lower() in self._lists[1]

    def reload(self, work, block) -> None:
        # One reference swap, readers see the old pair or the new pair
        self._lists = (normalize_names(work, self._platform), normalize_names(block, self._platform))

    def __repr__(self) -> str:
        return f"RuleSet(work={sorted(self.work)}, block={sorted(self.block)})"


def load_rules(path: str, platform: str = sys.platform) -> RuleSet:
    if not os.path.exists(path):
        logging.getLogger(LOGGER_NAME).info(f"Rules file not found at {path}, using empty rules")
        return RuleSet(platform=platform)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"failed to read rules file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"rules file {path} must hold a JSON object")
    whitelist = data.get("whitelist", [])
    blacklist = data.get("blacklist", [])
    for key, value in (("whitelist", whitelist), ("blacklist", blacklist)):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"rules file {path}: '{key}' must be a list of strings")
    return RuleSet(whitelist, blacklist, platform=platform)


class _RulesFileHandler(FileSystemEventHandler):
    def __init__(self, watcher: "RulesWatcher"):
        super().__init__()
        self._watcher = watcher

    def on_modified(self, event):
        self._maybe_reload(event.src_path, event.is_directory)

    def on_created(self, event):
        self._maybe_reload(event.src_path, event.is_directory)

    def on_moved(self, event):
        self._maybe_reload(event.dest_path, event.is_directory)

    def _maybe_reload(self, path, is_directory: bool) -> None:
        if is_directory:
            return
        if os.path.abspath(os.fsdecode(path)) == self._watcher.path:
            self._watcher.reload()


class RulesWatcher:
    def __init__(self, path: str, on_rules, logger: logging.Logger | None = None, platform: str = sys.platform):
        self.path = os.path.abspath(path)
        self._on_rules = on_rules
        self._logger = logger or logging.getLogger(LOGGER_NAME)
        self._platform = platform
        self._observer = None
        self._reload_lock = threading.Lock()

    def reload(self) -> bool:
        with self._reload_lock:
            self._logger.info(f"Rules file changed, reloading {self.path}")
            try:
                rules = load_rules(self.path, platform=self._platform)
            except ConfigError:
                self._logger.exception("Rules reload rejected, keeping previous rules")
                return False
            self._on_rules(rules)
            self._logger.info(f"Rules reloaded: {rules!r}")
            return True

    def start(self) -> None:
        if self._observer is not None:
            return
        directory = os.path.dirname(self.path)
        if not os.path.isdir(directory):
            self._logger.warning(f"Rules directory {directory} missing, hot-reload disabled")
            return
        observer = Observer()
        observer.daemon = True
        observer.schedule(_RulesFileHandler(self), directory, recursive=False)
        observer.start()
        self._observer = observer
        self._logger.info(f"Watching rules file {self.path}")

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=2.0)
        self._observer = None
