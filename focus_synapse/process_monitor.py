import sys
import ctypes
import subprocess
import psutil

from .errors import PlatformError


def _win_foreground_pid() -> int | None:
    user32 = ctypes.windll.user32
    hwnd = user32.GetForegroundWindow()
    if not hwnd:
        return None
    pid = ctypes.c_ulong(0)
    user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
    return pid.value or None


def _xprop_last_token(*args: str) -> str | None:
    try:
        out = subprocess.run(
            ["xprop", *args],
            capture_output=True,
            text=True,
            timeout=2.0,
            check=False,
        ).stdout
    except (OSError, subprocess.SubprocessError) as e:
        raise PlatformError(f"xprop failed: {e}") from e
    tokens = out.split()
    return tokens[-1].strip() if tokens else None


def _x11_foreground_pid() -> int | None:
    window_id = _xprop_last_token("-root", "_NET_ACTIVE_WINDOW")
    if not window_id or window_id == "0x0":
        return None
    pid = _xprop_last_token("-id", window_id, "_NET_WM_PID")
    try:
        return int(pid) if pid else None
    except ValueError:
        return None


def get_foreground_pid() -> int | None:
    if sys.platform == "win32":
        return _win_foreground_pid()
    if sys.platform.startswith("linux"):
        return _x11_foreground_pid()
    raise PlatformError(f"foreground window lookup not supported on {sys.platform}")


def safe_process_name(pid: int | None) -> str | None:
    if not pid:
        return None
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return None


class ProcessProbe:
    def list_running_process_names(self) -> list[str]:
        names: list[str] = []
        try:
            for proc in psutil.process_iter(["name"]):
                name = proc.info.get("name")
                if name:
                    names.append(name)
        except psutil.Error as e:
            raise PlatformError(f"failed to list running processes: {e}") from e
        return names

    def get_foreground_process_name(self) -> str | None:
        try:
            return safe_process_name(get_foreground_pid())
        except OSError as e:
            raise PlatformError(f"failed to get foreground process: {e}") from e
