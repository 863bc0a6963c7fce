from .config import APP_TITLE


class Notifier:
    """Shows a notice when a blocked app takes focus during a session.

    Implementations are called while the poll loop holds its lock, so they must
    return quickly. Errors may be raised; the caller logs them.
    """

    def notify(self, app_name: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class CallbackNotifier(Notifier):
    def __init__(self, callback):
        self._callback = callback

    def notify(self, app_name: str) -> None:
        self._callback(app_name)


class TrayNotifier(Notifier):
    def __init__(self, title: str = APP_TITLE, on_quit=None):
        # pystray picks a display backend at import time
        from .tray import TrayController

        self._tray = TrayController(title=title, on_quit=on_quit)

    def start(self) -> None:
        self._tray.ensure_running()

    def notify(self, app_name: str) -> None:
        self._tray.notify(f"You opened a blocked app: {app_name}", "Distraction Detected!")

    def close(self) -> None:
        self._tray.stop()
