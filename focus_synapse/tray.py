import logging
import threading
import pystray
from PIL import Image, ImageDraw

from .config import LOGGER_NAME
from .errors import PlatformError


class TrayController:
    def __init__(self, title: str, on_quit=None):
        self._title = title
        self._on_quit = on_quit

        self._icon = None
        self._thread = None
        self._running = False
        self._ready = threading.Event()

    def _make_icon_image(self) -> Image.Image:
        img = Image.new("RGB", (64, 64), color=(40, 40, 40))
        draw = ImageDraw.Draw(img)
        draw.ellipse((10, 10, 54, 54), fill=(60, 140, 200))
        draw.ellipse((26, 26, 38, 38), fill=(245, 245, 245))
        return img

    def ensure_running(self) -> None:
        if self._icon is not None and self._running:
            return

        def on_quit(icon, item):
            if self._on_quit is not None:
                self._on_quit()

        menu = pystray.Menu(pystray.MenuItem("Quit", on_quit))
        self._icon = pystray.Icon("FocusSynapse", self._make_icon_image(), self._title, menu)
        self._ready.clear()

        def setup(icon):
            icon.visible = True
            self._ready.set()

        def run_icon():
            self._running = True
            try:
                self._icon.run(setup=setup)
            finally:
                self._running = False
                self._ready.clear()

        self._thread = threading.Thread(target=run_icon, daemon=True)
        self._thread.start()

    def notify(self, message: str, title: str | None = None) -> None:
        # Called under the poll lock: never start the icon or wait for it here
        icon = self._icon
        if icon is None or not self._ready.is_set():
            raise PlatformError("tray icon is not ready for notifications")
        if not getattr(icon, "HAS_NOTIFICATION", False):
            raise PlatformError("tray backend does not support notifications")
        icon.notify(message, title or self._title)

    def stop(self) -> None:
        icon, self._icon = self._icon, None
        self._ready.clear()
        if icon is None:
            return
        try:
            icon.stop()
        except Exception:
            logging.getLogger(LOGGER_NAME).warning("Tray icon did not stop cleanly", exc_info=True)
