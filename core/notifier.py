import logging
from dataclasses import dataclass

from plyer import notification

LOG = logging.getLogger(__name__)

APP_NAME = "BoxPilot"


@dataclass(frozen=True)
class Notification:
    title: str
    message: str
    error: bool = False


class Notifier:
    """Surface foreground outcomes to the user (log + desktop toast)."""

    def __init__(self, desktop=True, timeout=3):
        self.desktop = desktop
        self.timeout = timeout

    def notify(self, title, message, error=False):
        item = Notification(title=title, message=message, error=error)
        if error:
            LOG.error("%s: %s", title, message)
        else:
            LOG.info("%s: %s", title, message)
        if self.desktop:
            self._send_desktop(item)
        return item

    def success(self, title, message):
        return self.notify(title, message)

    def failure(self, title, message):
        return self.notify(title, message, error=True)

    def _send_desktop(self, item):
        try:
            notification.notify(
                title=item.title,
                message=item.message,
                app_name=APP_NAME,
                timeout=self.timeout,
            )
        except Exception:
            logging.error("Notification backend failure", exc_info=True)
