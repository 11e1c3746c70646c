"""Notifier tests: logging plus optional desktop toast."""
import unittest
from unittest import mock

from core.notifier import Notifier


class NotifierTests(unittest.TestCase):
    def test_desktop_toast_sent(self):
        with mock.patch("core.notifier.notification") as backend:
            item = Notifier(desktop=True).success("Config saved", "Saved 'Home'")
        backend.notify.assert_called_once()
        self.assertEqual(backend.notify.call_args.kwargs["title"], "Config saved")
        self.assertFalse(item.error)

    def test_failure_logged_at_error(self):
        with mock.patch("core.notifier.notification") as backend:
            with self.assertLogs("core.notifier", level="ERROR"):
                item = Notifier(desktop=False).failure("Start failed", "engine missing")
        backend.notify.assert_not_called()
        self.assertTrue(item.error)

    def test_backend_failure_does_not_raise(self):
        with mock.patch("core.notifier.notification") as backend:
            backend.notify.side_effect = NotImplementedError("no dbus")
            with self.assertLogs(level="ERROR"):
                item = Notifier().success("Switched", "proxy now uses jp-1")
        self.assertEqual(item.title, "Switched")


if __name__ == "__main__":
    unittest.main()
