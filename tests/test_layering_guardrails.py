"""Guardrails for the layering between controllers, services and the host bridge."""

from pathlib import Path
import unittest


class LayeringGuardrailsTests(unittest.TestCase):
    def test_controllers_do_not_spawn_processes_or_speak_http(self):
        forbidden = {
            "import subprocess",
            "import requests",
            "import sqlite3",
            "from core import storage",
        }
        for file_path in Path("app/controllers").glob("*.py"):
            text = file_path.read_text(encoding="utf-8")
            for token in forbidden:
                self.assertNotIn(token, text, msg=f"Forbidden token {token!r} in {file_path}")

    def test_no_hardcoded_controller_fallback(self):
        for file_path in Path("app").rglob("*.py"):
            text = file_path.read_text(encoding="utf-8")
            self.assertNotIn("127.0.0.1:9999", text, msg=f"Hardcoded endpoint in {file_path}")

    def test_no_module_level_state_singleton(self):
        text = Path("app/app_state.py").read_text(encoding="utf-8")
        self.assertNotIn("app_state = AppState()", text)


if __name__ == "__main__":
    unittest.main()
