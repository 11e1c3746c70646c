"""Command surface tests: every foreground command ends in one notification."""
import io
import os
import tempfile
import unittest
from unittest import mock

from helpers import CONTROLLER_CONTENT, QT_AVAILABLE, FakeBridge, RecordingNotifier


@unittest.skipUnless(QT_AVAILABLE, "PyQt6 unavailable in test environment")
class ConsoleTests(unittest.TestCase):
    def setUp(self):
        from app.app_state import AppState
        from app.console import Console, Services, build_parser
        from app.controllers.profile_controller import ProfileController
        from app.controllers.service_controller import ServiceController
        from app.controllers.topology_controller import TopologyController
        from app.services.settings import RuntimeSettings

        self.bridge = FakeBridge()
        self.notifier = RecordingNotifier()
        state = AppState()
        settings = RuntimeSettings()
        self.services = Services(
            bridge=self.bridge,
            state=state,
            notifier=self.notifier,
            profiles=ProfileController(self.bridge, state),
            service=ServiceController(self.bridge, state, settings),
            topology=TopologyController(self.bridge, state, self.notifier, settings),
        )
        self.out = io.StringIO()
        self.console = Console(self.services, out=self.out)
        self.parser = build_parser()

    def run_command(self, *argv):
        return self.console.execute(self.parser.parse_args(list(argv)))

    def _add(self, name="Home", content=CONTROLLER_CONTENT):
        with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False, encoding="utf-8") as handle:
            handle.write(content)
        self.addCleanup(os.unlink, handle.name)
        return self.run_command("add", name, handle.name)

    def test_add_and_list(self):
        self.assertTrue(self._add())
        self.assertEqual(self.notifier.items[-1].title, "Config saved")
        self.assertTrue(self.run_command("list"))
        self.assertIn("Home", self.out.getvalue())

    def test_add_invalid_json_notifies_failure(self):
        self.assertFalse(self._add(content="{broken"))
        self.assertEqual(len(self.notifier.failures), 1)
        self.assertEqual(self.bridge.profiles, {})

    def test_add_missing_file(self):
        self.assertFalse(self.run_command("add", "Home", "/definitely/missing.json"))
        self.assertEqual(self.notifier.failures[0].title, "Import failed")

    def test_start_without_active_config_fails(self):
        self.assertFalse(self.run_command("start"))
        self.assertEqual(self.notifier.failures[0].title, "Start failed")

    def test_activate_start_and_refuse_switch(self):
        self._add("A")
        self._add("B")
        first, second = list(self.bridge.profiles)
        self.assertTrue(self.run_command("activate", first))
        self.assertTrue(self.run_command("start"))
        self.assertTrue(self.bridge.running)
        self.assertFalse(self.run_command("activate", second))
        self.assertIn("service running", self.notifier.failures[-1].message)

    def test_restart_failure_names_phase(self):
        self._add("A")
        self.run_command("activate", list(self.bridge.profiles)[0])
        self.run_command("start")
        self.bridge.fail["start_service"] = "port in use"
        self.assertFalse(self.run_command("restart"))
        self.assertIn("while starting", self.notifier.failures[-1].message)

    def test_settings_update(self):
        self.assertTrue(self.run_command("settings", "--engine-path", "/opt/sing-box"))
        self.assertEqual(self.bridge.app_config.engine_path, "/opt/sing-box")
        self.assertIn("/opt/sing-box", self.out.getvalue())

    def test_version(self):
        self.assertTrue(self.run_command("version"))
        self.assertIn("1.8.0", self.out.getvalue())

    def test_edit_unknown_id(self):
        self.assertFalse(self.run_command("edit", "missing"))
        self.assertEqual(self.notifier.failures[0].title, "Open failed")

    def test_delay_without_data(self):
        self.assertTrue(self.run_command("delay", "proxy"))
        self.assertIn("No latency data", self.out.getvalue())
        self.assertEqual(self.notifier.items, [])

    def test_parse_error_is_raised_not_exited(self):
        from app.console import CommandError

        with self.assertRaises(CommandError):
            self.parser.parse_args(["select", "only-group"])


@unittest.skipUnless(QT_AVAILABLE, "PyQt6 unavailable in test environment")
class MainEntryTests(unittest.TestCase):
    def test_session_command_rejected_in_one_shot_mode(self):
        from app import main as entry

        with mock.patch.object(entry, "setup_logging"), mock.patch("sys.stderr", new_callable=io.StringIO) as err:
            self.assertEqual(entry.main(["start"]), 1)
        self.assertIn("boxpilot run", err.getvalue())

    def test_one_shot_activate_refused_while_session_engine_runs(self):
        """A second process on the same store cannot move the pointer under a running engine."""
        from app import main as entry
        from core import storage
        from core.bridge import HostBridge
        from core.storage import ConfigProfile

        temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(temp_dir.cleanup)
        with mock.patch.dict(os.environ, {"APP_DB_PATH": os.path.join(temp_dir.name, "app.db")}):
            session_bridge = HostBridge()
            session_bridge.update_app_config(config_dir=temp_dir.name)
            for profile_id, name in (("1", "A"), ("2", "B")):
                session_bridge.save_config(ConfigProfile(profile_id, name, f"{profile_id}.json"))
                session_bridge.write_config_file(f"{profile_id}.json", "{}")
            session_bridge.set_active_config("1")
            engine = mock.MagicMock()
            engine.is_alive.return_value = True
            with mock.patch("core.bridge.EngineSupervisor", return_value=engine):
                session_bridge.start_service(session_bridge.get_active_config().path)

            with mock.patch.object(entry, "setup_logging"), mock.patch("sys.stderr", new_callable=io.StringIO):
                self.assertEqual(entry.main(["activate", "2"]), 1)
                self.assertEqual(entry.main(["remove", "1"]), 1)

            self.assertTrue(session_bridge.get_service_status())
            self.assertEqual(storage.get_active_profile().id, "1")
            self.assertEqual([p.id for p in storage.list_profiles()], ["1", "2"])
            session_bridge.shutdown()

    def test_bad_arguments_exit_2(self):
        from app import main as entry

        with mock.patch("sys.stderr", new_callable=io.StringIO):
            self.assertEqual(entry.main(["activate"]), 2)


if __name__ == "__main__":
    unittest.main()
