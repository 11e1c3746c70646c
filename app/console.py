"""Command surface shared by one-shot CLI calls and the interactive session."""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass

from app.app_state import AppState
from app.controllers.profile_controller import ProfileController
from app.controllers.service_controller import ServiceController
from app.controllers.topology_controller import TopologyController
from app.services.settings import RuntimeSettings
from app.services.topology import classify_latency, display_type
from core.bridge import BridgeError, HostBridge
from core.errors import BoxPilotError, ValidationError
from core.notifier import Notifier

LOG = logging.getLogger(__name__)

# commands that need the engine, or the running check guarding the active
# pointer, to be owned by this process
SESSION_COMMANDS = {
    "activate", "remove",
    "start", "stop", "restart", "status", "groups", "select", "delay", "quit",
}


@dataclass
class Services:
    bridge: HostBridge
    state: AppState
    notifier: Notifier
    profiles: ProfileController
    service: ServiceController
    topology: TopologyController


def build_services(settings=None, *, desktop_notifications=True, dispatcher=None, bridge=None) -> Services:
    settings = settings or RuntimeSettings.from_env()
    bridge = bridge or HostBridge()
    state = AppState()
    notifier = Notifier(desktop=desktop_notifications)
    return Services(
        bridge=bridge,
        state=state,
        notifier=notifier,
        profiles=ProfileController(bridge, state, settings, dispatcher=dispatcher),
        service=ServiceController(bridge, state, settings, dispatcher=dispatcher),
        topology=TopologyController(bridge, state, notifier, settings, dispatcher=dispatcher),
    )


class CommandError(Exception):
    pass


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise CommandError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="boxpilot", description="Manage a local sing-box engine and its configs.")
    parser.add_argument("--no-desktop", action="store_true", help="log notifications only")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True, parser_class=_Parser)

    sub.add_parser("list", help="list configs")
    add = sub.add_parser("add", help="import a config from a file ('-' reads stdin)")
    add.add_argument("name")
    add.add_argument("source")
    sub.add_parser("activate", help="make a config active").add_argument("id")
    sub.add_parser("remove", help="delete a config").add_argument("id")
    sub.add_parser("edit", help="open a config in the system editor").add_argument("id")
    settings = sub.add_parser("settings", help="show or update app settings")
    settings.add_argument("--engine-path")
    settings.add_argument("--config-dir")
    sub.add_parser("version", help="print the engine version")

    sub.add_parser("run", help="interactive session that owns the engine")
    sub.add_parser("start", help="start the engine with the active config")
    sub.add_parser("stop", help="stop the engine")
    sub.add_parser("restart", help="restart the engine with the active config")
    sub.add_parser("status", help="poll the engine status")
    sub.add_parser("groups", help="show selectable proxy groups")
    select = sub.add_parser("select", help="switch a group to a node")
    select.add_argument("group")
    select.add_argument("node")
    sub.add_parser("delay", help="probe latency of a group's members").add_argument("group")
    sub.add_parser("quit", help="end the session")
    return parser


class Console:
    def __init__(self, services: Services, out=None):
        self.services = services
        self.out = out or sys.stdout

    def _print(self, text=""):
        print(text, file=self.out)

    def _foreground(self, failure_title, action, success_title=None, describe=None):
        """Run a user action; it always ends in exactly one notification."""
        notifier = self.services.notifier
        try:
            result = action()
        except BoxPilotError as exc:
            notifier.failure(failure_title, exc.cause)
            return False
        if success_title:
            notifier.success(success_title, describe(result) if describe else "")
        return True

    def execute(self, args) -> bool:
        handler = getattr(self, f"cmd_{args.command}", None)
        if handler is None:
            raise CommandError(f"unsupported command {args.command!r}")
        return handler(args)

    # ---------------- configs ----------------
    def cmd_list(self, _args):
        try:
            profiles, active = self.services.profiles.refresh()
        except BoxPilotError as exc:
            self.services.notifier.failure("Loading configs failed", exc.cause)
            return False
        if not profiles:
            self._print("No configs yet. Import one with: add NAME FILE")
        for profile in profiles:
            marker = "*" if active and active.id == profile.id else " "
            self._print(f"{marker} {profile.id}  {profile.name}  {profile.path}")
        return True

    def cmd_add(self, args):
        try:
            if args.source == "-":
                content = sys.stdin.read()
            else:
                with open(args.source, encoding="utf-8") as handle:
                    content = handle.read()
        except OSError as exc:
            self.services.notifier.failure("Import failed", f"Could not read {args.source}: {exc}")
            return False
        return self._foreground(
            "Save failed",
            lambda: self.services.profiles.create_profile(args.name, content),
            "Config saved",
            lambda profile: f"Saved '{profile.name}' as {profile.id}",
        )

    def cmd_activate(self, args):
        return self._foreground(
            "Switch failed",
            lambda: self.services.profiles.activate_profile(args.id),
            "Config activated",
            lambda profile: f"Active config is now '{profile.name}'",
        )

    def cmd_remove(self, args):
        return self._foreground(
            "Remove failed",
            lambda: self.services.profiles.remove_profile(args.id),
            "Config removed",
            lambda _profiles: f"Removed config {args.id}",
        )

    def cmd_edit(self, args):
        def _open():
            profiles = self.services.profiles.list_profiles()
            target = next((p for p in profiles if p.id == args.id), None)
            if target is None:
                raise ValidationError(f"Unknown config id {args.id!r}")
            self.services.profiles.open_externally(target.path)

        return self._foreground("Open failed", _open)

    def cmd_settings(self, args):
        bridge = self.services.bridge
        try:
            if args.engine_path or args.config_dir:
                bridge.update_app_config(config_dir=args.config_dir, engine_path=args.engine_path)
                self.services.notifier.success("Settings saved", "App settings updated")
            config = bridge.get_app_config()
        except BridgeError as exc:
            self.services.notifier.failure("Settings failed", str(exc))
            return False
        self._print(f"config_dir:  {config.config_dir}")
        self._print(f"engine_path: {config.engine_path}")
        return True

    def cmd_version(self, _args):
        try:
            version = self.services.service.version()
        except BoxPilotError as exc:
            self.services.notifier.failure("Version unavailable", exc.cause)
            return False
        self._print(f"sing-box version: {version}")
        return True

    # ---------------- engine ----------------
    def _active_or_none(self):
        try:
            return self.services.profiles.active_profile()
        except BoxPilotError:
            LOG.warning("Could not read active config", exc_info=True)
            return None

    def cmd_start(self, _args):
        profile = self._active_or_none()
        return self._foreground(
            "Start failed",
            lambda: self.services.service.start(profile),
            "Engine started",
            lambda _r: f"sing-box started with config '{profile.name}'",
        )

    def cmd_stop(self, _args):
        return self._foreground(
            "Stop failed",
            self.services.service.stop,
            "Engine stopped",
            lambda _r: "sing-box stopped",
        )

    def cmd_restart(self, _args):
        profile = self._active_or_none()
        return self._foreground(
            "Restart failed",
            lambda: self.services.service.restart(profile),
            "Engine restarted",
            lambda _r: f"sing-box restarted with config '{profile.name}'",
        )

    def cmd_status(self, _args):
        try:
            status = self.services.service.poll_status()
        except BoxPilotError as exc:
            self.services.notifier.failure("Status unavailable", exc.cause)
            return False
        active = self.services.state.snapshot().active_profile or self._active_or_none()
        self._print(f"engine: {status.value}")
        self._print(f"config: {active.name if active else 'none'}")
        endpoint = self.services.topology.endpoint
        if endpoint is not None:
            self._print(f"control api: {endpoint.describe()}")
        return True

    # ---------------- topology ----------------
    def cmd_groups(self, _args):
        topology = self.services.topology
        topology.fetch_topology()
        groups = topology.selectable_groups()
        if not groups:
            endpoint = topology.endpoint
            reason = endpoint.describe() if endpoint and not endpoint.configured else "engine not running or no groups"
            self._print(f"No proxy groups available ({reason})")
            return True
        for name, group in groups.items():
            self._print(f"{name} [{display_type(group.type)}] now: {group.current_selection or '-'}")
            for member in group.members:
                marker = "*" if member == group.current_selection else " "
                self._print(f"  {marker} {member}")
        return True

    def cmd_select(self, args):
        return self.services.topology.select_node(args.group, args.node)

    def cmd_delay(self, args):
        results = self.services.topology.measure_latency(args.group)
        if not results:
            self._print(f"No latency data for {args.group}")
            return True
        for member, millis in sorted(results.items(), key=lambda item: item[1]):
            self._print(f"  {member}: {millis}ms ({classify_latency(millis).value})")
        return True
