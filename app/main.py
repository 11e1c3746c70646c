import logging
import shlex
import sys

from PyQt6.QtCore import QCoreApplication, QObject

from app.console import SESSION_COMMANDS, CommandError, Console, build_parser, build_services
from app.workers.console_workers import ConsoleReader
from app.workers.poll_workers import ThreadDispatcher
from core.errors import BoxPilotError
from core.logging_setup import setup_logging

LOG = logging.getLogger(__name__)


# ---------------- INTERACTIVE SESSION ----------------
class Session(QObject):
    """Owns the engine for as long as the event loop runs."""

    def __init__(self, app, console, parser):
        super().__init__()
        self.app = app
        self.console = console
        self.parser = parser
        self.reader = ConsoleReader()
        self.reader.lineReceived.connect(self.handle_line)
        self.reader.closed.connect(self.app.quit)

        state = console.services.state
        state.status_changed.connect(self._on_status_changed)
        state.active_profile_changed.connect(self._on_active_profile_changed)
        state.topology_changed.connect(self._on_topology_changed)

    def _on_status_changed(self, snapshot):
        LOG.info("Engine %s (%s)", snapshot.lifecycle.value.lower(), "unconfirmed" if snapshot.provisional else "confirmed")

    def _on_active_profile_changed(self, profile):
        LOG.info("Active config: %s", profile.name if profile else "none")

    def _on_topology_changed(self, groups):
        LOG.debug("Topology refreshed: %d selectable group(s)", len(groups))

    def handle_line(self, line):
        try:
            argv = shlex.split(line)
        except ValueError as exc:
            print(f"error: {exc}")
            return
        if argv[0] in ("quit", "exit"):
            self.app.quit()
            return
        try:
            args = self.parser.parse_args(argv)
        except CommandError as exc:
            print(f"error: {exc}")
            return
        except SystemExit:
            # argparse already printed --help
            return
        if args.command == "run":
            print("already in a session")
            return
        try:
            self.console.execute(args)
        except Exception:
            # an exception escaping a slot aborts the Qt process
            LOG.error("Command %r crashed", line, exc_info=True)

    def exec(self):
        services = self.console.services
        try:
            services.profiles.refresh()
        except BoxPilotError as exc:
            LOG.warning("Could not load configs: %s", exc.cause)
        services.profiles.start_polling()
        services.service.start_polling()
        services.topology.start_polling()
        print("boxpilot session: type a command (list, start, groups, ...) or 'quit'")
        self.reader.start()
        code = self.app.exec()
        self.shutdown()
        return code

    def shutdown(self):
        services = self.console.services
        services.profiles.stop_polling()
        services.service.stop_polling()
        services.topology.stop_polling()
        services.bridge.shutdown()
        LOG.info("Session ended")


def run_session(parser, desktop):
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    dispatcher = ThreadDispatcher()
    services = build_services(desktop_notifications=desktop, dispatcher=dispatcher)
    session = Session(app, Console(services), parser)
    try:
        return session.exec()
    finally:
        dispatcher.wait_all()


# ---------------- ENTRY POINT ----------------
def main(argv=None):
    parser = build_parser()
    try:
        args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    except CommandError as exc:
        parser.print_usage(sys.stderr)
        print(f"boxpilot: error: {exc}", file=sys.stderr)
        return 2

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    desktop = not args.no_desktop

    if args.command == "run":
        return run_session(parser, desktop)
    if args.command in SESSION_COMMANDS:
        print(f"'{args.command}' must run in the session that owns the engine: boxpilot run", file=sys.stderr)
        return 1

    console = Console(build_services(desktop_notifications=desktop))
    return 0 if console.execute(args) else 1


if __name__ == "__main__":
    sys.exit(main())
