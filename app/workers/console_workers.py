"""Reader that feeds interactive session commands to the main thread."""
import logging
import sys
import threading

from PyQt6.QtCore import QObject, pyqtSignal


class ConsoleReader(QObject):
    """Read command lines from a text stream off the event loop.

    The blocking read runs on a daemon thread so a session can end while the
    reader is still waiting for input; signals are queued to the owner thread.
    """
    lineReceived = pyqtSignal(str)
    closed = pyqtSignal()

    def __init__(self, stream=None):
        super().__init__()
        self.stream = stream or sys.stdin
        self._thread = None

    def start(self):
        self._thread = threading.Thread(target=self.run, name="console-reader", daemon=True)
        self._thread.start()

    def run(self):
        """Emit each non-empty line, then ``closed`` at end of input."""
        for line in iter(self.stream.readline, ""):
            line = line.strip()
            if line:
                self.lineReceived.emit(line)
        logging.debug("Console input closed")
        self.closed.emit()
