"""Worker threads for background polls (bridge status, control API reads)."""
import logging

from PyQt6.QtCore import QThread, pyqtSignal


class PollWorker(QThread):
    """Run one blocking job off the UI thread and report back once."""
    jobFinished = pyqtSignal(object, object)

    def __init__(self, job):
        super().__init__()
        self.job = job

    def run(self):
        """Emit (result, None) or (None, error)."""
        try:
            result = self.job()
        except Exception as exc:
            logging.debug("Background poll job failed", exc_info=True)
            self.jobFinished.emit(None, exc)
            return
        self.jobFinished.emit(result, None)


class ThreadDispatcher:
    """Dispatch jobs to PollWorker threads; results land on the owner thread."""

    def __init__(self):
        self._workers = set()

    def submit(self, job, done):
        worker = PollWorker(job)
        self._workers.add(worker)
        worker.jobFinished.connect(done)
        worker.finished.connect(lambda: self._release(worker))
        worker.start()

    def _release(self, worker):
        # finished is emitted just before run() unwinds; join before dropping the last reference
        worker.wait()
        self._workers.discard(worker)

    def wait_all(self, timeout_ms=5000):
        """Block until outstanding workers exit (used on shutdown)."""
        for worker in list(self._workers):
            if not worker.wait(timeout_ms):
                logging.warning("Poll worker did not exit within %d ms", timeout_ms)
