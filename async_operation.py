"""
Polling state machine shared by search requests, orchestrators and media tasks.

An operation starts RUNNING and ends in exactly one terminal state, ERROR or
DONE. The driving loop calls `poll()`; each call performs at most one step and
never blocks. Once terminal, `poll()` is a no-op.
"""


class AsyncStatus:
    RUNNING = "running"
    ERROR = "error"
    DONE = "done"


class AsyncOperation:
    def __init__(self):
        self._status = AsyncStatus.RUNNING
        self._error = ""

    def update(self) -> None:
        """Advance by one step. Subclasses call set_done()/set_error()."""
        raise NotImplementedError

    def poll(self) -> str:
        if self._status == AsyncStatus.RUNNING:
            self.update()
        return self._status

    @property
    def status(self) -> str:
        """Current state without stepping."""
        return self._status

    @property
    def is_terminal(self) -> bool:
        return self._status != AsyncStatus.RUNNING

    def message(self) -> str:
        if self._status == AsyncStatus.RUNNING:
            return "in progress"
        if self._status == AsyncStatus.ERROR:
            return self._error
        return "done"

    def set_done(self) -> None:
        if self._status == AsyncStatus.RUNNING:
            self._status = AsyncStatus.DONE

    def set_error(self, message: str) -> None:
        if self._status == AsyncStatus.RUNNING:
            self._status = AsyncStatus.ERROR
            self._error = message or "unknown error"

