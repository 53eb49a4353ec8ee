"""
Non-blocking HTTP transport.

`HttpTransport.issue(url)` hands the request to a worker thread and returns a
handle right away. The caller polls the handle from its own loop; a poll only
inspects the future and never waits on the network. A shared `CancelToken`
aborts in-flight transfers between received chunks and discards their bytes.
"""
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Tuple

import requests

from scraper_errors import TransportError


# ==========================
# Cancel Token
# ==========================
class CancelToken:
    def __init__(self):
        self._evt = threading.Event()

    def cancel(self):
        self._evt.set()

    @property
    def is_cancelled(self) -> bool:
        return self._evt.is_set()


class RequestStatus:
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    IO_ERROR = "io_error"
    BAD_STATUS = "bad_status"
    INVALID_RESPONSE = "invalid_response"
    CANCELLED = "cancelled"


DEFAULT_USER_AGENT = "ES-Scraper/1.0"
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 60.0
CHUNK_SIZE = 64 * 1024


def url_encode(value: str) -> str:
    return requests.utils.quote(str(value), safe="")


# ==========================
# Thread-local sessions
# ==========================
_thread_local = threading.local()

def get_session(user_agent: str) -> requests.Session:
    s = getattr(_thread_local, "session", None)
    if s is None:
        s = requests.Session()
        s.headers.update({"User-Agent": user_agent})
        _thread_local.session = s
    return s


class RequestHandle:
    """Polling handle for one outbound request."""

    def __init__(self, url: str):
        self.url = url
        self._status = RequestStatus.IN_PROGRESS
        self._content = b""
        self._error = ""

    def poll(self) -> str:
        raise NotImplementedError

    def content(self) -> bytes:
        if self._status != RequestStatus.SUCCESS:
            raise RuntimeError(f"Response content read while request is {self._status}")
        return self._content

    def error_message(self) -> str:
        return self._error

    def raise_for_status(self):
        """Raise TransportError once the request has ended in anything but SUCCESS."""
        if self._status not in (RequestStatus.SUCCESS, RequestStatus.IN_PROGRESS):
            raise TransportError(f"Network error: {self._error or self._status}", self._status)

    def _finish(self, status: str, content: bytes = b"", error: str = ""):
        self._status = status
        self._content = content if status == RequestStatus.SUCCESS else b""
        self._error = error


class HttpRequestHandle(RequestHandle):
    def __init__(self, url: str, future: Future, cancel: Optional[CancelToken]):
        super().__init__(url)
        self._future = future
        self._cancel = cancel

    def poll(self) -> str:
        if self._status != RequestStatus.IN_PROGRESS:
            return self._status

        if self._cancel is not None and self._cancel.is_cancelled:
            self._future.cancel()
            self._finish(RequestStatus.CANCELLED, error="Request cancelled")
            return self._status

        if not self._future.done():
            return self._status

        if self._future.cancelled():
            self._finish(RequestStatus.CANCELLED, error="Request cancelled")
        else:
            status, content, error = self._future.result()
            self._finish(status, content, error)
        return self._status


class Transport:
    """Issues one outbound request per call."""

    def issue(self, url: str) -> RequestHandle:
        raise NotImplementedError

    def shutdown(self):
        return None


class HttpTransport(Transport):
    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        workers: int = 4,
        user_agent: str = DEFAULT_USER_AGENT,
        cancel: Optional[CancelToken] = None,
    ):
        self._timeout = (float(connect_timeout), float(read_timeout))
        self._user_agent = user_agent
        self._cancel = cancel
        self._executor = ThreadPoolExecutor(max_workers=max(1, int(workers)),
                                            thread_name_prefix="scraper-http")

    @classmethod
    def from_config(cls, config, cancel: Optional[CancelToken] = None) -> "HttpTransport":
        return cls(
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            workers=config.http_workers,
            user_agent=config.user_agent,
            cancel=cancel,
        )

    def issue(self, url: str) -> HttpRequestHandle:
        future = self._executor.submit(self._fetch, url)
        return HttpRequestHandle(url, future, self._cancel)

    def _cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_cancelled

    def _fetch(self, url: str) -> Tuple[str, bytes, str]:
        if self._cancelled():
            return RequestStatus.CANCELLED, b"", "Request cancelled"

        session = get_session(self._user_agent)
        try:
            with session.get(url, stream=True, timeout=self._timeout) as r:
                if r.status_code != 200:
                    return RequestStatus.BAD_STATUS, b"", f"HTTP status {r.status_code} {r.reason or ''}".strip()

                chunks = []
                for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                    if self._cancelled():
                        return RequestStatus.CANCELLED, b"", "Request cancelled"
                    if chunk:
                        chunks.append(chunk)
                return RequestStatus.SUCCESS, b"".join(chunks), ""
        except (requests.exceptions.ContentDecodingError,
                requests.exceptions.ChunkedEncodingError,
                requests.exceptions.TooManyRedirects) as e:
            return RequestStatus.INVALID_RESPONSE, b"", f"Invalid response: {e}"
        except requests.RequestException as e:
            return RequestStatus.IO_ERROR, b"", str(e)

    def shutdown(self):
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False
