"""
Search orchestration and the scraper registry.

`start_search()` picks the configured source, lets it build its provider
requests and returns a `SearchOrchestrator` that drains them one at a time,
in order. Requests returned by a parser as follow-ups go to the back of the
queue.
"""
from collections import deque
from typing import Iterable, List, Optional

from async_operation import AsyncOperation, AsyncStatus
from http_transport import CancelToken, RequestStatus, Transport
from scrape_log import emit_log
from scraper_config import ScraperConfig
from scraper_data import NormalizedResult, ProviderRequest, Query, merge_media_urls
from scraper_errors import TransportError
from screenscraper_source import ScreenScraperSource
from thegamesdb_source import TheGamesDBSource

SOURCES = {
    TheGamesDBSource.name: TheGamesDBSource,
    ScreenScraperSource.name: ScreenScraperSource,
}

__all__ = [
    "SOURCES", "SearchOrchestrator", "ThumbnailFetch", "get_scraper_list",
    "is_valid_configured_scraper", "merge_media_urls", "start_media_urls_fetch",
    "start_search",
]


class SearchOrchestrator(AsyncOperation):
    """Drains queued operations in order; each exposes `results` and `follow_ups` once DONE."""

    def __init__(self, requests: Iterable[ProviderRequest], callbacks=None,
                 cancel: Optional[CancelToken] = None):
        super().__init__()
        self._queue = deque(requests)
        self._results: List[NormalizedResult] = []
        self._callbacks = callbacks
        self._cancel = cancel

    @property
    def pending(self) -> int:
        return len(self._queue)

    def update(self) -> None:
        while True:
            if self._cancel is not None and self._cancel.is_cancelled:
                self._queue.clear()
                self.set_error("Search cancelled")
                return

            if not self._queue:
                emit_log(self._callbacks, f"[SCRAPER] [DEBUG] Search done, {len(self._results)} result(s)")
                self.set_done()
                return

            req = self._queue[0]
            status = req.poll()

            if status == AsyncStatus.ERROR:
                self._queue.clear()
                self.set_error(req.message())
                return

            if status == AsyncStatus.DONE:
                self._queue.popleft()
                self._results.extend(req.results)
                self._queue.extend(req.follow_ups)
                continue

            return

    def results(self) -> List[NormalizedResult]:
        if not self.is_terminal:
            raise RuntimeError("Search results read while the search is still running")
        return list(self._results)


# ==========================
# Registry
# ==========================
def get_scraper_list() -> List[str]:
    return list(SOURCES)


def is_valid_configured_scraper(config: ScraperConfig) -> bool:
    return config.scraper in SOURCES


def start_search(query: Query, config: ScraperConfig, transport: Transport,
                 callbacks=None, cancel: Optional[CancelToken] = None) -> SearchOrchestrator:
    if not is_valid_configured_scraper(config):
        emit_log(callbacks, f"[SCRAPER] [WARN] Unknown scraper '{config.scraper}', "
                            f"available: {', '.join(get_scraper_list())}")
        return SearchOrchestrator([], callbacks, cancel)

    if not query.game.is_scrapable():
        emit_log(callbacks, f"[SCRAPER] System '{query.system_name}' is excluded from scraping")
        return SearchOrchestrator([], callbacks, cancel)

    source = SOURCES[config.scraper](config, transport, callbacks)
    requests = source.build_requests(query)
    emit_log(callbacks, f"[SCRAPER] [DEBUG] {config.scraper}: {len(requests)} request(s) "
                        f"for {query.game!r}")
    return SearchOrchestrator(requests, callbacks, cancel)


def start_media_urls_fetch(game_ids: Iterable[str], config: ScraperConfig, transport: Transport,
                           callbacks=None, cancel: Optional[CancelToken] = None) -> SearchOrchestrator:
    """Media URL lookup for sources whose search results carry no media."""
    ids = [str(g) for g in game_ids if str(g)]
    if config.scraper != TheGamesDBSource.name or not ids:
        return SearchOrchestrator([], callbacks, cancel)
    source = TheGamesDBSource(config, transport, callbacks)
    return SearchOrchestrator([source.media_urls_request(ids)], callbacks, cancel)


class ThumbnailFetch(AsyncOperation):
    """Downloads the preview image of a result and caches it on the result."""

    def __init__(self, result: NormalizedResult, transport: Transport, callbacks=None):
        super().__init__()
        self.result = result
        self.transport = transport
        self._callbacks = callbacks
        self._handle = None
        if not result.thumbnail_url:
            result.update_thumbnail_url()

    def update(self) -> None:
        url = self.result.thumbnail_url
        if not url:
            self.set_done()
            return
        if self.result.cached_bytes_for(url) is not None:
            self.set_done()
            return

        if self._handle is None:
            self._handle = self.transport.issue(url)

        status = self._handle.poll()
        if status == RequestStatus.IN_PROGRESS:
            return
        try:
            self._handle.raise_for_status()
        except TransportError as e:
            emit_log(self._callbacks, f"[SCRAPER] [WARN] Thumbnail download failed: {e}")
            self.set_error(str(e))
            return

        self.result.thumbnail_data = self._handle.content()
        self.set_done()
