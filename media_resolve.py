"""
Media resolution for a chosen search result.

One `MediaDownloadTask` is started per enabled kind the result has a URL for.
The first failing task fails the whole resolution; files already written by
its siblings stay on disk.
"""
from typing import List, Optional

from async_operation import AsyncOperation, AsyncStatus
from http_transport import CancelToken, Transport
from media_download import MediaAsset, MediaDownloadTask, asset_extension, persist_media
from media_kinds import MEDIA_KINDS, needs_resize
from rom_parser import GameRecord
from scrape_log import emit_log
from scraper_config import ScraperConfig
from scraper_data import NormalizedResult
from scraper_errors import FilesystemError


def enumerate_assets(result: NormalizedResult, game: GameRecord, config: ScraperConfig,
                     callbacks=None) -> List[MediaAsset]:
    assets = []
    for kind in MEDIA_KINDS:
        if not config.kind_enabled(kind):
            continue
        url = result.media_url(kind)
        if not url:
            continue

        existing = game.existing_media_path(kind)
        if existing is not None and not config.overwrite_existing:
            emit_log(callbacks, f"[RESOLVE] [DEBUG] Keeping existing {kind}: {existing}")
            continue

        fmt = result.media_format(kind)
        assets.append(MediaAsset(
            kind=kind,
            url=url,
            file_format=fmt,
            destination=game.media_path(kind, asset_extension(url, fmt)),
            existing_path=existing,
            resize=needs_resize(kind),
            source=result.source,
        ))
    return assets


class ResolveOrchestrator(AsyncOperation):
    def __init__(self, result: NormalizedResult, game: GameRecord, config: ScraperConfig,
                 transport: Transport, callbacks=None, cancel: Optional[CancelToken] = None):
        super().__init__()
        self._result = result
        self._callbacks = callbacks
        self._cancel = cancel
        self.tasks: List[MediaDownloadTask] = []

        for asset in enumerate_assets(result, game, config, callbacks):
            cached = result.cached_bytes_for(asset.url)
            if cached is None:
                self.tasks.append(MediaDownloadTask(asset, result, transport, config, callbacks, cancel))
                continue
            # Preview bytes are already here; write them without a download.
            try:
                persist_media(asset, cached, callbacks)
            except FilesystemError as e:
                emit_log(callbacks, f"[RESOLVE] [ERROR] {e}")
                self.set_error(str(e))
                self.tasks.clear()
                return
            result.saved_new_media = True

        emit_log(callbacks, f"[RESOLVE] [DEBUG] {len(self.tasks)} media download(s) for {game!r}")

    def update(self) -> None:
        if self._cancel is not None and self._cancel.is_cancelled:
            self.tasks.clear()
            self.set_error("Media resolution cancelled")
            return

        outstanding = []
        for task in self.tasks:
            status = task.poll()
            if status == AsyncStatus.ERROR:
                self.tasks.clear()
                self.set_error(task.message())
                return
            if status == AsyncStatus.RUNNING:
                outstanding.append(task)
        self.tasks = outstanding

        if not self.tasks:
            self.set_done()

    def result(self) -> NormalizedResult:
        if self.status != AsyncStatus.DONE:
            raise RuntimeError(f"Resolved result read while resolution is {self.status}")
        return self._result


def resolve_media_assets(result: NormalizedResult, game: GameRecord, config: ScraperConfig,
                         transport: Transport, callbacks=None,
                         cancel: Optional[CancelToken] = None) -> ResolveOrchestrator:
    return ResolveOrchestrator(result, game, config, transport, callbacks, cancel)
