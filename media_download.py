"""
Download, validate, resize and persist one media asset.
"""
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from async_operation import AsyncOperation
from http_transport import CancelToken, RequestStatus, Transport
from media_kinds import BACKCOVER, is_video, max_size_for, needs_resize
from scrape_log import emit_log
from scraper_config import ScraperConfig
from scraper_data import NormalizedResult, format_from_url
from scraper_errors import FilesystemError, ScraperError, TransportError, ValidationError

# Decoding errors raised by Pillow for truncated or foreign data.
IMAGE_ERRORS = (OSError, SyntaxError, ValueError, Image.DecompressionBombError)


@dataclass(frozen=True)
class MediaAsset:
    kind: str
    url: str
    file_format: str
    destination: Path
    existing_path: Optional[Path] = None
    resize: bool = True
    source: str = ""


def asset_extension(url: str, file_format: str = "") -> str:
    """Provider format hint if there is one, else the URL suffix."""
    if file_format:
        return file_format if file_format.startswith('.') else '.' + file_format
    return format_from_url(url)


def _decodes(data: bytes) -> bool:
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
        return True
    except IMAGE_ERRORS:
        return False


def is_corrupt(data: bytes, min_bytes: int) -> bool:
    return len(data) < min_bytes and not _decodes(data)


class BlankBackCoverPolicy:
    """
    ScreenScraper serves placeholder back covers that are one flat colour.
    Rows and columns of the interior are sampled (first and last row
    excluded); the image is blank when every sample equals the first one.
    """

    MIN_SIZE = 50
    SAMPLES = 10
    SOURCE = "screenscraper"

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def applies_to(self, asset: MediaAsset) -> bool:
        return self.enabled and asset.kind == BACKCOVER and asset.source == self.SOURCE

    def rejection(self, data: bytes) -> str:
        """Reason to skip the image, '' when it looks like real artwork."""
        try:
            with Image.open(BytesIO(data)) as img:
                pixels = np.asarray(img.convert("RGBA"))
        except IMAGE_ERRORS:
            # Left to the corruption check.
            return ""

        height, width = pixels.shape[:2]
        if width < self.MIN_SIZE or height < self.MIN_SIZE:
            return f"image too small ({width}x{height})"

        rows = np.unique(np.linspace(1, height - 2, num=self.SAMPLES).astype(int))
        cols = np.unique(np.linspace(0, width - 1, num=self.SAMPLES).astype(int))
        interior = pixels[1:height - 1]

        first = pixels[rows[0], 0]
        if (pixels[rows] == first).all() and (interior[:, cols] == first).all():
            return "image is empty"
        return ""


def _save_image(img: Image.Image, fmt: str) -> bytes:
    out = BytesIO()
    fmt = (fmt or "PNG").upper()
    if fmt in ("JPG", "JPEG"):
        if img.mode in ("RGBA", "LA", "P"):
            background = Image.new("RGB", img.size, (255, 255, 255))
            if img.mode == "P":
                img = img.convert("RGBA")
            background.paste(img, mask=img.split()[-1])
            img = background
        elif img.mode != "RGB":
            img = img.convert("RGB")
        img.save(out, "JPEG", quality=95)
    else:
        img.save(out, fmt)
    return out.getvalue()


def fit_size(size: Tuple[int, int], max_size: Tuple[int, int]) -> Tuple[int, int]:
    """Size scaled down to fit `max_size`, aspect preserved; never upscaled."""
    w, h = size
    max_w, max_h = max_size
    if w <= max_w and h <= max_h:
        return w, h
    scale = min(max_w / w, max_h / h)
    return max(1, min(max_w, round(w * scale))), max(1, min(max_h, round(h * scale)))


def resize_image(data: bytes, max_size: Tuple[int, int]) -> bytes:
    """
    Downscale an encoded image to fit `max_size` and re-encode it in its own
    format. Images already within bounds come back unchanged.
    """
    with Image.open(BytesIO(data)) as img:
        target = fit_size(img.size, max_size)
        if target == img.size:
            return data
        fmt = img.format
        img.load()
        resized = img.resize(target, Image.LANCZOS)
    return _save_image(resized, fmt)


def persist_media(asset: MediaAsset, data: bytes, callbacks=None) -> Path:
    """Replace whatever sits in the asset's slot with `data`."""
    dest = Path(asset.destination)

    if asset.existing_path is not None and Path(asset.existing_path).exists():
        try:
            Path(asset.existing_path).unlink()
        except OSError as e:
            raise FilesystemError(f"Couldn't remove old media file {asset.existing_path}: {e}") from e

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Couldn't create media directory {dest.parent}: {e}") from e

    if asset.resize and needs_resize(asset.kind):
        try:
            data = resize_image(data, max_size_for(asset.kind))
        except IMAGE_ERRORS as e:
            emit_log(callbacks, f"[MEDIA] [WARN] Couldn't resize {dest.name}, saving as downloaded: {e}")

    try:
        dest.write_bytes(data)
    except OSError as e:
        raise FilesystemError(f"Failed to save media file {dest}: {e}") from e

    emit_log(callbacks, f"[MEDIA] [DEBUG] Saved {asset.kind}: {dest}")
    return dest


class MediaDownloadTask(AsyncOperation):
    def __init__(self, asset: MediaAsset, result: NormalizedResult, transport: Transport,
                 config: ScraperConfig, callbacks=None, cancel: Optional[CancelToken] = None):
        super().__init__()
        self.asset = asset
        self.result = result
        self.transport = transport
        self.config = config
        self.skipped = ""
        self._callbacks = callbacks
        self._cancel = cancel
        self._handle = None
        self._data: Optional[bytes] = None
        self._blank_policy = BlankBackCoverPolicy(config.check_blank_backcovers)

    def __repr__(self):
        return f"MediaDownloadTask({self.asset.kind!r}, {self.status})"

    def update(self) -> None:
        if self._cancel is not None and self._cancel.is_cancelled:
            self.set_error("Media download cancelled")
            return

        if self._data is None:
            cached = self.result.cached_bytes_for(self.asset.url)
            if cached is not None:
                self._data = cached
            else:
                if self._handle is None:
                    emit_log(self._callbacks, f"[MEDIA] [DEBUG] Downloading {self.asset.kind}: {self.asset.url}")
                    self._handle = self.transport.issue(self.asset.url)
                status = self._handle.poll()
                if status == RequestStatus.IN_PROGRESS:
                    return
                try:
                    self._handle.raise_for_status()
                except TransportError as e:
                    emit_log(self._callbacks, f"[MEDIA] [ERROR] {self.asset.kind}: {e}")
                    self.set_error(str(e))
                    return
                self._data = self._handle.content()

        try:
            self.process(self._data)
        except ScraperError as e:
            emit_log(self._callbacks, f"[MEDIA] [ERROR] {self.asset.kind}: {e}")
            self.set_error(str(e))
            return
        self.set_done()

    def _skip(self, reason: str):
        self.skipped = reason
        emit_log(self._callbacks, f"[MEDIA] [WARN] Skipping {self.asset.kind} ({reason}): {self.asset.url}")

    def process(self, data: bytes):
        if self._blank_policy.applies_to(self.asset):
            reason = self._blank_policy.rejection(data)
            if reason:
                self._skip(reason)
                return

        if (self.config.validate_media and not is_video(self.asset.kind)
                and is_corrupt(data, self.config.invalid_media_min_bytes)):
            reason = f"invalid media file ({len(data)} bytes)"
            if self.config.halt_on_invalid_media:
                raise ValidationError(f"Downloaded {self.asset.kind} is an {reason}")
            self._skip(reason)
            return

        persist_media(self.asset, data, self._callbacks)
        self.result.saved_new_media = True
