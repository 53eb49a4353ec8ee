"""
Scraper data model: queries, normalized results and provider requests.
"""
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from async_operation import AsyncOperation
from http_transport import RequestStatus, Transport
from media_kinds import BOX3D, COVER, SCREENSHOT, TITLESCREEN
from rom_parser import GameRecord
from scrape_log import emit_log
from scraper_errors import ParseError, TransportError

METADATA_FIELDS = ("name", "desc", "releasedate", "developer", "publisher", "genre", "players", "rating")

NOT_STARTED = "not_started"
COMPLETED = "completed"

# Half-star buckets; ten buckets span 0..5 stars.
MAX_RATING_BUCKET = 10


@dataclass(frozen=True)
class Query:
    game: GameRecord
    name_override: str = ""
    automatic_mode: bool = False

    @property
    def system_name(self) -> str:
        return self.game.system_name

    @property
    def platform_ids(self) -> Tuple[str, ...]:
        return self.game.platform_ids


class NormalizedResult:
    """Provider-agnostic metadata plus per-kind media URLs."""

    def __init__(self, source: str, game_id: str = ""):
        self.source = source
        self.game_id = game_id
        self.metadata: Dict[str, str] = {}
        self.media_urls: Dict[str, str] = {}
        self.media_formats: Dict[str, str] = {}
        self.platform_ids: List[str] = []
        self.request_allowance: Optional[int] = None
        self.rating_label = "unknown"
        self.media_url_fetch = NOT_STARTED

        # Preview cache, filled by ThumbnailFetch.
        self.thumbnail_url = ""
        self.thumbnail_data = b""

        self.saved_new_media = False

    def __repr__(self):
        return f"NormalizedResult({self.source!r}, id={self.game_id!r}, name={self.name!r})"

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    def set_field(self, key: str, value):
        if key not in METADATA_FIELDS:
            raise KeyError(f"Unknown metadata field: {key}")
        if value is None:
            return
        value = str(value).strip()
        if value:
            self.metadata[key] = value

    def set_media(self, kind: str, url: str, file_format: str = ""):
        if not url:
            return
        self.media_urls[kind] = url
        if file_format:
            self.media_formats[kind] = file_format if file_format.startswith('.') else '.' + file_format

    def media_url(self, kind: str) -> str:
        return self.media_urls.get(kind, "")

    def media_format(self, kind: str) -> str:
        return self.media_formats.get(kind, "")

    def update_thumbnail_url(self):
        for kind in (COVER, BOX3D, SCREENSHOT, TITLESCREEN):
            url = self.media_url(kind)
            if url:
                self.thumbnail_url = url
                return
        self.thumbnail_url = ""

    def cached_bytes_for(self, url: str) -> Optional[bytes]:
        if url and url == self.thumbnail_url and self.thumbnail_data:
            return self.thumbnail_data
        return None


def merge_media_urls(target: NormalizedResult, media: NormalizedResult):
    """Copy the media URLs of a media-only result into a search result."""
    for kind, url in media.media_urls.items():
        target.set_media(kind, url, media.media_format(kind))
    if media.request_allowance is not None:
        target.request_allowance = media.request_allowance
    target.media_url_fetch = COMPLETED
    target.update_thumbnail_url()


def rating_label(ratio: float) -> str:
    """Half-star bucket label for a 0..1 rating ratio."""
    steps = math.ceil(round(float(ratio) * 20, 6))
    if steps <= 0:
        return "unknown"
    bucket = min(steps // 2, MAX_RATING_BUCKET)
    if bucket >= MAX_RATING_BUCKET:
        return "5 STARS"
    low = bucket / 2
    return f"{low:g} - {low + 0.5:g} STARS"


def round_up_rating(ratio: float) -> float:
    """Round a 0..1 ratio up to the closest 0.05."""
    steps = math.ceil(round(float(ratio) * 20, 6))
    return max(0, min(steps, 20)) / 20


def parse_release_date(text: str) -> str:
    """'YYYY-MM-DD' or 'YYYY' to the frontend's 'YYYYMMDDT000000' form."""
    text = (text or "").strip()
    for fmt in ("%Y-%m-%d", "%Y-%m", "%Y"):
        try:
            return datetime.strptime(text, fmt).strftime("%Y%m%dT%H%M%S")
        except ValueError:
            continue
    return ""


def clean_text(text: str) -> str:
    text = (text or "").replace("&nbsp;", " ").replace("\r", "")
    return text.strip()


def format_from_url(url: str) -> str:
    """'.png' style suffix from the URL path, ignoring the query string."""
    path = (url or "").split("?", 1)[0].split("#", 1)[0]
    m = re.search(r'(\.[A-Za-z0-9]{1,5})$', path.rsplit("/", 1)[-1])
    return m.group(1).lower() if m else ""


ParseResult = Tuple[List[NormalizedResult], List["ProviderRequest"]]


class ProviderRequest(AsyncOperation):
    """
    One provider HTTP request plus its parser.

    The transport fetch is issued on the first poll, so a request queued
    behind others never starts early. On success the parser turns the body
    into normalized results and optional follow-up requests.
    """

    def __init__(self, transport: Transport, url: str, parser: Callable[[bytes], ParseResult],
                 label: str = "", callbacks=None):
        super().__init__()
        self.transport = transport
        self.url = url
        self.label = label or "request"
        self._parser = parser
        self._callbacks = callbacks
        self._handle = None
        self.results: List[NormalizedResult] = []
        self.follow_ups: List[ProviderRequest] = []

    def __repr__(self):
        return f"ProviderRequest({self.label!r}, {self.status})"

    def update(self) -> None:
        if self._handle is None:
            emit_log(self._callbacks, f"[HTTP] [DEBUG] {self.label}: GET {self.url}")
            self._handle = self.transport.issue(self.url)

        status = self._handle.poll()
        if status == RequestStatus.IN_PROGRESS:
            return

        try:
            self._handle.raise_for_status()
        except TransportError as e:
            emit_log(self._callbacks, f"[HTTP] [ERROR] {self.label} ({e.status}): {e}")
            self.set_error(str(e))
            return

        try:
            results, follow_ups = self._parser(self._handle.content())
        except ParseError as e:
            emit_log(self._callbacks, f"[HTTP] [ERROR] {self.label}: {e}")
            self.set_error(str(e))
            return

        self.results = list(results)
        self.follow_ups = list(follow_ups)
        self.set_done()
