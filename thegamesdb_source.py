"""
TheGamesDB source (JSON API, api.thegamesdb.net/v1).

A search is one Games/ByGameName request filtered by the system's platform
IDs, or one Games/ByGameID request when the name override is "id:<n>".
Game records carry no media, so parsing them returns a follow-up
Games/Images request for the IDs found; its response fills the cover,
back cover, fan art, marquee, screenshot and title screen URLs in.
"""
import json
from functools import partial
from typing import Iterable, List, Optional

from gamesdb_resources import GAMESDB_API_BASE, ResourceLoad, TheGamesDBResources, shared_resources
from http_transport import Transport, url_encode
from media_kinds import BACKCOVER, COVER, FANART, MARQUEE, SCREENSHOT, TITLESCREEN
from platforms import GAMESDB_PLATFORM_IDS, PLATFORM_UNKNOWN, gamesdb_platforms_for_id
from scraper_config import ScraperConfig
from scraper_data import (
    COMPLETED, NOT_STARTED, NormalizedResult, ParseResult, ProviderRequest, Query,
    merge_media_urls, parse_release_date,
)
from scraper_errors import ParseError
from source_adapter import SourceAdapter

GAME_FIELDS = ("players,publishers,genres,overview,last_updated,rating,platform,coop,"
               "youtube,os,processor,ram,hdd,video,sound,alternates")

ID_PREFIX = "id:"


def _decode_json(content: bytes) -> dict:
    try:
        doc = json.loads(content.decode("utf-8"))
    except ValueError as e:
        raise ParseError(f"TheGamesDB: error parsing JSON - {e}") from e
    if not isinstance(doc, dict):
        raise ParseError("TheGamesDB: unexpected JSON document")
    return doc


def _data(doc: dict) -> dict:
    data = doc.get("data")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError("TheGamesDB: unexpected \"data\" in JSON document")
    return data


def _allowance(doc: dict) -> Optional[int]:
    try:
        return int(doc["remaining_monthly_allowance"]) + int(doc["extra_allowance"])
    except (KeyError, TypeError, ValueError):
        return None


class TheGamesDBSource(SourceAdapter):
    name = "thegamesdb"

    def __init__(self, config: ScraperConfig, transport: Transport, callbacks=None,
                 resources: Optional[TheGamesDBResources] = None):
        super().__init__(config, transport, callbacks)
        self._resources = resources
        self._load: Optional[ResourceLoad] = None

    @property
    def resources(self) -> TheGamesDBResources:
        if self._resources is None and self._load is not None:
            self._resources = self._load.resources
        return self._resources if self._resources is not None else TheGamesDBResources()

    def _resource_requests(self) -> list:
        """A ResourceLoad to run ahead of the search when the tables aren't loaded yet."""
        if self._resources is None:
            self._resources = shared_resources(self.config)
        if self._resources is not None:
            return []
        self._load = ResourceLoad(self.config, self.transport, self.callbacks)
        return [self._load]

    # ---------------------------------
    # Requests
    # ---------------------------------
    def _base(self, endpoint: str) -> str:
        return f"{GAMESDB_API_BASE}/{endpoint}?apikey={url_encode(self.config.tgdb_api_key)}"

    def platform_filter(self, platform_ids: Iterable[str]) -> str:
        """'&filter%5Bplatform%5D=7,36' for the mapped platforms, '' when none map."""
        mapped = []
        for pid in platform_ids:
            gid = GAMESDB_PLATFORM_IDS.get(pid)
            if gid is None:
                self.log(f"[TGDB] [WARN] No support for platform \"{pid}\", search will be inaccurate")
                continue
            if gid not in mapped:
                mapped.append(gid)
        if not mapped:
            return ""
        return "&filter%5Bplatform%5D=" + ",".join(url_encode(g) for g in mapped)

    def build_requests(self, query: Query) -> list:
        if not self.config.tgdb_api_key:
            self.log("[TGDB] [WARN] No API key configured, requests will be rejected")

        override = query.name_override.strip()
        if override.startswith(ID_PREFIX):
            game_id = override[len(ID_PREFIX):].strip()
            url = f"{self._base('Games/ByGameID')}&fields={GAME_FIELDS}&id={url_encode(game_id)}"
            return self._resource_requests() + [self.make_request(url, label="thegamesdb id")]

        name = self.search_name(query)
        url = f"{self._base('Games/ByGameName')}&fields={GAME_FIELDS}&name={url_encode(name)}"
        if query.platform_ids:
            url += self.platform_filter(query.platform_ids)
        else:
            self.log("[TGDB] [WARN] No platform defined, search will be inaccurate")
        self.log(f"[TGDB] [DEBUG] Searching for '{name}'")
        return self._resource_requests() + [self.make_request(url, label="thegamesdb search")]

    def images_url(self, game_ids: Iterable[str]) -> str:
        ids = ",".join(url_encode(g) for g in game_ids)
        return f"{self._base('Games/Images')}&games_id={ids}"

    def media_urls_request(self, game_ids: Iterable[str]) -> ProviderRequest:
        """Standalone media URL lookup; results are media-only, keyed by game ID."""
        return self.make_request(self.images_url(game_ids), parser=self.parse_images,
                                 label="thegamesdb images")

    # ---------------------------------
    # Parsing
    # ---------------------------------
    def parse(self, content: bytes) -> ParseResult:
        doc = _decode_json(content)
        data = _data(doc)

        if isinstance(data.get("images"), dict):
            return self._media_results(doc), []

        games = data.get("games")
        if not isinstance(games, list):
            self.log("[TGDB] [WARN] Response had no game data")
            return [], []

        results = []
        for game in games:
            try:
                results.append(self.parse_game(game))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                self.log(f"[TGDB] [ERROR] Error while processing game: {e}")

        if not results:
            self.log("[TGDB] [DEBUG] No games found")
            return [], []

        allowance = _allowance(doc)
        for r in results:
            r.request_allowance = allowance

        ids = [r.game_id for r in results if r.game_id]
        follow_ups = []
        if ids:
            follow_ups.append(self.make_request(
                self.images_url(ids), parser=partial(self._fill_media_urls, results),
                label="thegamesdb images"))
        return results, follow_ups

    def parse_game(self, game: dict) -> NormalizedResult:
        title = game["game_title"]
        if not isinstance(title, str):
            raise TypeError("game_title is not a string")

        result = NormalizedResult(self.name, str(game["id"]) if game.get("id") is not None else "")
        result.set_field("name", title)

        platform = game.get("platform")
        if platform is not None:
            result.platform_ids = gamesdb_platforms_for_id(platform)
        if not result.platform_ids:
            result.platform_ids = [PLATFORM_UNKNOWN]

        overview = game.get("overview")
        if isinstance(overview, str):
            result.set_field("desc", overview.replace("\r", ""))

        release = game.get("release_date")
        if isinstance(release, str):
            result.set_field("releasedate", parse_release_date(release))

        res = self.resources
        if isinstance(game.get("developers"), list):
            result.set_field("developer", res.names(res.developers, game["developers"]))
        if isinstance(game.get("publishers"), list):
            result.set_field("publisher", res.names(res.publishers, game["publishers"]))
        if isinstance(game.get("genres"), list):
            result.set_field("genre", res.names(res.genres, game["genres"]))

        players = game.get("players")
        if isinstance(players, int):
            result.set_field("players", players)

        result.media_url_fetch = NOT_STARTED
        self.log(f"[TGDB] [DEBUG] Parsed '{result.name}' (ID {result.game_id})")
        return result

    def parse_images(self, content: bytes) -> ParseResult:
        return self._media_results(_decode_json(content)), []

    def _fill_media_urls(self, targets: List[NormalizedResult], content: bytes) -> ParseResult:
        by_id = {r.game_id: r for r in targets}
        for media in self._media_results(_decode_json(content)):
            target = by_id.get(media.game_id)
            if target is not None:
                merge_media_urls(target, media)
        return [], []

    def _media_results(self, doc: dict) -> List[NormalizedResult]:
        data = _data(doc)
        images = data.get("images") or {}
        base_urls = data.get("base_url") or {}
        if not isinstance(images, dict) or not isinstance(base_urls, dict):
            raise ParseError("TheGamesDB: unexpected image data in JSON document")
        base_url = base_urls.get("large")
        if not isinstance(base_url, str) or not base_url:
            self.log("[TGDB] [WARN] No URL path for large images")
            return []

        allowance = _allowance(doc)
        results = []
        for game_id, entries in images.items():
            result = NormalizedResult(self.name, str(game_id))
            if isinstance(entries, list):
                for entry in entries:
                    try:
                        self._apply_image(result, entry, base_url)
                    except (AttributeError, KeyError, TypeError, ValueError) as e:
                        self.log(f"[TGDB] [ERROR] Error while processing media URLs: {e}")
            result.media_url_fetch = COMPLETED
            result.request_allowance = allowance
            result.update_thumbnail_url()
            results.append(result)

        if allowance is not None:
            self.log(f"[TGDB] [DEBUG] Remaining monthly scraping allowance: {allowance}")
        return results

    @staticmethod
    def _apply_image(result: NormalizedResult, entry: dict, base_url: str):
        if not isinstance(entry, dict):
            raise TypeError(f"image entry is {type(entry).__name__}, not an object")
        filename = entry.get("filename")
        if not isinstance(filename, str) or not filename:
            return
        kind_of = entry.get("type")
        side = entry.get("side")
        url = base_url + filename

        if kind_of == "boxart" and side == "front":
            result.set_media(COVER, url)
        elif kind_of == "boxart" and side == "back":
            result.set_media(BACKCOVER, url)
        elif kind_of == "fanart":
            # First fan art only.
            if not result.media_url(FANART):
                result.set_media(FANART, url)
        elif kind_of == "clearlogo":
            result.set_media(MARQUEE, url)
        elif kind_of == "screenshot":
            result.set_media(SCREENSHOT, url)
        elif kind_of == "titlescreen":
            result.set_media(TITLESCREEN, url)
