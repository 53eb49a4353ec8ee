"""
ScreenScraper source (XML API, api.screenscraper.fr/api2).

The game lookup endpoints take a single `systemeid`, so one search fans out
into one request per mapped platform of the system. With no mapped platform
a single unscoped request is sent.
"""
import xml.etree.ElementTree as ET
from typing import List, Optional, Sequence

from http_transport import url_encode
from media_kinds import (
    BACKCOVER, BOX3D, COVER, FANART, MARQUEE, PHYSICALMEDIA, SCREENSHOT, TITLESCREEN, VIDEO,
)
from platforms import SCREENSCRAPER_PLATFORM_IDS
from scraper_data import (
    COMPLETED, NormalizedResult, ParseResult, ProviderRequest, Query, clean_text,
    parse_release_date, rating_label, round_up_rating,
)
from scraper_errors import ParseError
from source_adapter import SourceAdapter

API_URL_BASE = "https://api.screenscraper.fr/api2"

# Records ScreenScraper keeps for files that are not games (BIOS, demos, ...).
NOT_A_GAME_MARKER = "zzz(notgame)"

REGION_FALLBACK = ("wor", "us", "jp", "eu")
MEDIA_REGION_FALLBACK = ("wor", "us", "ss", "eu", "jp")
LANGUAGE_FALLBACK = ("en",)

MEDIA_TYPES = {
    BOX3D: ("box-3D",),
    BACKCOVER: ("box-2D-back",),
    COVER: ("box-2D",),
    FANART: ("fanart",),
    MARQUEE: ("wheel-hd", "wheel"),
    PHYSICALMEDIA: ("support-2D",),
    SCREENSHOT: ("ss",),
    TITLESCREEN: ("sstitle",),
    VIDEO: ("video-normalized", "video"),
}


def _text(node: Optional[ET.Element]) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.strip()


def _ordered(first: str, fallback: Sequence[str]) -> List[str]:
    out = []
    for v in (first.lower(),) + tuple(fallback):
        if v and v not in out:
            out.append(v)
    return out


def find_by_attribute(nodes: Sequence[ET.Element], attribute: str,
                      values: Sequence[str]) -> Optional[ET.Element]:
    """First node whose `attribute` matches the earliest value; else the first node."""
    for value in values:
        for node in nodes:
            if (node.get(attribute) or "").lower() == value:
                return node
    return nodes[0] if nodes else None


def is_not_a_game(name: str) -> bool:
    return "".join(name.lower().split()).startswith(NOT_A_GAME_MARKER)


class ScreenScraperSource(SourceAdapter):
    name = "screenscraper"

    # ---------------------------------
    # Requests
    # ---------------------------------
    def _auth_params(self) -> str:
        cfg = self.config
        params = (f"devid={url_encode(cfg.ss_dev_id)}"
                  f"&devpassword={url_encode(cfg.ss_dev_password)}"
                  f"&softname={url_encode(cfg.ss_softname)}"
                  "&output=xml")
        if cfg.credentials is not None and cfg.credentials.username:
            params += (f"&ssid={url_encode(cfg.credentials.username)}"
                       f"&sspassword={url_encode(cfg.credentials.password)}")
        return params

    def search_url(self, query: Query) -> str:
        name = self.search_name(query)
        if query.name_override and not query.automatic_mode:
            return f"{API_URL_BASE}/jeuRecherche.php?{self._auth_params()}&recherche={url_encode(name)}"
        return f"{API_URL_BASE}/jeuInfos.php?{self._auth_params()}&romnom={url_encode(name)}"

    def system_ids(self, platform_ids: Sequence[str]) -> List[int]:
        ids = set()
        for pid in platform_ids:
            sid = SCREENSCRAPER_PLATFORM_IDS.get(pid)
            if sid is None:
                self.log(f"[SCREENSCRAPER] [WARN] No support for platform \"{pid}\"")
                continue
            ids.add(sid)
        return sorted(ids)

    def build_requests(self, query: Query) -> List[ProviderRequest]:
        base = self.search_url(query)
        ids = self.system_ids(query.platform_ids)
        if not ids:
            self.log("[SCREENSCRAPER] [WARN] No platform mapped, sending an unscoped search")
            return [self.make_request(base, label="screenscraper")]
        return [self.make_request(f"{base}&systemeid={url_encode(sid)}",
                                  label=f"screenscraper systemeid={sid}")
                for sid in ids]

    # ---------------------------------
    # Parsing
    # ---------------------------------
    def parse(self, content: bytes) -> ParseResult:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise ParseError(f"ScreenScraper: error parsing XML - {e}") from e

        if root.tag != "Data":
            data = root.find("Data")
            if data is None:
                raise ParseError(f"ScreenScraper: unexpected XML root <{root.tag}>")
            root = data

        allowance = self._allowance(root)
        games = root.findall("jeu") + root.findall("jeux/jeu")

        results = []
        # Cap applies per platform request, not per search.
        for game in games[:max(self.config.max_results, 0)]:
            try:
                result = self.parse_game(game)
            except (KeyError, TypeError, ValueError) as e:
                self.log(f"[SCREENSCRAPER] [ERROR] Error while processing game: {e}")
                continue
            if result is None:
                continue
            result.request_allowance = allowance
            results.append(result)

        if not results:
            self.log("[SCREENSCRAPER] [DEBUG] No games found")
        return results, []

    @staticmethod
    def _allowance(root: ET.Element) -> Optional[int]:
        user = root.find("ssuser")
        if user is None:
            return None
        try:
            return int(_text(user.find("maxrequestsperday"))) - int(_text(user.find("requeststoday")))
        except ValueError:
            return None

    def parse_game(self, game: ET.Element) -> Optional[NormalizedResult]:
        cfg = self.config
        regions = _ordered(cfg.region, REGION_FALLBACK)
        languages = _ordered(cfg.language, LANGUAGE_FALLBACK)

        name = clean_text(_text(find_by_attribute(game.findall("noms/nom"), "region", regions)))
        if not name:
            # jeuRecherche list entries may carry a plain <nom>.
            name = clean_text(_text(game.find("nom")))
        if not name:
            raise ValueError("game has no name")
        if is_not_a_game(name):
            self.log(f"[SCREENSCRAPER] [DEBUG] Skipping non-game entry '{name}'")
            return None

        game_id = game.get("id") or _text(game.find("id"))
        result = NormalizedResult(self.name, game_id)
        result.set_field("name", name)

        desc = _text(find_by_attribute(game.findall("synopsis/synopsis"), "langue", languages))
        result.set_field("desc", clean_text(desc))

        result.set_field("genre", self._genre(game, languages))

        date = _text(find_by_attribute(game.findall("dates/date"), "region", regions))
        result.set_field("releasedate", parse_release_date(date))

        result.set_field("developer", clean_text(_text(game.find("developpeur"))))
        result.set_field("publisher", clean_text(_text(game.find("editeur"))))
        result.set_field("players", _text(game.find("joueurs")))

        note = _text(game.find("note"))
        if cfg.scrape_ratings and note:
            try:
                ratio = min(max(int(note), 0), 20) / 20
            except ValueError:
                self.log(f"[SCREENSCRAPER] [WARN] Ignoring invalid rating \"{note}\"")
            else:
                result.set_field("rating", f"{round_up_rating(ratio):g}")
                result.rating_label = rating_label(ratio)

        system = game.find("systeme")
        system_id = system.get("id", "") if system is not None else ""
        system_id = system_id or _text(game.find("systemeid"))
        if system_id:
            result.platform_ids = [k for k, v in SCREENSCRAPER_PLATFORM_IDS.items()
                                   if str(v) == system_id]

        medias = game.findall("medias/media")
        if medias:
            self._apply_media(result, medias)
        result.media_url_fetch = COMPLETED
        result.update_thumbnail_url()

        self.log(f"[SCREENSCRAPER] [DEBUG] Parsed '{result.name}' (ID {result.game_id})")
        return result

    @staticmethod
    def _genre(game: ET.Element, languages: Sequence[str]) -> str:
        # Old style: <genres><genre langue="en">Action</genre></genres>
        flat = [g for g in game.findall("genres/genre") if _text(g)]
        if flat:
            return _text(find_by_attribute(flat, "langue", languages))
        # Current style: <genre><noms_genre><nom_genre langue="en">...</nom_genre>
        names = []
        for genre in game.findall("genres/genre"):
            name = _text(find_by_attribute(genre.findall("noms_genre/nom_genre"), "langue", languages))
            if name and name not in names:
                names.append(name)
        return ", ".join(names)

    def _apply_media(self, result: NormalizedResult, medias: List[ET.Element]):
        regions = _ordered(self.config.region, MEDIA_REGION_FALLBACK)
        for kind, types in MEDIA_TYPES.items():
            if kind == VIDEO and not self.config.prefer_normalized_video:
                types = tuple(reversed(types))
            for media_type in types:
                candidates = [m for m in medias if m.get("type") == media_type and _text(m)]
                art = find_by_attribute(candidates, "region", regions)
                if art is None:
                    continue
                # Softnames containing spaces come back in the URLs.
                url = _text(art).replace(" ", "%20")
                result.set_media(kind, url, art.get("format") or "")
                break
            else:
                self.log(f"[SCREENSCRAPER] [DEBUG] No media of type {'/'.join(types)}")
