"""
TheGamesDB lookup tables.

Game records from TheGamesDB carry developer, publisher and genre IDs only.
The ID->name tables are downloaded once to the scraper resource directory
(gamesdb_developers.json, gamesdb_publishers.json, gamesdb_genres.json),
reused while fresh, and exposed as read-only mappings. Downloads go through
the polling transport so loading never blocks the caller.
"""
import json
import time
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from async_operation import AsyncOperation
from http_transport import RequestHandle, RequestStatus, Transport, url_encode
from scrape_log import emit_log
from scraper_config import ScraperConfig

GAMESDB_API_BASE = "https://api.thegamesdb.net/v1"

RESOURCES = ("developers", "publishers", "genres")


def resource_file(resources_dir: Path, resource: str) -> Path:
    return Path(resources_dir) / f"gamesdb_{resource}.json"


def parse_resource(payload, resource: str) -> Dict[int, str]:
    """{'data': {'genres': {'1': {'id': 1, 'name': 'Action'}}}} -> {1: 'Action'}"""
    data = payload.get("data") if isinstance(payload, dict) else None
    entries = data.get(resource) if isinstance(data, dict) else None
    if isinstance(entries, list):
        entries = {str(e.get("id")): e for e in entries if isinstance(e, dict)}
    if not isinstance(entries, dict):
        return {}

    table = {}
    for key, entry in entries.items():
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        try:
            rid = int(entry.get("id", key))
        except (TypeError, ValueError):
            continue
        if name:
            table[rid] = str(name)
    return table


def _is_fresh(path: Path, max_age_hours: int) -> bool:
    if not path.is_file():
        return False
    if max_age_hours <= 0:
        return True
    return (time.time() - path.stat().st_mtime) < max_age_hours * 3600


def _read_cached(path: Path) -> Optional[dict]:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return None


def resource_url(resource: str, api_key: str) -> str:
    return f"{GAMESDB_API_BASE}/{resource.capitalize()}?apikey={url_encode(api_key)}"


class TheGamesDBResources:
    def __init__(self, developers: Optional[Mapping[int, str]] = None,
                 publishers: Optional[Mapping[int, str]] = None,
                 genres: Optional[Mapping[int, str]] = None):
        self.developers = MappingProxyType(dict(developers or {}))
        self.publishers = MappingProxyType(dict(publishers or {}))
        self.genres = MappingProxyType(dict(genres or {}))

    @staticmethod
    def names(table: Mapping[int, str], ids: Iterable) -> str:
        out = []
        for rid in ids or []:
            try:
                name = table.get(int(rid))
            except (TypeError, ValueError):
                continue
            if name:
                out.append(name)
        return ", ".join(out)


class ResourceLoad(AsyncOperation):
    """
    Loads every table from cache, refreshing stale ones from the API through
    the transport. A failed refresh falls back to the stale cache (or an
    empty table) and never fails the operation.

    Queued ahead of a search request, so it carries the same empty
    `results` / `follow_ups` a provider request has.
    """

    def __init__(self, config: ScraperConfig, transport: Transport, callbacks=None):
        super().__init__()
        self.config = config
        self.transport = transport
        self.resources: Optional[TheGamesDBResources] = None
        self.results = []
        self.follow_ups = []
        self._callbacks = callbacks
        self._started = False
        self._handles: Dict[str, RequestHandle] = {}
        self._tables: Dict[str, Dict[int, str]] = {}

    def __repr__(self):
        return f"ResourceLoad({str(self.config.resources_dir)!r}, {self.status})"

    def _path(self, resource: str) -> Path:
        return resource_file(self.config.resources_dir, resource)

    def _start(self):
        self._started = True
        for resource in RESOURCES:
            path = self._path(resource)
            if _is_fresh(path, self.config.tgdb_resources_max_age_hours):
                payload = _read_cached(path)
                if payload is not None:
                    self._store(resource, payload)
                    continue
            if self.config.tgdb_api_key:
                emit_log(self._callbacks, f"[TGDB] Downloading {resource} resource file...")
                self._handles[resource] = self.transport.issue(
                    resource_url(resource, self.config.tgdb_api_key))
            else:
                self._fall_back(resource)

    def _store(self, resource: str, payload):
        self._tables[resource] = parse_resource(payload, resource)
        emit_log(self._callbacks, f"[TGDB] [DEBUG] Loaded {len(self._tables[resource])} {resource}")

    def _fall_back(self, resource: str):
        path = self._path(resource)
        # Stale beats empty.
        self._store(resource, _read_cached(path) if path.is_file() else None)

    def _finish(self, resource: str, handle: RequestHandle, status: str):
        if status != RequestStatus.SUCCESS:
            emit_log(self._callbacks, f"[TGDB] [WARN] Failed to refresh {resource}: "
                                      f"{handle.error_message() or status}")
            self._fall_back(resource)
            return
        try:
            payload = json.loads(handle.content().decode("utf-8"))
        except ValueError as e:
            emit_log(self._callbacks, f"[TGDB] [WARN] Failed to refresh {resource}: {e}")
            self._fall_back(resource)
            return
        if not isinstance(payload, dict):
            emit_log(self._callbacks, f"[TGDB] [WARN] Failed to refresh {resource}: unexpected JSON document")
            self._fall_back(resource)
            return

        path = self._path(resource)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload), encoding="utf-8")
        except OSError as e:
            emit_log(self._callbacks, f"[TGDB] [WARN] Couldn't cache {resource}: {e}")
        self._store(resource, payload)

    def update(self) -> None:
        if not self._started:
            self._start()

        for resource, handle in list(self._handles.items()):
            status = handle.poll()
            if status == RequestStatus.IN_PROGRESS:
                continue
            del self._handles[resource]
            self._finish(resource, handle, status)

        if self._handles:
            return

        self.resources = TheGamesDBResources(**self._tables)
        _shared[Path(self.config.resources_dir)] = self.resources
        self.set_done()


_shared: Dict[Path, TheGamesDBResources] = {}


def shared_resources(config: ScraperConfig) -> Optional[TheGamesDBResources]:
    """Tables already loaded for `config.resources_dir` in this process, if any."""
    return _shared.get(Path(config.resources_dir))
