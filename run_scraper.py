#!/usr/bin/env python3
"""
Command line scraper.

Scans one system ROM folder and, for every game, runs a search in automatic
mode, takes the first result and downloads its media.

    python run_scraper.py ~/ROMs/megadrive
    python run_scraper.py ~/ROMs/snes --scraper thegamesdb --only "Super Metroid"
"""
import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

from app_paths import print_path_diagnostics, resolve_dir
from async_operation import AsyncOperation, AsyncStatus
from http_transport import CancelToken, HttpTransport
from media_resolve import resolve_media_assets
from rom_parser import GameRecord, scan_system_folder
from scrape_log import emit_log, emit_progress, print_callbacks
from scraper_config import ScraperConfig, load_config
from scraper_data import COMPLETED, Query, merge_media_urls
from scraper_search import (
    get_scraper_list, is_valid_configured_scraper, start_media_urls_fetch, start_search,
)

POLL_INTERVAL_S = 0.05


def drive(op: AsyncOperation, interval_s: float = POLL_INTERVAL_S) -> str:
    """Poll `op` until it reaches a terminal state."""
    while op.poll() == AsyncStatus.RUNNING:
        time.sleep(interval_s)
    return op.status


def scrape_game(game: GameRecord, config: ScraperConfig, transport: HttpTransport,
                callbacks=None, cancel: Optional[CancelToken] = None) -> bool:
    label = str(game.relative_stem)

    search = start_search(Query(game, automatic_mode=True), config, transport, callbacks, cancel)
    if drive(search) == AsyncStatus.ERROR:
        emit_log(callbacks, f"[SCRAPER] [ERROR] {label}: {search.message()}")
        return False

    results = search.results()
    if not results:
        emit_log(callbacks, f"[SCRAPER] [WARN] {label}: no match found")
        return True

    result = results[0]
    if result.media_url_fetch != COMPLETED and result.game_id:
        fetch = start_media_urls_fetch([result.game_id], config, transport, callbacks, cancel)
        if drive(fetch) == AsyncStatus.ERROR:
            emit_log(callbacks, f"[SCRAPER] [ERROR] {label}: {fetch.message()}")
            return False
        for media in fetch.results():
            if media.game_id == result.game_id:
                merge_media_urls(result, media)

    emit_log(callbacks, f"[SCRAPER] {label} -> '{result.name}' ({result.source} id {result.game_id})")
    for key, value in sorted(result.metadata.items()):
        if key != "desc":
            emit_log(callbacks, f"[SCRAPER] [DEBUG]   {key}: {value}")
    if result.rating_label != "unknown":
        emit_log(callbacks, f"[SCRAPER] [DEBUG]   rating: {result.rating_label}")

    resolve = resolve_media_assets(result, game, config, transport, callbacks, cancel)
    if drive(resolve) == AsyncStatus.ERROR:
        emit_log(callbacks, f"[RESOLVE] [ERROR] {label}: {resolve.message()}")
        return False

    if result.request_allowance is not None:
        emit_log(callbacks, f"[SCRAPER] [DEBUG] Remaining request allowance: {result.request_allowance}")
    return True


def run(system_dir: Path, config: ScraperConfig, system_name: Optional[str] = None,
        only: Optional[str] = None, callbacks=None,
        cancel: Optional[CancelToken] = None) -> Tuple[int, int]:
    """Scrape every game below `system_dir`. Returns (scraped, failed)."""
    cancel = cancel or CancelToken()
    games: List[GameRecord] = scan_system_folder(system_dir, config.media_dir, system_name)
    if only:
        needle = only.lower()
        games = [g for g in games if needle in g.file_stem.lower()]

    total = len(games)
    emit_log(callbacks, f"[SCRAPER] Found {total} game(s) in {system_dir}")

    ok = failed = 0
    with HttpTransport.from_config(config, cancel) as transport:
        for i, game in enumerate(games, 1):
            if cancel.is_cancelled:
                emit_log(callbacks, "[SCRAPER] Cancelled")
                break
            if scrape_game(game, config, transport, callbacks, cancel):
                ok += 1
            else:
                failed += 1
            emit_progress(callbacks, i, total)
    return ok, failed


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Scrape metadata and media for a ROM folder")
    parser.add_argument("system_dir", type=str, help="System ROM folder, e.g. ~/ROMs/megadrive")
    parser.add_argument("--system", type=str, help="System name (defaults to the folder name)")
    parser.add_argument("--config", type=str, help="Path to config.yaml")
    parser.add_argument("--scraper", choices=get_scraper_list(), help="Override the configured scraper")
    parser.add_argument("--media-dir", type=str, help="Override the downloaded media directory")
    parser.add_argument("--only", type=str, help="Only scrape files whose name contains this text")
    parser.add_argument("--no-overwrite", action="store_true", help="Keep media files that already exist")
    parser.add_argument("--verbose", action="store_true", help="Print [DEBUG] lines")
    parser.add_argument("--diagnostics", action="store_true", help="Print resolved paths and exit")
    args = parser.parse_args(argv)

    if args.diagnostics:
        print_path_diagnostics()
        return 0

    callbacks = print_callbacks(verbose=args.verbose)
    config = load_config(Path(args.config) if args.config else None, callbacks=callbacks)

    changes = {}
    if args.scraper:
        changes["scraper"] = args.scraper
    if args.media_dir:
        changes["media_dir"] = resolve_dir(args.media_dir, Path.cwd())
    if args.no_overwrite:
        changes["overwrite_existing"] = False
    if changes:
        config = config.with_changes(**changes)

    if not is_valid_configured_scraper(config):
        print(f"Unknown scraper '{config.scraper}'. Available: {', '.join(get_scraper_list())}")
        return 2

    system_dir = resolve_dir(args.system_dir, Path.cwd())
    if not system_dir.is_dir():
        print(f"ROM folder not found: {system_dir}")
        return 2

    cancel = CancelToken()
    try:
        ok, failed = run(system_dir, config, args.system, args.only, callbacks, cancel)
    except KeyboardInterrupt:
        cancel.cancel()
        print("\nInterrupted")
        return 130

    print(f"Done: {ok} scraped, {failed} failed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
