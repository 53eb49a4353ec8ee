import json

import pytest

from async_operation import AsyncStatus
from conftest import FakeTransport
from gamesdb_resources import TheGamesDBResources
from media_kinds import BACKCOVER, COVER, FANART, MARQUEE, SCREENSHOT, TITLESCREEN
from rom_parser import GameRecord
from scraper_data import COMPLETED, NOT_STARTED, Query
from scraper_errors import ParseError
from scraper_search import SearchOrchestrator
from thegamesdb_source import TheGamesDBSource

LARGE = "https://cdn.thegamesdb.net/images/large/"

GAMES = {
    "code": 200,
    "data": {
        "count": 3,
        "games": [
            {
                "id": 1234,
                "game_title": "Sonic the Hedgehog",
                "release_date": "1991-06-23",
                "platform": 36,
                "players": 1,
                "overview": "Sonic\r\n runs.",
                "developers": [7979],
                "publishers": [15],
                "genres": [1, 15],
            },
            {"id": 99, "release_date": "1991-01-01"},
            {"id": 5678, "game_title": "Sonic the Hedgehog 2", "platform": 18, "genres": [999]},
        ],
    },
    "remaining_monthly_allowance": 2990,
    "extra_allowance": 10,
}

IMAGES = {
    "data": {
        "base_url": {"original": "https://cdn.thegamesdb.net/images/original/", "large": LARGE},
        "images": {
            "1234": [
                {"type": "boxart", "side": "front", "filename": "boxart/front/1234-1.jpg"},
                {"type": "boxart", "side": "back", "filename": "boxart/back/1234-1.jpg"},
                {"type": "fanart", "filename": "fanart/1234-1.jpg"},
                {"type": "fanart", "filename": "fanart/1234-2.jpg"},
                {"type": "clearlogo", "filename": "clearlogo/1234.png"},
                {"type": "screenshot", "filename": "screenshots/1234-1.jpg"},
                {"type": "titlescreen", "filename": "titlescreen/1234-1.jpg"},
            ],
            "5678": [{"type": "boxart", "side": "front", "filename": "boxart/front/5678-1.jpg"}],
        },
    },
    "remaining_monthly_allowance": 2989,
    "extra_allowance": 10,
}


@pytest.fixture
def resources():
    return TheGamesDBResources(
        developers={7979: "Sonic Team"},
        publishers={15: "Sega"},
        genres={1: "Action", 15: "Platform"},
    )


@pytest.fixture
def tgdb_config(config):
    return config.with_changes(scraper="thegamesdb")


@pytest.fixture
def source(tgdb_config, transport, resources, callbacks):
    return TheGamesDBSource(tgdb_config, transport, callbacks, resources=resources)


def test_id_override_bypasses_search(source, game):
    (req,) = source.build_requests(Query(game, name_override="id:1234"))
    assert req.url.startswith("https://api.thegamesdb.net/v1/Games/ByGameID?apikey=KEY")
    assert req.url.endswith("&id=1234")
    assert "filter" not in req.url


def test_name_search_filters_by_platform(source, game):
    (req,) = source.build_requests(Query(game))
    assert "/Games/ByGameName?apikey=KEY" in req.url
    assert "&name=Sonic%20The%20Hedgehog" in req.url
    assert req.url.endswith("&filter%5Bplatform%5D=36")


def test_several_platforms_are_joined(source, rom_root, config):
    rom = rom_root / "x.bin"
    rom.write_bytes(b"")
    g = GameRecord(rom, "custom", rom_root, config.media_dir, platform_ids=["genesis", "megadrive", "sega32x"])
    (req,) = source.build_requests(Query(g))
    assert req.url.endswith("&filter%5Bplatform%5D=18,36,33")


def test_unmapped_platform_warns_and_drops_filter(source, rom_root, config, log_lines):
    rom = rom_root / "x.bin"
    rom.write_bytes(b"")
    g = GameRecord(rom, "weird", rom_root, config.media_dir)
    (req,) = source.build_requests(Query(g))
    assert "filter" not in req.url
    assert any("search will be inaccurate" in line for line in log_lines)


def test_underscores_converted(source, rom_root, config):
    rom = rom_root / "Streets_of_Rage.md"
    rom.write_bytes(b"")
    g = GameRecord(rom, "megadrive", rom_root, config.media_dir)
    (req,) = source.build_requests(Query(g))
    assert "&name=Streets%20of%20Rage" in req.url


def test_parse_games_skips_malformed_records(source, log_lines):
    results, follow_ups = source.parse(json.dumps(GAMES).encode())
    assert [r.name for r in results] == ["Sonic the Hedgehog", "Sonic the Hedgehog 2"]

    sonic = results[0]
    assert sonic.game_id == "1234"
    assert sonic.metadata["desc"] == "Sonic\n runs."
    assert sonic.metadata["releasedate"] == "19910623T000000"
    assert sonic.metadata["developer"] == "Sonic Team"
    assert sonic.metadata["publisher"] == "Sega"
    assert sonic.metadata["genre"] == "Action, Platform"
    assert sonic.metadata["players"] == "1"
    assert "megadrive" in sonic.platform_ids
    assert sonic.request_allowance == 3000
    assert sonic.media_url_fetch == NOT_STARTED

    # Unknown genre IDs leave the field unset.
    assert "genre" not in results[1].metadata
    assert any("Error while processing game" in line for line in log_lines)

    (images,) = follow_ups
    assert "/Games/Images?apikey=KEY&games_id=1234,5678" in images.url


def test_follow_up_fills_media_urls(source, transport):
    results, (images,) = source.parse(json.dumps(GAMES).encode())
    transport.add("Games/Images", json.dumps(IMAGES).encode())
    while images.poll() == AsyncStatus.RUNNING:
        pass
    assert images.status == AsyncStatus.DONE
    assert images.results == []

    sonic = results[0]
    assert sonic.media_url(COVER) == LARGE + "boxart/front/1234-1.jpg"
    assert sonic.media_url(BACKCOVER) == LARGE + "boxart/back/1234-1.jpg"
    assert sonic.media_url(FANART) == LARGE + "fanart/1234-1.jpg"
    assert sonic.media_url(MARQUEE) == LARGE + "clearlogo/1234.png"
    assert sonic.media_url(SCREENSHOT) == LARGE + "screenshots/1234-1.jpg"
    assert sonic.media_url(TITLESCREEN) == LARGE + "titlescreen/1234-1.jpg"
    assert sonic.media_url_fetch == COMPLETED
    assert sonic.request_allowance == 2999
    assert sonic.thumbnail_url == LARGE + "boxart/front/1234-1.jpg"
    assert results[1].media_url(COVER) == LARGE + "boxart/front/5678-1.jpg"


def test_search_runs_images_request_after_game_request(source, game, transport):
    transport.add("ByGameName", json.dumps(GAMES).encode())
    transport.add("Games/Images", json.dumps(IMAGES).encode())
    search = SearchOrchestrator(source.build_requests(Query(game)))
    while search.poll() == AsyncStatus.RUNNING:
        pass
    assert search.status == AsyncStatus.DONE
    assert len(transport.issued) == 2
    assert "ByGameName" in transport.issued[0]
    assert "Games/Images" in transport.issued[1]
    assert [r.media_url(COVER) for r in search.results()] == [
        LARGE + "boxart/front/1234-1.jpg", LARGE + "boxart/front/5678-1.jpg"]


def test_missing_large_base_url_leaves_media_empty(source, log_lines):
    doc = {"data": {"base_url": {}, "images": {"1": []}}}
    results, follow_ups = source.parse(json.dumps(doc).encode())
    assert results == [] and follow_ups == []
    assert any("No URL path for large images" in line for line in log_lines)


def test_no_game_data(source):
    assert source.parse(b'{"data": {"count": 0}}') == ([], [])


def test_invalid_json_is_parse_error(source):
    with pytest.raises(ParseError):
        source.parse(b"<html>rate limited</html>")


def test_invalid_json_errors_the_search(source, game):
    t = FakeTransport()
    t.add("ByGameName", b"not json")
    src = TheGamesDBSource(source.config, t, resources=source.resources)
    search = SearchOrchestrator(src.build_requests(Query(game)))
    while search.poll() == AsyncStatus.RUNNING:
        pass
    assert search.status == AsyncStatus.ERROR
    assert "JSON" in search.message()


@pytest.mark.parametrize("doc", [
    {"data": ["x"]},
    {"data": "x"},
    {"data": {"base_url": "https://cdn/", "images": {"1": []}}},
    {"data": {"base_url": {"large": LARGE}, "images": ["x"]}},
])
def test_malformed_document_is_parse_error(source, doc):
    with pytest.raises(ParseError):
        source.parse_images(json.dumps(doc).encode())


def test_malformed_data_errors_the_search(source, game):
    t = FakeTransport()
    t.add("ByGameName", json.dumps({"data": ["x"]}).encode())
    src = TheGamesDBSource(source.config, t, resources=source.resources)
    search = SearchOrchestrator(src.build_requests(Query(game)))
    while search.poll() == AsyncStatus.RUNNING:
        pass
    assert search.status == AsyncStatus.ERROR
    assert "unexpected" in search.message()


def test_bad_game_record_is_skipped(source, log_lines):
    doc = {"data": {"games": ["bogus", {"id": 1, "game_title": "Sonic the Hedgehog"}]}}
    results, _ = source.parse(json.dumps(doc).encode())
    assert [r.name for r in results] == ["Sonic the Hedgehog"]
    assert any("Error while processing game" in line for line in log_lines)


def test_bad_image_entry_is_skipped(source, game, log_lines):
    images = {"data": {
        "base_url": {"large": LARGE},
        "images": {"1234": ["bogus", {"type": "boxart", "side": "front", "filename": "boxart/front/1234-1.jpg"}]},
    }}
    t = FakeTransport()
    t.add("ByGameName", json.dumps({"data": {"games": [{"id": 1234, "game_title": "Sonic"}]}}).encode())
    t.add("Games/Images", json.dumps(images).encode())
    src = TheGamesDBSource(source.config, t, source.callbacks, resources=source.resources)

    search = SearchOrchestrator(src.build_requests(Query(game)))
    while search.poll() == AsyncStatus.RUNNING:
        pass
    assert search.status == AsyncStatus.DONE
    (sonic,) = search.results()
    assert sonic.media_url(COVER) == LARGE + "boxart/front/1234-1.jpg"
    assert any("Error while processing media URLs" in line for line in log_lines)
