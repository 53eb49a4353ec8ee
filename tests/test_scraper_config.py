import dataclasses
from pathlib import Path

import pytest

from media_kinds import COVER, MEDIA_KINDS, VIDEO
from scraper_config import ScraperConfig, config_from_dict, load_config


def test_defaults():
    cfg = ScraperConfig()
    assert cfg.scraper == "screenscraper"
    assert cfg.overwrite_existing is True
    assert cfg.halt_on_invalid_media is True
    assert cfg.invalid_media_min_bytes == 350
    assert cfg.check_blank_backcovers is True
    assert cfg.credentials is None
    assert all(cfg.kind_enabled(k) for k in MEDIA_KINDS)


def test_config_is_immutable():
    cfg = ScraperConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.region = "us"
    with pytest.raises(TypeError):
        cfg.media_enabled[COVER] = False


def test_with_changes_returns_new_value():
    cfg = ScraperConfig()
    other = cfg.with_changes(region="us", media_enabled={COVER: True})
    assert cfg.region == "eu"
    assert other.region == "us"
    assert other.kind_enabled(COVER)
    assert not other.kind_enabled(VIDEO)


def test_from_dict_reads_sections(tmp_path):
    cfg = config_from_dict({
        "scraper": "TheGamesDB",
        "media_dir": "media",
        "region": "US",
        "scrape_media": {"video": False, "fanart": "no"},
        "overwrite_existing": False,
        "invalid_media_min_bytes": 500,
        "http": {"connect_timeout": 3, "workers": 2},
        "thegamesdb": {"api_key": "abc", "resources_max_age_hours": 0},
    }, base_dir=tmp_path, env={})

    assert cfg.scraper == "thegamesdb"
    assert cfg.media_dir == tmp_path / "media"
    assert cfg.region == "us"
    assert not cfg.kind_enabled("video")
    assert not cfg.kind_enabled("fanart")
    assert cfg.kind_enabled("cover")
    assert cfg.overwrite_existing is False
    assert cfg.invalid_media_min_bytes == 500
    assert cfg.connect_timeout == 3.0
    assert cfg.http_workers == 2
    assert cfg.read_timeout == 60.0
    assert cfg.tgdb_api_key == "abc"
    assert cfg.tgdb_resources_max_age_hours == 0


def test_secrets_from_environment():
    cfg = config_from_dict({
        "screenscraper": {"username_env": "SS_USER", "password_env": "SS_PASS", "dev_id": "d"},
        "thegamesdb": {"api_key_env": "TGDB_KEY"},
    }, env={"SS_USER": "me", "SS_PASS": "pw", "TGDB_KEY": "k"})
    assert cfg.credentials.username == "me"
    assert cfg.credentials.password == "pw"
    assert cfg.ss_dev_id == "d"
    assert cfg.tgdb_api_key == "k"


def test_credentials_need_both_values():
    cfg = config_from_dict({"screenscraper": {"username": "me"}}, env={})
    assert cfg.credentials is None


def test_unknown_media_kind_is_logged():
    lines = []
    config_from_dict({"scrape_media": {"manual": True}}, env={}, callbacks={"log": lines.append})
    assert any("manual" in line and "[WARN]" in line for line in lines)


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("scraper: thegamesdb\nmedia_dir: ./dl\nscrape_media:\n  cover: false\n", encoding="utf-8")
    cfg = load_config(path, env={})
    assert cfg.scraper == "thegamesdb"
    assert cfg.media_dir == tmp_path.resolve() / "dl"
    assert not cfg.kind_enabled("cover")


def test_missing_config_file_uses_defaults(tmp_path):
    lines = []
    cfg = load_config(tmp_path / "nope.yaml", env={}, callbacks={"log": lines.append})
    assert cfg.scraper == "screenscraper"
    assert any("not found" in line for line in lines)


def test_shipped_config_loads():
    path = Path(__file__).parent.parent / "config.yaml"
    cfg = load_config(path, env={})
    assert cfg.scraper == "screenscraper"
    assert cfg.max_results == 7
    assert all(cfg.kind_enabled(k) for k in MEDIA_KINDS)
