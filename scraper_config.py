"""
Scraper configuration.

The YAML file is read once per operation and turned into an immutable
`ScraperConfig` that is passed to adapters, orchestrators and tasks at
construction. Nothing below this layer looks settings up on its own.
"""
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml

from app_paths import get_config_path, get_media_dir, get_scrapers_resource_dir, resolve_dir
from media_kinds import MEDIA_KINDS, all_enabled
from scrape_log import emit_log


DEFAULT_SCRAPER = "screenscraper"
DEFAULT_INVALID_MEDIA_MIN_BYTES = 350


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


@dataclass(frozen=True)
class ScraperConfig:
    scraper: str = DEFAULT_SCRAPER
    media_dir: Path = field(default_factory=get_media_dir)
    resources_dir: Path = field(default_factory=get_scrapers_resource_dir)
    media_enabled: Mapping[str, bool] = field(
        default_factory=lambda: MappingProxyType(all_enabled()))
    overwrite_existing: bool = True
    halt_on_invalid_media: bool = True
    validate_media: bool = True
    invalid_media_min_bytes: int = DEFAULT_INVALID_MEDIA_MIN_BYTES
    check_blank_backcovers: bool = True
    region: str = "eu"
    language: str = "en"
    credentials: Optional[Credentials] = None
    convert_underscores: bool = True
    scrape_ratings: bool = True
    search_metadata_name: bool = False
    prefer_normalized_video: bool = True
    max_results: int = 7
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    http_workers: int = 4
    user_agent: str = "ES-Scraper/1.0"
    ss_dev_id: str = ""
    ss_dev_password: str = ""
    ss_softname: str = "ES-Scraper"
    tgdb_api_key: str = ""
    tgdb_resources_max_age_hours: int = 168

    def kind_enabled(self, kind: str) -> bool:
        return bool(self.media_enabled.get(kind, False))

    def with_changes(self, **changes) -> "ScraperConfig":
        if "media_enabled" in changes:
            changes["media_enabled"] = MappingProxyType(dict(changes["media_enabled"]))
        return replace(self, **changes)


def load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _secret(section: dict, key: str, env: Mapping[str, str]) -> str:
    """Value from `key`, else from the env var named by `key_env`."""
    value = section.get(key)
    if value:
        return str(value)
    env_name = section.get(f"{key}_env")
    if env_name:
        return str(env.get(str(env_name), "") or "")
    return ""


def _bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def config_from_dict(cfg: Dict[str, Any], base_dir: Optional[Path] = None,
                     env: Optional[Mapping[str, str]] = None, callbacks=None) -> ScraperConfig:
    env = os.environ if env is None else env
    base_dir = Path(base_dir) if base_dir else Path.cwd()
    defaults = ScraperConfig()

    media_cfg = cfg.get("scrape_media", {}) or {}
    unknown = [k for k in media_cfg if k not in MEDIA_KINDS]
    if unknown:
        emit_log(callbacks, f"[CONFIG] [WARN] Ignoring unknown media kinds: {', '.join(sorted(unknown))}")
    media_enabled = {kind: _bool(media_cfg.get(kind), True) for kind in MEDIA_KINDS}

    http_cfg = cfg.get("http", {}) or {}
    ss_cfg = cfg.get("screenscraper", {}) or {}
    tgdb_cfg = cfg.get("thegamesdb", {}) or {}

    credentials = None
    ss_user = _secret(ss_cfg, "username", env)
    ss_pass = _secret(ss_cfg, "password", env)
    if ss_user and ss_pass:
        credentials = Credentials(ss_user, ss_pass)

    media_dir = resolve_dir(cfg["media_dir"], base_dir) if cfg.get("media_dir") else defaults.media_dir
    resources_dir = (resolve_dir(cfg["resources_dir"], base_dir)
                     if cfg.get("resources_dir") else defaults.resources_dir)

    config = ScraperConfig(
        scraper=str(cfg.get("scraper", defaults.scraper)).strip().lower(),
        media_dir=media_dir,
        resources_dir=resources_dir,
        media_enabled=MappingProxyType(media_enabled),
        overwrite_existing=_bool(cfg.get("overwrite_existing"), defaults.overwrite_existing),
        halt_on_invalid_media=_bool(cfg.get("halt_on_invalid_media"), defaults.halt_on_invalid_media),
        validate_media=_bool(cfg.get("validate_media"), defaults.validate_media),
        invalid_media_min_bytes=int(cfg.get("invalid_media_min_bytes", defaults.invalid_media_min_bytes)),
        check_blank_backcovers=_bool(cfg.get("check_blank_backcovers"), defaults.check_blank_backcovers),
        region=str(cfg.get("region", defaults.region)).strip().lower(),
        language=str(cfg.get("language", defaults.language)).strip().lower(),
        credentials=credentials,
        convert_underscores=_bool(cfg.get("convert_underscores"), defaults.convert_underscores),
        scrape_ratings=_bool(cfg.get("scrape_ratings"), defaults.scrape_ratings),
        search_metadata_name=_bool(cfg.get("search_metadata_name"), defaults.search_metadata_name),
        prefer_normalized_video=_bool(cfg.get("prefer_normalized_video"), defaults.prefer_normalized_video),
        max_results=int(cfg.get("max_results", defaults.max_results)),
        connect_timeout=float(http_cfg.get("connect_timeout", defaults.connect_timeout)),
        read_timeout=float(http_cfg.get("read_timeout", defaults.read_timeout)),
        http_workers=int(http_cfg.get("workers", defaults.http_workers)),
        user_agent=str(http_cfg.get("user_agent", defaults.user_agent)),
        ss_dev_id=_secret(ss_cfg, "dev_id", env),
        ss_dev_password=_secret(ss_cfg, "dev_password", env),
        ss_softname=str(ss_cfg.get("softname", defaults.ss_softname)),
        tgdb_api_key=_secret(tgdb_cfg, "api_key", env),
        tgdb_resources_max_age_hours=int(tgdb_cfg.get("resources_max_age_hours",
                                                      defaults.tgdb_resources_max_age_hours)),
    )

    emit_log(callbacks, f"[CONFIG] Scraper: {config.scraper}, region={config.region}, language={config.language}")
    emit_log(callbacks, f"[CONFIG] Media kinds enabled: {[k for k in MEDIA_KINDS if config.kind_enabled(k)]}")
    emit_log(callbacks, f"[CONFIG] ScreenScraper user: {'SET' if credentials else 'NOT SET'}")
    emit_log(callbacks, f"[CONFIG] TheGamesDB API key: {'SET' if config.tgdb_api_key else 'NOT SET'}")
    return config


def load_config(config_path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None,
                callbacks=None) -> ScraperConfig:
    config_path = Path(config_path) if config_path else get_config_path()
    if config_path.exists():
        cfg = load_yaml(config_path)
        base_dir = config_path.resolve().parent
    else:
        emit_log(callbacks, f"[CONFIG] [WARN] {config_path} not found, using defaults")
        cfg = {}
        base_dir = None
    return config_from_dict(cfg, base_dir=base_dir, env=env, callbacks=callbacks)
