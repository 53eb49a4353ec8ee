"""Media asset kinds, their on-disk folders and size limits."""
from types import MappingProxyType
from typing import Dict, Tuple

COVER = "cover"
BACKCOVER = "backcover"
BOX3D = "3dbox"
FANART = "fanart"
MARQUEE = "marquee"
SCREENSHOT = "screenshot"
TITLESCREEN = "titlescreen"
PHYSICALMEDIA = "physicalmedia"
VIDEO = "video"

# Resolution order.
MEDIA_KINDS: Tuple[str, ...] = (
    BOX3D,
    BACKCOVER,
    COVER,
    FANART,
    MARQUEE,
    PHYSICALMEDIA,
    SCREENSHOT,
    TITLESCREEN,
    VIDEO,
)

MEDIA_SUBDIRS = MappingProxyType({
    BOX3D: "3dboxes",
    BACKCOVER: "backcovers",
    COVER: "covers",
    FANART: "fanart",
    MARQUEE: "marquees",
    PHYSICALMEDIA: "physicalmedia",
    SCREENSHOT: "screenshots",
    TITLESCREEN: "titlescreens",
    VIDEO: "videos",
})

DEFAULT_MAX_SIZE = (2560, 1440)
MARQUEE_MAX_SIZE = (1000, 600)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp")
VIDEO_EXTENSIONS = (".mp4", ".mkv", ".avi", ".webm", ".mov")


def is_video(kind: str) -> bool:
    return kind == VIDEO


def needs_resize(kind: str) -> bool:
    return kind != VIDEO


def max_size_for(kind: str) -> Tuple[int, int]:
    if kind == MARQUEE:
        return MARQUEE_MAX_SIZE
    return DEFAULT_MAX_SIZE


def subdir_for(kind: str) -> str:
    try:
        return MEDIA_SUBDIRS[kind]
    except KeyError:
        raise ValueError(f"Unknown media kind: {kind}") from None


def extensions_for(kind: str) -> Tuple[str, ...]:
    return VIDEO_EXTENSIONS if is_video(kind) else IMAGE_EXTENSIONS


def all_enabled() -> Dict[str, bool]:
    return {kind: True for kind in MEDIA_KINDS}
