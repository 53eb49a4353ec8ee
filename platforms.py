"""
Platform identifiers and the provider-side ID tables.

A system (a ROM folder such as "megadrive" or "pcengine") maps to one or more
platform keys. Each provider has its own numeric ID for a platform. All tables
are built once at import and exposed read-only.
"""
from types import MappingProxyType
from typing import Dict, List, Tuple

PLATFORM_UNKNOWN = "unknown"
PLATFORM_IGNORE = "ignore"

PLATFORM_NAMES: Tuple[str, ...] = (
    "3do", "amiga", "amigacd32", "amstradcpc", "apple2", "arcade", "atari800",
    "atari2600", "atari5200", "atari7800", "atarilynx", "atarist", "atarijaguar",
    "atarijaguarcd", "atarixe", "colecovision", "c64", "vic20", "intellivision",
    "macintosh", "xbox", "xbox360", "msx", "neogeo", "neogeocd", "ngp", "ngpc",
    "n3ds", "n64", "nds", "fds", "nes", "famicom", "channelf", "gb", "gba", "gbc",
    "gc", "wii", "wiiu", "switch", "virtualboy", "gameandwatch", "pokemini",
    "openbor", "pc", "dos", "sega32x", "segacd", "dreamcast", "gamegear",
    "genesis", "mastersystem", "megadrive", "saturn", "sg-1000", "psx", "ps2",
    "ps3", "ps4", "psvita", "psp", "snes", "satellaview", "scummvm", "x68000",
    "solarus", "pcengine", "pcenginecd", "supergrafx", "pcfx", "wonderswan",
    "wonderswancolor", "zxspectrum", "zx81", "videopac", "vectrex", "trs-80",
    "coco", "android", "cdimono1", "ti99",
)

# System folders whose name is not itself a platform key.
_SYSTEM_ALIASES: Dict[str, List[str]] = {
    "megacd": ["segacd"],
    "sfc": ["snes"],
    "snesna": ["snes"],
    "nesna": ["nes"],
    "tg16": ["pcengine"],
    "tg-cd": ["pcenginecd"],
    "turbografx16": ["pcengine"],
    "mame": ["arcade"],
    "fbneo": ["arcade"],
    "naomi": ["arcade"],
    "atomiswave": ["arcade"],
    "gamecube": ["gc"],
    "ps1": ["psx"],
    "playstation": ["psx"],
    "sms": ["mastersystem"],
    "gg": ["gamegear"],
    "sg1000": ["sg-1000"],
    "ngage": [PLATFORM_IGNORE],
    "ports": [PLATFORM_IGNORE],
    "ms-dos": ["dos"],
    "windows": ["pc"],
    "3ds": ["n3ds"],
}

SYSTEM_PLATFORMS = MappingProxyType({k: tuple(v) for k, v in _SYSTEM_ALIASES.items()})

# thegamesdb.net platform IDs.
GAMESDB_PLATFORM_IDS = MappingProxyType({
    "3do": "25",
    "amiga": "4911",
    "amigacd32": "4947",
    "amstradcpc": "4914",
    "apple2": "4942",
    "arcade": "23",
    "atari800": "4943",
    "atari2600": "22",
    "atari5200": "26",
    "atari7800": "27",
    "atarijaguar": "28",
    "atarijaguarcd": "29",
    "atarilynx": "4924",
    "atarist": "4937",
    "atarixe": "30",
    "colecovision": "31",
    "c64": "40",
    "vic20": "4945",
    "intellivision": "32",
    "macintosh": "37",
    "android": "4916",
    "xbox": "14",
    "xbox360": "15",
    "msx": "4929",
    "neogeo": "24",
    "neogeocd": "4956",
    "ngp": "4922",
    "ngpc": "4923",
    "n3ds": "4912",
    "n64": "3",
    "nds": "8",
    "famicom": "7",
    "fds": "4936",
    "nes": "7",
    "gb": "4",
    "gba": "5",
    "gbc": "41",
    "gc": "2",
    "wii": "9",
    "wiiu": "38",
    "virtualboy": "4918",
    "gameandwatch": "4950",
    "pokemini": "4957",
    "satellaview": "6",
    "switch": "4971",
    "dos": "1",
    "scummvm": "1",
    "pc": "1",
    "pcfx": "4930",
    "cdimono1": "4917",
    "sega32x": "33",
    "segacd": "21",
    "dreamcast": "16",
    "gamegear": "20",
    "genesis": "18",
    "mastersystem": "35",
    "megadrive": "36",
    "saturn": "17",
    "sg-1000": "4949",
    "psx": "10",
    "ps2": "11",
    "ps3": "12",
    "ps4": "4919",
    "psvita": "39",
    "psp": "13",
    "snes": "6",
    "x68000": "4931",
    "supergrafx": "34",
    "pcengine": "34",
    "pcenginecd": "4955",
    "wonderswan": "4925",
    "wonderswancolor": "4926",
    "zxspectrum": "4913",
    "zx81": "5010",
    "videopac": "4927",
    "vectrex": "4939",
    "trs-80": "4941",
    "coco": "4941",
    "ti99": "4953",
})

# screenscraper.fr system IDs.
SCREENSCRAPER_PLATFORM_IDS = MappingProxyType({
    "3do": 29,
    "amiga": 64,
    "amigacd32": 130,
    "amstradcpc": 65,
    "apple2": 86,
    "arcade": 75,
    "atari800": 43,
    "atari2600": 26,
    "atari5200": 40,
    "atari7800": 41,
    "atarijaguar": 27,
    "atarijaguarcd": 171,
    "atarilynx": 28,
    "atarist": 42,
    "atarixe": 43,
    "colecovision": 48,
    "c64": 66,
    "vic20": 73,
    "intellivision": 115,
    "macintosh": 146,
    "xbox": 32,
    "xbox360": 33,
    "msx": 113,
    "neogeo": 142,
    "neogeocd": 70,
    "ngp": 25,
    "ngpc": 82,
    "n3ds": 17,
    "n64": 14,
    "nds": 15,
    "famicom": 3,
    "fds": 106,
    "nes": 3,
    "channelf": 80,
    "gb": 9,
    "gba": 12,
    "gbc": 10,
    "gc": 13,
    "wii": 16,
    "wiiu": 18,
    "switch": 225,
    "virtualboy": 11,
    "gameandwatch": 52,
    "pokemini": 211,
    "openbor": 214,
    "pc": 135,
    "dos": 135,
    "scummvm": 123,
    "sega32x": 19,
    "segacd": 20,
    "dreamcast": 23,
    "gamegear": 21,
    "genesis": 1,
    "mastersystem": 2,
    "megadrive": 1,
    "saturn": 22,
    "sg-1000": 109,
    "x68000": 79,
    "solarus": 223,
    "psx": 57,
    "ps2": 58,
    "ps3": 59,
    "psvita": 62,
    "psp": 61,
    "snes": 4,
    "satellaview": 107,
    "pcengine": 31,
    "pcenginecd": 114,
    "supergrafx": 105,
    "pcfx": 72,
    "wonderswan": 45,
    "wonderswancolor": 46,
    "zxspectrum": 76,
    "zx81": 77,
    "videopac": 104,
    "vectrex": 102,
    "trs-80": 144,
    "coco": 144,
    "cdimono1": 133,
    "ti99": 205,
    "android": 63,
})

_KNOWN_PLATFORMS = frozenset(PLATFORM_NAMES)


def is_known_platform(name: str) -> bool:
    return name in _KNOWN_PLATFORMS


def platforms_for_system(system_name: str) -> Tuple[str, ...]:
    """Platform keys for a system folder name; (unknown,) when unmapped."""
    key = (system_name or "").strip().lower()
    if key in SYSTEM_PLATFORMS:
        return SYSTEM_PLATFORMS[key]
    if key in _KNOWN_PLATFORMS:
        return (key,)
    return (PLATFORM_UNKNOWN,)


def gamesdb_platforms_for_id(platform_id) -> List[str]:
    """Reverse lookup of a TheGamesDB platform ID."""
    pid = str(platform_id)
    return [name for name, gid in GAMESDB_PLATFORM_IDS.items() if gid == pid]
