"""
ROM Parser Module
Scans system directories for game files and provides the game-record lookup
used by the scraper: clean search names, system/platform identifiers and the
on-disk location of each downloaded media kind.
"""
import os
import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from media_kinds import extensions_for, subdir_for
from platforms import PLATFORM_IGNORE, platforms_for_system

# Files that live next to ROMs but are never games.
NON_ROM_EXTENSIONS = {
    ".txt", ".nfo", ".xml", ".json", ".yaml", ".yml", ".ini", ".cfg", ".log",
    ".pdf", ".sav", ".srm", ".state", ".png", ".jpg", ".jpeg", ".gif",
    ".bmp", ".webp", ".mp4", ".mkv", ".db", ".dat", ".sfv", ".m3u8",
}


def clean_game_title(name: str) -> str:
    """
    Strip parenthesized and bracketed tags from a ROM name, e.g.
    "Sonic The Hedgehog (USA, Europe) [!]" -> "Sonic The Hedgehog".
    """
    name = re.sub(r'\s*\([^)]*\)', '', name)
    name = re.sub(r'\s*\[[^\]]*\]', '', name)
    return re.sub(r'\s+', ' ', name).strip()


def is_rom_file(path: Path) -> bool:
    if path.name.startswith('.'):
        return False
    return path.suffix.lower() not in NON_ROM_EXTENSIONS


class GameRecord:
    """One game of one system, as seen by the scraper."""

    def __init__(self, path, system_name: str, rom_root, media_dir,
                 metadata_name: str = "", platform_ids: Optional[Sequence[str]] = None):
        self.path = Path(path)
        self.system_name = system_name
        self.rom_root = Path(rom_root)
        self.media_dir = Path(media_dir)
        self.metadata_name = metadata_name or ""
        self.platform_ids: Tuple[str, ...] = (tuple(platform_ids) if platform_ids
                                               else platforms_for_system(system_name))

    def __repr__(self):
        return f"GameRecord({self.system_name!r}, {str(self.relative_stem)!r})"

    @property
    def file_stem(self) -> str:
        return self.path.stem

    @property
    def relative_stem(self) -> Path:
        """Path below the system folder without the file extension."""
        try:
            rel = self.path.relative_to(self.rom_root)
        except ValueError:
            rel = Path(self.path.name)
        return rel.with_suffix("")

    def clean_name(self) -> str:
        return clean_game_title(self.file_stem)

    def is_scrapable(self) -> bool:
        return PLATFORM_IGNORE not in self.platform_ids

    def media_slot(self, kind: str) -> Path:
        """Destination for `kind` without extension."""
        return self.media_dir / self.system_name / subdir_for(kind) / self.relative_stem

    def media_path(self, kind: str, extension: str) -> Path:
        if extension and not extension.startswith('.'):
            extension = '.' + extension
        return Path(str(self.media_slot(kind)) + extension.lower())

    def existing_media_path(self, kind: str) -> Optional[Path]:
        slot = str(self.media_slot(kind))
        for ext in extensions_for(kind):
            for candidate in (ext, ext.upper()):
                p = Path(slot + candidate)
                if p.is_file():
                    return p
        return None


def scan_system_folder(system_dir: Path, media_dir: Path, system_name: Optional[str] = None) -> List[GameRecord]:
    """Collect game records below one system directory (recursive)."""
    system_dir = Path(system_dir)
    system_name = (system_name or system_dir.name).lower()
    if not system_dir.is_dir():
        return []

    records = []
    for dirpath, dirnames, filenames in os.walk(system_dir):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
        for filename in sorted(filenames):
            p = Path(dirpath) / filename
            if is_rom_file(p):
                records.append(GameRecord(p, system_name, system_dir, media_dir))
    return records
