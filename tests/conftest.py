"""Pytest configuration for scraper tests."""
import sys
from io import BytesIO
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Modules live at the repository root
root_dir = Path(__file__).parent.parent
if str(root_dir) not in sys.path:
    sys.path.insert(0, str(root_dir))

from http_transport import RequestHandle, RequestStatus, Transport  # noqa: E402
from rom_parser import GameRecord  # noqa: E402
from scraper_config import ScraperConfig  # noqa: E402


class FakeHandle(RequestHandle):
    """Finishes after `delay` in-progress polls."""

    def __init__(self, url, status, content=b"", error="", delay=0):
        super().__init__(url)
        self._outcome = (status, content, error)
        self._delay = delay

    def poll(self):
        if self._status != RequestStatus.IN_PROGRESS:
            return self._status
        if self._delay > 0:
            self._delay -= 1
            return self._status
        self._finish(*self._outcome)
        return self._status


class FakeTransport(Transport):
    """Answers by URL fragment; unknown URLs get a 404."""

    def __init__(self, delay=0):
        self.responses = {}
        self.issued = []
        self.delay = delay

    def add(self, fragment, content=b"", status=RequestStatus.SUCCESS, error=""):
        self.responses[fragment] = (status, content, error)

    def issue(self, url):
        self.issued.append(url)
        for fragment, (status, content, error) in self.responses.items():
            if fragment in url:
                return FakeHandle(url, status, content, error, self.delay)
        return FakeHandle(url, RequestStatus.BAD_STATUS, error="HTTP status 404 Not Found", delay=self.delay)


def image_bytes(size=(100, 100), color=(200, 30, 30), fmt="PNG", gradient=False):
    if gradient:
        w, h = size
        xs = np.linspace(0, 255, w, dtype=np.uint8)
        ys = np.linspace(0, 255, h, dtype=np.uint8)
        arr = np.zeros((h, w, 3), dtype=np.uint8)
        arr[:, :, 0] = xs[None, :]
        arr[:, :, 1] = ys[:, None]
        img = Image.fromarray(arr, "RGB")
    else:
        img = Image.new("RGB", size, color)
    out = BytesIO()
    img.save(out, fmt)
    return out.getvalue()


def decode(data):
    img = Image.open(BytesIO(data))
    img.load()
    return img


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def config(tmp_path):
    return ScraperConfig(
        media_dir=tmp_path / "media",
        resources_dir=tmp_path / "scrapers",
        tgdb_api_key="KEY",
        ss_dev_id="dev",
        ss_dev_password="devpw",
    )


@pytest.fixture
def rom_root(tmp_path):
    d = tmp_path / "roms" / "megadrive"
    d.mkdir(parents=True)
    return d


@pytest.fixture
def game(rom_root, config):
    rom = rom_root / "Sonic The Hedgehog (USA, Europe).md"
    rom.write_bytes(b"\x00" * 16)
    return GameRecord(rom, "megadrive", rom_root, config.media_dir)


@pytest.fixture
def log_lines():
    lines = []
    return lines


@pytest.fixture
def callbacks(log_lines):
    return {"log": log_lines.append}
