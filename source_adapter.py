"""
Base class for metadata sources.

A source turns a Query into provider requests and provider payloads into
NormalizedResults. Parsers may return follow-up requests; the search
orchestrator appends them to the back of its queue.
"""
from typing import List

from http_transport import Transport
from rom_parser import clean_game_title
from scraper_config import ScraperConfig
from scraper_data import ParseResult, ProviderRequest, Query
from scrape_log import emit_log


class SourceAdapter:
    name = ""

    def __init__(self, config: ScraperConfig, transport: Transport, callbacks=None):
        self.config = config
        self.transport = transport
        self.callbacks = callbacks

    def build_requests(self, query: Query) -> List[ProviderRequest]:
        raise NotImplementedError

    def parse(self, content: bytes) -> ParseResult:
        raise NotImplementedError

    def make_request(self, url: str, parser=None, label: str = "") -> ProviderRequest:
        return ProviderRequest(self.transport, url, parser or self.parse,
                               label=label or self.name, callbacks=self.callbacks)

    def log(self, msg: str):
        emit_log(self.callbacks, msg)

    def search_name(self, query: Query) -> str:
        """Name sent to the provider: override, metadata name or clean file name."""
        name = query.name_override
        if not name:
            game = query.game
            if self.config.search_metadata_name and game.metadata_name:
                name = clean_game_title(game.metadata_name)
            else:
                name = game.clean_name()
        name = name.strip()
        if self.config.convert_underscores:
            name = name.replace("_", " ")
        return name
