"""Error taxonomy for scraping and media resolution."""


class ScraperError(Exception):
    """Base class for all scraper failures."""


class TransportError(ScraperError):
    """Network, IO, bad status or invalid HTTP response."""

    def __init__(self, message: str, status: str = ""):
        super().__init__(message)
        self.status = status


class ParseError(ScraperError):
    """A provider payload could not be parsed at the request level."""


class ValidationError(ScraperError):
    """Downloaded media is too small, undecodable or blank."""


class FilesystemError(ScraperError):
    """Media directory missing and not creatable, or the write failed."""
