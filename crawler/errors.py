"""Scrape pipeline exceptions."""


class ScraperError(Exception):
    """Base class for scrape pipeline failures."""


class PageLoadError(ScraperError):
    """A navigation failed or timed out; recoverable for the current page."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to load {url}: {reason}")
        self.url = url
        self.reason = reason


class BrowserUnavailableError(ScraperError):
    """The shared browser process could not be launched or has gone away."""
