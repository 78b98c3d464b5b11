"""Extraction contracts."""

from .base import Extractor
from .items import ExtractionResult, FeedItemExtractor, identity_key
from .listing import DEFAULT_LISTING_MARKUP, ListingMarkup, parse_listing_html

__all__ = [
    "DEFAULT_LISTING_MARKUP",
    "ExtractionResult",
    "Extractor",
    "FeedItemExtractor",
    "ListingMarkup",
    "identity_key",
    "parse_listing_html",
]
