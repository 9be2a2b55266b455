"""External SEO data providers."""

from providers.seo_data import (
    BacklinkProvider,
    BacklinkRecord,
    KeywordMetric,
    get_autocomplete_suggestions,
    get_backlink_provider,
    get_search_volume,
)

__all__ = [
    "BacklinkProvider",
    "BacklinkRecord",
    "KeywordMetric",
    "get_autocomplete_suggestions",
    "get_backlink_provider",
    "get_search_volume",
]
