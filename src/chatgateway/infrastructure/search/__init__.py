"""Web search providers used by the ``web_search`` tool."""

from chatgateway.infrastructure.search.base import (
    FormattedResults,
    SearchProvider,
    SearchRequest,
    SearchSettings,
)
from chatgateway.infrastructure.search.cache import SearchCache
from chatgateway.infrastructure.search.executor import SEARCH_PROVIDERS, SearchExecutor
from chatgateway.infrastructure.search.proxy import SearchProxy

__all__ = [
    "FormattedResults",
    "SEARCH_PROVIDERS",
    "SearchCache",
    "SearchExecutor",
    "SearchProvider",
    "SearchProxy",
    "SearchRequest",
    "SearchSettings",
]
