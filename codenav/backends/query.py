"""Build search requests for the code search backend."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import requests

from codenav.backends.models import Query
from codenav.backends.postprocess import PostProcessSpec

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Accept": "application/json"}


@dataclass(frozen=True)
class FormattedRequest:
    """A ready-to-send search request and the transform for its response."""

    url: str
    params: Dict[str, str]
    post_process: PostProcessSpec
    headers: Dict[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))


def build_params(query: Query) -> Dict[str, str]:
    """Get the backend query parameters for a search.

    Path globs are passed through verbatim; the backend expands ``*`` and ``**``.
    """
    return {
        "q": query.text,
        "regexp": "true" if query.is_regex else "false",
        "path": query.path_glob or "",
    }


def format_query(
    query: Query, endpoint: str, post_process: Optional[PostProcessSpec] = None
) -> FormattedRequest:
    """Format a query into a request for the given search endpoint.

    Args:
        query: The search to run
        endpoint: Search endpoint URL
        post_process: Response transform, defaults to the standard stream grammar

    Returns:
        The formatted request
    """
    params = build_params(query)
    prepared = requests.Request("GET", endpoint, params=params, headers=JSON_HEADERS).prepare()
    logger.debug(f"Formatted search request: {prepared.url}")

    return FormattedRequest(
        url=prepared.url,
        params=params,
        post_process=post_process or PostProcessSpec(),
    )
