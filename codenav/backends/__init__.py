"""Backend request formatting and response transforms."""

from .models import BackendFile, BackendLine, FileGroup, Hit, MatchGroup, Query
from .postprocess import PostProcessSpec, encode_hit
from .query import FormattedRequest, build_params, format_query

__all__ = [
    "Query",
    "BackendFile",
    "BackendLine",
    "MatchGroup",
    "FileGroup",
    "Hit",
    "PostProcessSpec",
    "encode_hit",
    "FormattedRequest",
    "build_params",
    "format_query",
]
