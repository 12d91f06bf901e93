"""Fetch a search response and write it to stdout as the result stream.

Runs as the child process of a search session::

    python -m codenav.backends.fetch URL --spec '{"ignored_group_prefix": "*"}'

Exits with status 1 when the backend cannot be reached or answers with an
error or with a body that is not JSON.
"""

import argparse
import logging
import sys
from typing import List, Optional, TextIO

import requests

from codenav.backends.postprocess import PostProcessSpec
from codenav.backends.query import JSON_HEADERS

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def fetch_results(url: str, timeout: float = DEFAULT_TIMEOUT) -> object:
    """Run the search request.

    Args:
        url: Fully formatted search URL
        timeout: Request timeout in seconds

    Returns:
        The decoded JSON response

    Raises:
        requests.exceptions.RequestException: On transport or HTTP errors
        requests.exceptions.JSONDecodeError: If the body is not JSON
    """
    response = requests.get(url, headers=JSON_HEADERS, timeout=timeout)
    response.raise_for_status()
    return response.json()


def write_stream(payload: object, spec: PostProcessSpec, out: TextIO) -> int:
    """Write the stream lines for a response, returning the number of lines."""
    count = 0
    for line in spec.apply(payload):
        out.write(line + "\n")
        count += 1
    out.flush()
    return count


def main(argv: Optional[List[str]] = None, out: Optional[TextIO] = None) -> int:
    """Main entry point.

    Args:
        argv: Command line arguments, defaults to sys.argv
        out: Stream for the result lines, defaults to stdout as UTF-8
    """
    parser = argparse.ArgumentParser(description="Fetch code search results as a line stream")
    parser.add_argument("url", help="formatted search URL")
    parser.add_argument("--spec", default=None, help="post-process spec as JSON")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT)
    parser.add_argument("--log-level", default="WARNING", type=str.upper, help="level of the stderr log")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level, stream=sys.stderr, format="%(message)s")

    spec = PostProcessSpec.model_validate_json(args.spec) if args.spec else PostProcessSpec()

    try:
        payload = fetch_results(args.url, timeout=args.timeout)
    except requests.exceptions.HTTPError as exc:
        logger.error(f"Search HTTP error: {exc}")
        return 1
    except requests.exceptions.JSONDecodeError as exc:
        logger.error(f"Search response is not JSON: {exc}")
        return 1
    except requests.exceptions.RequestException as exc:
        logger.error(f"Search request failed: {exc}")
        return 1

    if out is None:
        # The stream is always UTF-8 with bare newlines, whatever the locale
        with open(sys.stdout.fileno(), "w", encoding="utf-8", newline="\n", closefd=False) as stdout:
            count = write_stream(payload, spec, stdout)
    else:
        count = write_stream(payload, spec, out)
    logger.info(f"Wrote {count} result lines")
    return 0


if __name__ == "__main__":
    sys.exit(main())
