"""Terminal front-end: run a code search and step through its matches."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from codenav.backends.models import Query
from codenav.config import ClientConfig
from codenav.core.navigation import Location
from codenav.core.render import RenderedLine
from codenav.core.session import SessionRegistry, SessionStatus
from codenav.core.styles import StyleSheet

logger = logging.getLogger(__name__)

PROMPT = "[n]ext [p]revious [q]uit> "


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="codenav", description="Search code and browse the matches")
    parser.add_argument("query", nargs="?", help="text to search for (prompted if omitted)")
    parser.add_argument("-e", "--regexp", action="store_true", help="treat the query as a regular expression")
    parser.add_argument("-p", "--path", default=None, help="path filter, e.g. 'src/**/*.py'")
    parser.add_argument("--endpoint", default=None, help="search endpoint URL")
    parser.add_argument("--source-root", default=None, help="directory result paths are relative to")
    parser.add_argument("--no-reuse", action="store_true", help="give this search its own result view")
    parser.add_argument("--no-color", action="store_true", help="disable highlighting")
    parser.add_argument("--no-navigate", action="store_true", help="print the results and exit")
    return parser.parse_args(argv)


def read_source_line(location: Location, source_root: Path) -> Optional[str]:
    """Get the source text at a location, if the file is available locally."""
    path = location.resolve(source_root)
    if path is None or not path.is_file():
        return None
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for number, line in enumerate(f, start=1):
            if number == location.line_number:
                return line.rstrip("\n")
    return None


def show_location(location: Optional[Location], source_root: Path) -> None:
    if location is None:
        print("No more matches")
        return
    if location.path is None:
        print(f"No file for match on display line {location.display_line}")
        return
    print(location)
    source = read_source_line(location, source_root)
    if source is not None:
        print(f"    {source}")


def navigate(registry: SessionRegistry, handle: str, source_root: Path) -> None:
    """Read navigation commands until the user quits."""
    while True:
        try:
            command = input(PROMPT).strip().lower()
        except EOFError:
            break

        if command in ("n", "next", ""):
            show_location(registry.next(handle), source_root)
        elif command in ("p", "prev", "previous"):
            show_location(registry.previous(handle), source_root)
        elif command in ("q", "quit"):
            break
        else:
            print(f"Unknown command: {command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    config = ClientConfig()
    if args.endpoint:
        config.search_url = args.endpoint
    if args.source_root:
        config.source_root = Path(args.source_root).expanduser()
    if args.no_reuse:
        config.reuse_buffer = False

    logging.basicConfig(level=config.log_level, stream=sys.stderr)

    text = args.query
    if text is None:
        try:
            text = input("Search for: ")
        except EOFError:
            return 1
    query = Query(text=text, is_regex=args.regexp, path_glob=args.path)

    styles = StyleSheet(config.style_file, enabled=not args.no_color and sys.stdout.isatty())

    def print_lines(handle: str, lines: List[RenderedLine]) -> None:
        for line in lines:
            print(styles.paint(line))

    with SessionRegistry(config) as registry:
        handle = registry.open_search(query, on_output=print_lines)
        session = registry.get(handle)
        try:
            registry.wait(handle)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt (CTRL+C)")
            registry.cancel(handle)

        if session.status is SessionStatus.FAILED:
            print(f"Search failed: {session.error}", file=sys.stderr)
        elif not session.index:
            print("No matches")
        else:
            print(f"{len(session.index)} matches ({session.status.value})")

        if not args.no_navigate and session.index:
            navigate(registry, handle, config.source_root)

    return 1 if session.status is SessionStatus.FAILED else 0


if __name__ == "__main__":
    sys.exit(main())
