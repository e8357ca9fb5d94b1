# src/releasemirror/cli.py

import argparse
import importlib.metadata
import sys
from typing import List, Optional

from releasemirror import log_utils
from releasemirror.config import default_config_path
from releasemirror.constants import APP_NAME, EXIT_FATAL, EXIT_SUCCESS
from releasemirror.exceptions import (
    ConfigurationError,
    ReleaseListingError,
    StorageError,
)
from releasemirror.mirror.github_source import GithubReleaseSource, listing_to_json
from releasemirror.mirror.orchestrator import run_mirror


def get_version() -> str:
    try:
        return importlib.metadata.version(APP_NAME)
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="releasemirror - Mirror GitHub release assets into a local directory",
    )
    parser.add_argument(
        "--log-level",
        help="Console log level (DEBUG, INFO, WARNING, ERROR); overrides the config file",
    )
    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser(
        "list-releases",
        help="Print the release listing of a repository as JSON",
    )
    list_parser.add_argument("repository", help="Repository in owner/name form")
    list_parser.add_argument(
        "--include-tags",
        action="store_true",
        help="Append tags (as tag_<name> records) after the releases",
    )
    list_parser.add_argument(
        "--token",
        help="GitHub token (defaults to the GITHUB_TOKEN environment variable)",
    )
    list_parser.add_argument(
        "--indent", type=int, default=None, help="Pretty-print the JSON output"
    )

    mirror_parser = subparsers.add_parser(
        "mirror",
        help="Reconcile the mirror directory with every configured repository",
    )
    mirror_parser.add_argument(
        "config_path",
        nargs="?",
        help="Path to the YAML config file (defaults to the user config directory)",
    )

    subparsers.add_parser("version", help="Display releasemirror version")
    return parser


def cmd_list_releases(args: argparse.Namespace) -> int:
    source = GithubReleaseSource(github_token=args.token)
    try:
        releases = source.fetch_aggregated(args.repository, args.include_tags)
    except ReleaseListingError as e:
        log_utils.logger.error(f"Failed to list releases for {args.repository}: {e}")
        return EXIT_FATAL

    print(listing_to_json(releases, indent=args.indent))
    return EXIT_SUCCESS


def cmd_mirror(args: argparse.Namespace) -> int:
    config_path = args.config_path or default_config_path()
    try:
        run_mirror(config_path, log_level=args.log_level)
    except ConfigurationError as e:
        log_utils.logger.critical(f"Configuration error: {e}")
        return EXIT_FATAL
    except StorageError as e:
        log_utils.logger.critical(f"Storage error: {e}")
        return EXIT_FATAL
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the releasemirror command-line interface.

    Dispatches `list-releases`, `mirror`, and `version`, and exits non-zero
    only on fatal errors; per-repository and per-asset failures are logged
    and the run still succeeds.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        log_utils.set_log_level(args.log_level)

    if args.command == "list-releases":
        sys.exit(cmd_list_releases(args))
    elif args.command == "mirror":
        sys.exit(cmd_mirror(args))
    elif args.command == "version":
        print(f"{APP_NAME} {get_version()}")
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
