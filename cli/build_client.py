"""Command-line front-end for building and syncing a cmsbuild site."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path

from cmsbuild.app import App
from cmsbuild.config import BuildOptions
from cmsbuild.exceptions import CMSBuildError

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DEFAULT_SYNC_FILE = "sync.json"
BUILD_TARGETS = ("all", "static", "sync")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    # Request lines from the HTTP stack drown out the build log.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def load_app(app_path: str) -> App:
    """Import ``module:attribute`` and return the ``App`` it names."""
    module_name, sep, attribute = app_path.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected module:attribute, got {app_path!r}")
    module = importlib.import_module(module_name)
    try:
        app = getattr(module, attribute)
    except AttributeError as exc:
        raise ValueError(f"Module {module_name!r} has no attribute {attribute!r}") from exc
    if not isinstance(app, App):
        raise ValueError(f"{app_path} is not a cmsbuild App")
    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmsbuild",
        description="Build a static site from a headless CMS",
    )
    parser.add_argument("--app", "-a", help="Site to build, as module:attribute")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    build = subparsers.add_parser("build", help="Build static HTML and/or the sync payload")
    build.add_argument(
        "target",
        nargs="?",
        default="all",
        choices=BUILD_TARGETS,
        help="all (default): static HTML + sync file; static: HTML only; sync: sync file only",
    )
    build.add_argument("--out", default="dist", help="Output directory (default: dist)")
    build.add_argument(
        "--sync-file",
        default=DEFAULT_SYNC_FILE,
        help=f"Sync payload path (default: {DEFAULT_SYNC_FILE})",
    )
    build.add_argument(
        "--no-media", action="store_true", help="Keep remote media URLs instead of downloading"
    )
    build.add_argument("--no-minify", action="store_true", help="Write unminified HTML")

    sync = subparsers.add_parser("sync", help="POST the sync payload to the content service")
    sync.add_argument("file", nargs="?", help="Previously written sync file to upload")
    return parser


def _run_build(app: App, args: argparse.Namespace) -> None:
    sync_file = Path(args.sync_file)
    if args.target == "sync":
        app.write_sync_json(sync_file)
        print(f"Wrote sync payload to {sync_file}")
        return

    options = BuildOptions(
        out_dir=Path(args.out),
        sync_file=sync_file if args.target == "all" else None,
        download_media=not args.no_media,
        minify=not args.no_minify,
    )
    app.run_build(options)
    page_count = len(app.registry.pages) + len(app.registry.collections)
    print(f"Built {page_count} page(s) to {options.out_dir}")
    if options.sync_file is not None:
        print(f"Wrote sync payload to {options.sync_file}")


def main(argv: list[str] | None = None, app: App | None = None) -> None:
    """CLI entry point.

    A site script can call ``main(app=app)`` directly; otherwise ``--app``
    names the module attribute holding the configured ``App``.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    _configure_logging(args.verbose)

    if app is None:
        if not args.app:
            print("Error: --app module:attribute is required")
            sys.exit(1)
        try:
            app = load_app(args.app)
        except (ImportError, ValueError) as exc:
            print(f"Error: {exc}")
            sys.exit(1)

    try:
        if args.command == "build":
            _run_build(app, args)
        elif args.command == "sync":
            app.post_sync(Path(args.file) if args.file else None)
            print("Sync complete.")
    except CMSBuildError as exc:
        print(f"Error: {args.command} failed: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
