"""
Command-line interface for the text store.

Provides the `textstore` command with the following subcommands:
- serve: Run the REST server
- list / create / show / update / delete: Manage texts
- lang: Manage the localized texts of a text
- check: Audit the consistency of the snapshot's indices
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from . import __version__
from .config import Config, load_config
from .errors import (
    EXIT_INTEGRITY_FAULT,
    EXIT_SUCCESS,
    TextStoreError,
)
from .languages import LanguageCode, supported_codes
from .logging_config import SERVER_FORMAT, setup_logging
from .models import LocalizedEntry, TextRecord
from .store import TextStore, open_store

logger = logging.getLogger(__name__)


def _open(args: argparse.Namespace) -> TextStore:
    config: Config = args._config
    actor = getattr(args, "actor", None)
    if actor:
        return open_store(config, actor_provider=lambda: actor)
    return open_store(config)


def _print_items(items: List[Any], fmt: str, line) -> None:
    if fmt == "json":
        print(json.dumps([item.to_dict() for item in items], indent=2, ensure_ascii=False))
        return
    for item in items:
        print(line(item))


def _print_item(item: Any, fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(item.to_dict(), indent=2, ensure_ascii=False))
        return
    for key, value in item.to_dict().items():
        print(f"   {key}: {value if value is not None else ''}")


# -------------------------
# Texts
# -------------------------

def serve_command(args: argparse.Namespace) -> int:
    """Execute the serve command."""
    from .web import run_server

    config: Config = args._config
    host = args.host or config.server.host
    port = args.port or config.server.port
    run_server(
        host=host,
        port=port,
        debug=args.debug_server,
        config=config,
        allow_unsafe_bind=args.allow_unsafe_bind,
    )
    return EXIT_SUCCESS


def list_command(args: argparse.Namespace) -> int:
    """Execute the list command."""
    store = _open(args)
    texts = store.list(language=args.lang, offset=args.position, limit=args.size)
    if args.format != "json":
        print(f"\nTexts: {len(texts)} of {len(store)}")
    _print_items(texts, args.format, lambda t: f"   • {t.id}  {t.title}")
    return EXIT_SUCCESS


def create_command(args: argparse.Namespace) -> int:
    """Execute the create command."""
    store = _open(args)
    text = store.create(TextRecord(title=args.title, description=args.description))
    if args.format == "json":
        _print_item(text, args.format)
    else:
        print(f"✅ Created text {text.id}")
    return EXIT_SUCCESS


def show_command(args: argparse.Namespace) -> int:
    """Execute the show command."""
    store = _open(args)
    _print_item(store.read(args.text_id), args.format)
    return EXIT_SUCCESS


def update_command(args: argparse.Namespace) -> int:
    """
    Execute the update command.

    Options that are not given keep their stored value.
    """
    store = _open(args)
    current = store.read(args.text_id)
    patch = TextRecord(
        title=args.title if args.title is not None else current.title,
        description=args.description if args.description is not None else current.description,
    )
    text = store.update(args.text_id, patch)
    if args.format == "json":
        _print_item(text, args.format)
    else:
        print(f"✅ Updated text {text.id}")
    return EXIT_SUCCESS


def delete_command(args: argparse.Namespace) -> int:
    """Execute the delete command."""
    store = _open(args)
    store.delete(args.text_id)
    print(f"✅ Deleted text {args.text_id}")
    return EXIT_SUCCESS


# -------------------------
# Localized texts
# -------------------------

def lang_list_command(args: argparse.Namespace) -> int:
    """Execute the lang list command."""
    store = _open(args)
    entries = store.list_entries(args.text_id, language=args.lang, offset=args.position, limit=args.size)
    if args.format != "json":
        print(f"\nLocalized texts of {args.text_id}: {len(entries)}")
    _print_items(entries, args.format, lambda e: f"   • {e.language_code}  {e.text}  ({e.id})")
    return EXIT_SUCCESS


def lang_add_command(args: argparse.Namespace) -> int:
    """Execute the lang add command."""
    store = _open(args)
    entry = store.create_entry(
        args.text_id,
        LocalizedEntry(language_code=LanguageCode.parse(args.language), text=args.word),
    )
    if args.format == "json":
        _print_item(entry, args.format)
    else:
        print(f"✅ Added {entry.language_code} localized text {entry.id}")
    return EXIT_SUCCESS


def lang_show_command(args: argparse.Namespace) -> int:
    """Execute the lang show command."""
    store = _open(args)
    _print_item(store.read_entry(args.text_id, args.entry_id), args.format)
    return EXIT_SUCCESS


def lang_update_command(args: argparse.Namespace) -> int:
    """Execute the lang update command."""
    store = _open(args)
    entry = store.update_entry(args.text_id, args.entry_id, LocalizedEntry(text=args.word))
    if args.format == "json":
        _print_item(entry, args.format)
    else:
        print(f"✅ Updated localized text {entry.id}")
    return EXIT_SUCCESS


def lang_remove_command(args: argparse.Namespace) -> int:
    """Execute the lang remove command."""
    store = _open(args)
    store.delete_entry(args.text_id, args.entry_id)
    print(f"✅ Removed localized text {args.entry_id}")
    return EXIT_SUCCESS


def check_command(args: argparse.Namespace) -> int:
    """Execute the check command (index integrity audit)."""
    store = _open(args)
    report = store.check_integrity()
    if args.format == "json":
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(report.format_text(verbose=args.details))
    return EXIT_SUCCESS if report.is_healthy else EXIT_INTEGRITY_FAULT


# -------------------------
# Parser
# -------------------------

def _add_format(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format", "-f",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)"
    )


def _add_paging(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--lang",
        type=str,
        help=f"Only include this language ({', '.join(supported_codes()[:6])}, ...)"
    )
    parser.add_argument(
        "--position",
        type=int,
        default=0,
        help="Index of the first item (default: 0)"
    )
    parser.add_argument(
        "--size",
        type=int,
        default=None,
        help="Number of items (default: page_size from config)"
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="textstore",
        description="Store texts and their one-word translations.",
        epilog="Example: textstore lang add <text-id> EN Hello"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"textstore {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output (INFO level logging)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output (DEBUG level logging)"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        dest="config_file",
        help="Path to config file (default: text_store.toml)"
    )
    parser.add_argument(
        "--snapshot",
        type=str,
        help="Path to the JSON snapshot (overrides config and environment)"
    )
    parser.add_argument(
        "--actor",
        type=str,
        help="Identity recorded in createdBy/modifiedBy"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands"
    )

    serve_parser = subparsers.add_parser("serve", help="Run the REST server")
    serve_parser.add_argument("--host", type=str, help="Host to bind to (default: 127.0.0.1)")
    serve_parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 8080)")
    serve_parser.add_argument(
        "--debug-server",
        action="store_true",
        help="Run Flask in debug mode"
    )
    serve_parser.add_argument(
        "--i-know-what-im-doing",
        dest="allow_unsafe_bind",
        action="store_true",
        help="Allow binding to a non-localhost address"
    )
    serve_parser.set_defaults(func=serve_command)

    list_parser = subparsers.add_parser("list", help="List texts")
    _add_paging(list_parser)
    _add_format(list_parser)
    list_parser.set_defaults(func=list_command)

    create_parser_ = subparsers.add_parser("create", help="Create a text")
    create_parser_.add_argument("--title", "-t", type=str, required=True, help="Title of the text")
    create_parser_.add_argument("--description", "-d", type=str, help="Optional description")
    _add_format(create_parser_)
    create_parser_.set_defaults(func=create_command)

    show_parser = subparsers.add_parser("show", help="Show a text")
    show_parser.add_argument("text_id", type=str, help="Id of the text")
    _add_format(show_parser)
    show_parser.set_defaults(func=show_command)

    update_parser = subparsers.add_parser("update", help="Update title and description of a text")
    update_parser.add_argument("text_id", type=str, help="Id of the text")
    update_parser.add_argument("--title", "-t", type=str, help="New title")
    update_parser.add_argument("--description", "-d", type=str, help="New description")
    _add_format(update_parser)
    update_parser.set_defaults(func=update_command)

    delete_parser = subparsers.add_parser("delete", help="Delete a text and its localized texts")
    delete_parser.add_argument("text_id", type=str, help="Id of the text")
    delete_parser.set_defaults(func=delete_command)

    lang_parser = subparsers.add_parser("lang", help="Manage localized texts")
    lang_subparsers = lang_parser.add_subparsers(dest="lang_command", title="lang commands")

    lang_list_parser = lang_subparsers.add_parser("list", help="List localized texts of a text")
    lang_list_parser.add_argument("text_id", type=str, help="Id of the text")
    _add_paging(lang_list_parser)
    _add_format(lang_list_parser)
    lang_list_parser.set_defaults(func=lang_list_command)

    lang_add_parser = lang_subparsers.add_parser("add", help="Add a localized text")
    lang_add_parser.add_argument("text_id", type=str, help="Id of the text")
    lang_add_parser.add_argument("language", type=str, help="Language code, e.g. EN")
    lang_add_parser.add_argument("word", type=str, help="The translation (one word)")
    _add_format(lang_add_parser)
    lang_add_parser.set_defaults(func=lang_add_command)

    lang_show_parser = lang_subparsers.add_parser("show", help="Show a localized text")
    lang_show_parser.add_argument("text_id", type=str, help="Id of the text")
    lang_show_parser.add_argument("entry_id", type=str, help="Id of the localized text")
    _add_format(lang_show_parser)
    lang_show_parser.set_defaults(func=lang_show_command)

    lang_update_parser = lang_subparsers.add_parser("update", help="Change the word of a localized text")
    lang_update_parser.add_argument("text_id", type=str, help="Id of the text")
    lang_update_parser.add_argument("entry_id", type=str, help="Id of the localized text")
    lang_update_parser.add_argument("word", type=str, help="The new translation (one word)")
    _add_format(lang_update_parser)
    lang_update_parser.set_defaults(func=lang_update_command)

    lang_remove_parser = lang_subparsers.add_parser("remove", help="Remove a localized text")
    lang_remove_parser.add_argument("text_id", type=str, help="Id of the text")
    lang_remove_parser.add_argument("entry_id", type=str, help="Id of the localized text")
    lang_remove_parser.set_defaults(func=lang_remove_command)

    check_parser = subparsers.add_parser("check", help="Audit index consistency")
    check_parser.add_argument(
        "--details",
        action="store_true",
        help="Show details for each issue"
    )
    _add_format(check_parser)
    check_parser.set_defaults(func=check_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv).

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(Path(args.config_file) if args.config_file else None)
    except TextStoreError as e:
        setup_logging(verbose=args.verbose, debug=args.debug, quiet=args.quiet)
        logger.error(f"Config error: {e.message}")
        print(f"❌ Config error: {e.message}")
        return e.exit_code

    if args.snapshot:
        config.store.snapshot_path = args.snapshot

    log_file = Path(config.logging.log_file) if config.logging.log_file else None
    setup_logging(
        verbose=args.verbose,
        debug=args.debug,
        quiet=args.quiet,
        log_file=log_file,
        config_level=config.logging.level,
        format_str=SERVER_FORMAT if args.command == "serve" else None,
    )
    args._config = config

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_SUCCESS

    try:
        return args.func(args)
    except TextStoreError as e:
        print(f"❌ Error: {e.message}")
        for key, value in e.context.items():
            print(f"   {key}: {value}")
        return e.exit_code


def main_cli() -> None:
    """CLI entry point for console_scripts."""
    sys.exit(main())


if __name__ == "__main__":
    main_cli()
