"""Command line entrypoint: `glosslink [gloss|init|add|rename|suggest|...]`."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from errors import GlosslinkError
from models import (
    AlternatePayload,
    AlternateSpelling,
    RenameRequest,
    Term,
    default_plural,
    default_possessive,
)
from project_manager import ProjectManager
from services import GlossaryService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="glosslink", description="Link glossary terms across a markdown corpus.")
    parser.add_argument("--project", "-p", default=None, help="Directory inside the project (default: cwd)")
    parser.add_argument("--verbose", "-v", action="count", default=0, help="More logging (-vv for debug)")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("gloss", help="Relink every document and refresh mention lists (default)")

    init = sub.add_parser("init", help="Create .glosslink/config.json and the glossary directory")
    init.add_argument("path", nargs="?", default=None)
    init.add_argument("--glossary-dir", default="glossary")

    add = sub.add_parser("add", help="Add a glossary term")
    add.add_argument("singular")
    add.add_argument("--plural")
    add.add_argument("--singular-possessive")
    add.add_argument("--plural-possessive")
    add.add_argument("--derive", action="store_true", help="Fill missing plural/possessives with default forms")
    add.add_argument("--case-sensitive", action="store_true")
    add.add_argument("--alternate", action="append", default=[], help="Alternate singular (repeatable)")
    add.add_argument("--definition", default="")
    add.add_argument("--usage", default="")

    rename = sub.add_parser("rename", help="Rename a term and propagate it through the corpus")
    rename.add_argument("singular")
    rename.add_argument("new_singular")
    rename.add_argument("--plural")
    rename.add_argument("--singular-possessive")
    rename.add_argument("--plural-possessive")
    rename.add_argument("--alternate", action="append", default=[], help="New alternate singular, by position")
    rename.add_argument("--relink", action="store_true", help="Run a full gloss pass afterwards")

    suggest = sub.add_parser("suggest", help="List frequent words that have no glossary entry")
    suggest.add_argument("--min-count", type=int, default=None)
    suggest.add_argument("--min-files", type=int, default=None)
    suggest.add_argument("--similarity", type=float, default=None)
    suggest.add_argument("--limit", type=int, default=50)

    ignore = sub.add_parser("ignore", help="Add words to the suggestion ignore list")
    ignore.add_argument("words", nargs="+")

    sub.add_parser("stats", help="Glossary usage statistics")
    sub.add_parser("toc", help="Rebuild the glossary table of contents")

    search = sub.add_parser("search", help="Fuzzy search the glossary")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=20)

    sub.add_parser("delink", help="Remove every local markdown link from the project")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def configure_logging(verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = getattr(logging, os.environ.get("GLOSSLINK_LOG_LEVEL", "WARNING").upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _term_from_args(args: argparse.Namespace) -> Term:
    singular = args.singular.strip()
    plural = args.plural or (default_plural(singular) if args.derive else None)
    return Term(
        singular=singular,
        case_sensitive=args.case_sensitive,
        plural=plural,
        singular_possessive=args.singular_possessive or (default_possessive(singular) if args.derive else None),
        plural_possessive=args.plural_possessive
        or (default_possessive(plural) if args.derive and plural else None),
        alternates=[AlternateSpelling(singular=alt.strip()) for alt in args.alternate if alt.strip()],
        definition=args.definition,
        usage=args.usage,
    )


def run(args: argparse.Namespace) -> int:
    manager = ProjectManager()
    command = args.command or "gloss"

    if command == "init":
        project = manager.init(Path(args.path or args.project or os.getcwd()), glossary_dir=args.glossary_dir)
        print(f"Initialised glosslink project at {project.root} (glossary: {project.glossary_dir})")
        return 0

    if command == "serve":
        import uvicorn

        from main import app

        if args.project:
            os.environ["GLOSSLINK_PROJECT_ROOT"] = str(Path(args.project).resolve())
        uvicorn.run(app, host=args.host, port=args.port)
        return 0

    service = GlossaryService(manager.load(Path(args.project) if args.project else None), project_manager=manager)

    if command == "gloss":
        result = service.relink()
        print(
            f"Scanned {result.files_scanned} files, changed {result.files_changed}, "
            f"inserted {result.links_inserted} links for {result.terms} terms"
        )
        for conflict in result.conflicts:
            print(f"  spelling conflict {conflict}")
    elif command == "add":
        term = service.add_term(_term_from_args(args))
        print(f"Added {term.singular} ({term.filename})")
    elif command == "rename":
        request = RenameRequest(
            singular=args.singular,
            new_singular=args.new_singular,
            new_plural=args.plural,
            new_singular_possessive=args.singular_possessive,
            new_plural_possessive=args.plural_possessive,
            new_alternates=[AlternatePayload(singular=alt) for alt in args.alternate],
            relink=args.relink,
        )
        result = service.rename(request)
        print(
            f"Renamed {result.old_singular} -> {result.new_singular} ({result.old_slug}.md -> {result.new_slug}.md): "
            f"{result.files_changed} files, {result.words_replaced} words, {result.links_retargeted} links"
        )
    elif command == "suggest":
        clusters = service.suggest(args.min_count, args.min_files, args.similarity)
        if not clusters:
            print("No candidates found")
        for cluster in clusters[: args.limit]:
            print(f"{cluster.total_frequency:5d}  {', '.join(cluster.members)}  ({len(cluster.files)} files)")
    elif command == "ignore":
        result = service.add_ignored(args.words)
        print(f"Added {result.added} words ({result.total} ignored)")
    elif command == "stats":
        stats = service.stats()
        print(f"Terms: {stats.total_terms}")
        print(f"Orphans: {len(stats.orphan_terms)}" + (f" ({', '.join(stats.orphan_terms)})" if stats.orphan_terms else ""))
        for item in stats.top_terms:
            print(f"  {item.count:4d}  {item.singular}")
        for item in stats.top_documents:
            print(f"  {item.count:4d}  {item.path}")
    elif command == "toc":
        print(f"Wrote table of contents with {service.rebuild_toc()} entries")
    elif command == "search":
        hits = service.search(args.query, args.limit)
        if not hits:
            print("No matches")
        for hit in hits:
            print(f"{hit.score:.2f}  {hit.singular}  {hit.path}")
    elif command == "delink":
        result = service.delink()
        print(f"Removed {result.links_removed} links from {result.files_changed} files")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        return run(args)
    except (GlosslinkError, OSError, ValueError) as exc:
        print(f"glosslink: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
