# =============================================================================
# src/cli/knowledge.py — CLI for the Knowledge Base
# =============================================================================
#
# Standalone CLI for operating a tenant's knowledge base without the web
# server.  Uses the same component wiring as the API (src/main.py), so a
# SQLite-backed store is shared between the two.
#
# Supported subcommands:
#
#   crawl     — Register a website source and crawl it
#   upload    — Ingest a local document (PDF, DOCX, XLSX, HTML, Markdown, text, CSV)
#   register  — Register any connector source (optionally with a token)
#   sync      — Re-sync an existing source and wait for it
#   sources   — List a tenant's sources with status and item counts
#   logs      — Show the sync log of a source
#   search    — Semantic search over a tenant's chunks
#   delete    — Delete a source with its chunks and logs
#
# Every command runs its sync to completion before exiting.
#
# Usage examples:
#   python -m src.cli.knowledge crawl https://docs.example.com --max-pages 25
#   python -m src.cli.knowledge upload ./handbook.pdf --tenant acme
#   python -m src.cli.knowledge search "refund policy" --top-k 3
#   python -m src.cli.knowledge sources --tenant acme
# =============================================================================

"""Standalone CLI for the tenant knowledge base.

Usage::

    python -m src.cli.knowledge crawl https://docs.example.com --max-depth 1

    python -m src.cli.knowledge upload ./handbook.pdf

    python -m src.cli.knowledge search "how do refunds work"
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from src.config.settings import Settings

_DEFAULT_TENANT = "default"


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_source(source: Any) -> None:  # noqa: ANN401
    print(f"  ID:          {source.id}")
    print(f"  Type:        {source.type.value}")
    print(f"  Name:        {source.name}")
    print(f"  Status:      {source.status.value}")
    print(f"  Last synced: {source.last_synced}")
    print(f"  Items:       {source.item_count if source.item_count is not None else '-'}")


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_crawl(args: argparse.Namespace, kb) -> int:  # noqa: ANN001
    """Register a website source and wait for its crawl."""
    config: dict[str, Any] = {}
    if args.max_depth is not None:
        config["maxDepth"] = args.max_depth
    if args.max_pages is not None:
        config["maxPages"] = args.max_pages
    if args.keyword:
        config["filterKeywords"] = args.keyword
    if args.use_sitemap:
        config["useSitemap"] = True

    print(f"Crawling: {args.url}")
    source = await kb.register_source(args.tenant, "website", args.url, config=config, sync=True)
    source = await kb.wait_for_sync(args.tenant, source.id)
    print("\nCrawl complete:")
    _print_source(source)
    return 0 if source.status.value == "Synced" else 1


async def _handle_upload(args: argparse.Namespace, kb) -> int:  # noqa: ANN001
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    print(f"Uploading: {path.name}")
    source = await kb.upload_document(args.tenant, path.name, path.read_bytes(), wait=True)
    print("\nUpload complete:")
    _print_source(source)
    return 0 if source.status.value == "Synced" else 1


async def _handle_register(args: argparse.Namespace, kb) -> int:  # noqa: ANN001
    from src.models.knowledge import SourceCredentials

    auth = SourceCredentials(access_token=args.token) if args.token else None
    source = await kb.register_source(args.tenant, args.type, args.name, auth=auth)
    source = await kb.wait_for_sync(args.tenant, source.id)
    print("Registered source:")
    _print_source(source)
    return 0


async def _handle_sync(args: argparse.Namespace, kb) -> int:  # noqa: ANN001
    await kb.start_sync(args.tenant, args.source_id)
    source = await kb.wait_for_sync(args.tenant, args.source_id)
    print("Sync finished:")
    _print_source(source)
    return 0 if source.status.value == "Synced" else 1


async def _handle_sources(args: argparse.Namespace, kb) -> int:  # noqa: ANN001
    sources = await kb.list_sources(args.tenant)
    if not sources:
        print(f"No sources for tenant '{args.tenant}'.")
        return 0

    print(f"Sources for tenant '{args.tenant}'")
    print("=" * 72)
    for source in sources:
        items = source.item_count if source.item_count is not None else "-"
        print(
            f"  {source.id[:8]}  {source.type.value:<11} {source.status.value:<8} "
            f"{str(items):>6}  {source.name}"
        )
    return 0


async def _handle_logs(args: argparse.Namespace, kb) -> int:  # noqa: ANN001
    for log in await kb.list_sync_logs(args.tenant, args.source_id):
        print(f"  {log.timestamp.isoformat(timespec='seconds')}  {log.status.value:<10} {log.message}")
    return 0


async def _handle_search(args: argparse.Namespace, kb) -> int:  # noqa: ANN001
    results = await kb.search_scored(args.tenant, args.query, top_k=args.top_k)
    if not results:
        print("No results.")
        return 0

    for rank, item in enumerate(results, start=1):
        chunk = item.chunk
        snippet = " ".join(chunk.content.split())[:160]
        print(f"{rank}. [{item.score:.3f}] {chunk.title}")
        if chunk.metadata.url:
            print(f"   {chunk.metadata.url}")
        print(f"   {snippet}")
    return 0


async def _handle_delete(args: argparse.Namespace, kb) -> int:  # noqa: ANN001
    if not args.yes:
        answer = input(f"Delete source {args.source_id} and all its chunks? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("  Aborted.")
            return 0
    deleted = await kb.delete_source(args.tenant, args.source_id)
    print("Deleted." if deleted else "Source not found.")
    return 0 if deleted else 1


_HANDLERS = {
    "crawl": _handle_crawl,
    "upload": _handle_upload,
    "register": _handle_register,
    "sync": _handle_sync,
    "sources": _handle_sources,
    "logs": _handle_logs,
    "search": _handle_search,
    "delete": _handle_delete,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    """Build the components, dispatch one command, then shut down cleanly."""
    # Deferred: importing main wires every provider.
    from src.main import build_knowledge_base
    from src.utils.errors import KnowledgeIngestError

    components = await build_knowledge_base(app_settings)
    try:
        return await _HANDLERS[args.command](args, components["knowledge_base"])
    except KnowledgeIngestError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        await components["orchestrator"].shutdown()
        await components["http_client"].aclose()


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the knowledge CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.knowledge",
        description="Sync data sources into a tenant knowledge base and search it.",
    )
    parser.add_argument(
        "--tenant", default=_DEFAULT_TENANT, help=f"Tenant ID (default: {_DEFAULT_TENANT})"
    )
    subparsers = parser.add_subparsers(dest="command", help="Knowledge base commands")

    # -- crawl --
    crawl_parser = subparsers.add_parser("crawl", help="Register and crawl a website")
    crawl_parser.add_argument("url", help="Root URL of the site")
    crawl_parser.add_argument("--max-depth", type=int, dest="max_depth", help="Link depth limit")
    crawl_parser.add_argument("--max-pages", type=int, dest="max_pages", help="Page budget")
    crawl_parser.add_argument(
        "--keyword", action="append", help="Only keep pages mentioning a keyword (repeatable)"
    )
    crawl_parser.add_argument(
        "--use-sitemap", action="store_true", dest="use_sitemap", help="Seed from /sitemap.xml"
    )

    # -- upload --
    upload_parser = subparsers.add_parser("upload", help="Ingest a local document")
    upload_parser.add_argument("file", help="Path to the document")

    # -- register --
    register_parser = subparsers.add_parser("register", help="Register a connector source")
    register_parser.add_argument("--type", required=True, help="Source type, e.g. github, notion")
    register_parser.add_argument("--name", required=True, help="Display name or root URL")
    register_parser.add_argument("--token", help="Access token for credentialed platforms")

    # -- sync / logs / delete --
    sync_parser = subparsers.add_parser("sync", help="Re-sync a source and wait for it")
    sync_parser.add_argument("source_id", help="Source ID")

    logs_parser = subparsers.add_parser("logs", help="Show a source's sync log")
    logs_parser.add_argument("source_id", help="Source ID")

    delete_parser = subparsers.add_parser("delete", help="Delete a source and its chunks")
    delete_parser.add_argument("source_id", help="Source ID")
    delete_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    # -- sources --
    subparsers.add_parser("sources", help="List sources")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Semantic search")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--top-k", type=int, default=5, dest="top_k", help="Result count")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the knowledge tool."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    # Load all configuration from environment variables and .env file.
    app_settings = Settings()
    exit_code = asyncio.run(_run(args, app_settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
