# =============================================================================
# src/cli/__init__.py — CLI Module Overview
# =============================================================================
#
# Command-line access to the knowledge base for operators and developers
# who need to crawl, upload, sync or search outside the web API.
#
# Architecture Notes:
#   - argparse for argument parsing (not Click/Typer).
#   - Heavy imports (providers, store, connectors) are deferred inside
#     functions to keep startup time fast for --help.
#   - Components are built with src.main.build_knowledge_base, so the CLI
#     and the API share wiring and (with the SQLite backend) data.
# =============================================================================

"""CLI tools for the knowledge base.

- ``python -m src.cli.knowledge`` — crawl, upload, sync, list and search.
"""
