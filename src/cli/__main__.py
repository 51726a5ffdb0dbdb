# =============================================================================
# src/cli/__main__.py — Package Entry Point
# =============================================================================
#
# This file enables running the CLI package itself as a module:
#     python -m src.cli
#
# It delegates to the knowledge base CLI (knowledge.py), the only CLI
# tool in this package.
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.knowledge import main

main()
