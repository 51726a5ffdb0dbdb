"""Unit tests for the knowledge CLI (src.cli.knowledge)."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.cli.knowledge import _build_parser, _run, main
from src.config.settings import Settings
from src.services.knowledge_base import KnowledgeBase
from tests.conftest import MockWeb, html_page


def _components(knowledge_base: KnowledgeBase) -> dict:
    """Components dict shaped like build_knowledge_base's result."""
    orchestrator = MagicMock()
    orchestrator.shutdown = AsyncMock()
    http_client = MagicMock()
    http_client.aclose = AsyncMock()
    return {
        "knowledge_base": knowledge_base,
        "orchestrator": orchestrator,
        "http_client": http_client,
    }


async def _invoke(argv: list[str], knowledge_base: KnowledgeBase, settings: Settings) -> int:
    args = _build_parser().parse_args(argv)
    with patch(
        "src.main.build_knowledge_base",
        AsyncMock(return_value=_components(knowledge_base)),
    ):
        return await _run(args, settings)


# ======================================================================
# Argument parsing
# ======================================================================


class TestParser:
    def test_crawl_options(self) -> None:
        args = _build_parser().parse_args(
            [
                "--tenant",
                "acme",
                "crawl",
                "https://docs.test",
                "--max-depth",
                "1",
                "--max-pages",
                "20",
                "--keyword",
                "security",
                "--keyword",
                "sso",
                "--use-sitemap",
            ]
        )

        assert args == Namespace(
            tenant="acme",
            command="crawl",
            url="https://docs.test",
            max_depth=1,
            max_pages=20,
            keyword=["security", "sso"],
            use_sitemap=True,
        )

    def test_default_tenant_and_top_k(self) -> None:
        args = _build_parser().parse_args(["search", "refund policy"])

        assert args.tenant == "default"
        assert args.top_k == 5

    def test_register_requires_type_and_name(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["register", "--type", "github"])

    def test_no_command_prints_help_and_exits(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1
        assert "usage" in capsys.readouterr().out.lower()


# ======================================================================
# Command handlers
# ======================================================================


class TestCommands:
    @pytest.mark.asyncio
    async def test_crawl_reports_synced_source(
        self,
        knowledge_base: KnowledgeBase,
        settings: Settings,
        web: MockWeb,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        web.add("https://docs.test/", html_page("Docs", "Everything about SSO."))

        code = await _invoke(["crawl", "https://docs.test", "--max-depth", "0"], knowledge_base, settings)

        out = capsys.readouterr().out
        assert code == 0
        assert "Crawl complete" in out
        assert "Synced" in out
        assert "Items:       1" in out

    @pytest.mark.asyncio
    async def test_upload_and_search(
        self,
        knowledge_base: KnowledgeBase,
        settings: Settings,
        tmp_path: Path,
        sample_text: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        document = tmp_path / "faq.txt"
        document.write_text(sample_text)

        assert await _invoke(["upload", str(document)], knowledge_base, settings) == 0
        assert await _invoke(["search", "pricing per seat", "--top-k", "1"], knowledge_base, settings) == 0

        out = capsys.readouterr().out
        assert "Upload complete" in out
        assert "1. [" in out
        assert "faq.txt" in out

    @pytest.mark.asyncio
    async def test_upload_missing_file(
        self,
        knowledge_base: KnowledgeBase,
        settings: Settings,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = await _invoke(["upload", str(tmp_path / "nope.pdf")], knowledge_base, settings)

        assert code == 1
        assert "file not found" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_sources_lists_per_tenant(
        self,
        knowledge_base: KnowledgeBase,
        settings: Settings,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        await knowledge_base.register_source("acme", "website", "https://docs.test", sync=False)

        await _invoke(["--tenant", "acme", "sources"], knowledge_base, settings)
        await _invoke(["--tenant", "other", "sources"], knowledge_base, settings)

        out = capsys.readouterr().out
        assert "https://docs.test" in out
        assert "Pending" in out
        assert "No sources for tenant 'other'" in out

    @pytest.mark.asyncio
    async def test_unknown_source_prints_error(
        self,
        knowledge_base: KnowledgeBase,
        settings: Settings,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = await _invoke(["sync", "missing-id"], knowledge_base, settings)

        assert code == 1
        assert "No data source missing-id" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_delete_with_confirmation_flag(
        self,
        knowledge_base: KnowledgeBase,
        settings: Settings,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        source = await knowledge_base.register_source("default", "website", "https://docs.test", sync=False)

        code = await _invoke(["delete", source.id, "--yes"], knowledge_base, settings)

        assert code == 0
        assert "Deleted." in capsys.readouterr().out
        assert await knowledge_base.list_sources("default") == []

    @pytest.mark.asyncio
    async def test_delete_aborted_at_prompt(
        self,
        knowledge_base: KnowledgeBase,
        settings: Settings,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        source = await knowledge_base.register_source("default", "website", "https://docs.test", sync=False)

        with patch("builtins.input", return_value="n"):
            code = await _invoke(["delete", source.id], knowledge_base, settings)

        assert code == 0
        assert "Aborted" in capsys.readouterr().out
        assert len(await knowledge_base.list_sources("default")) == 1

    @pytest.mark.asyncio
    async def test_components_shut_down(self, knowledge_base: KnowledgeBase, settings: Settings) -> None:
        components = _components(knowledge_base)
        args = _build_parser().parse_args(["sources"])

        with patch("src.main.build_knowledge_base", AsyncMock(return_value=components)):
            await _run(args, settings)

        components["orchestrator"].shutdown.assert_awaited_once()
        components["http_client"].aclose.assert_awaited_once()
