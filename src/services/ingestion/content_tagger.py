"""Topical tag extraction for document chunks.

Uses an :class:`~src.interfaces.llm_provider.ILLMProvider` to label each
chunk with short lowercase topic tags ("security", "pricing", "sla", ...).
Tags give downstream answer generation a cheap way to group and filter
retrieved chunks without another vector query.

The extraction flow:
1. The chunk text is sent to the LLM with a structured tagging prompt
2. The LLM returns JSON: ``{"tags": [...]}``
3. The JSON is parsed (handling markdown fences and surrounding prose)
4. Tags are lowercased, trimmed and de-duplicated

When no LLM is configured the tagger falls back to matching a fixed
keyword vocabulary.  Tagging failures are logged and degrade to an empty
tag list; they never block ingestion.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from src.interfaces.llm_provider import ILLMProvider

logger = structlog.get_logger(logger_name=__name__)

_TAGGING_SYSTEM_PROMPT = (
    "You are an expert at analyzing and categorizing technical and business documentation."
)

_TAGGING_USER_PROMPT = """\
Generate a list of relevant tags for the content below.
Tags must be simple, lowercase keywords that capture the main topics.

Examples of good tags by content category:
- ITSM: "incident", "change", "problem", "cmdb", "itil", "service management"
- GRC: "policy", "compliance", "risk", "sox", "audit"
- Security: "encryption", "iso", "authentication", "firewall", "soc 2"
- General business: "pricing", "legal", "sla", "support", "company overview"

Return JSON: {{"tags": [...]}}. If no tags apply, return {{"tags": []}}.

Content:
{text}"""

_MAX_TAGS = 10

# Fallback vocabulary: tag -> trigger phrases (matched as whole words).
_KEYWORD_VOCABULARY: dict[str, tuple[str, ...]] = {
    "security": ("security", "secure", "vulnerability", "threat"),
    "encryption": ("encryption", "encrypted", "aes-256", "tls"),
    "authentication": ("authentication", "sso", "mfa", "single sign-on", "oauth"),
    "compliance": ("compliance", "compliant", "gdpr", "hipaa"),
    "soc 2": ("soc 2", "soc2"),
    "iso": ("iso 27001", "iso27001", "iso"),
    "audit": ("audit", "auditor"),
    "risk": ("risk",),
    "policy": ("policy", "policies"),
    "pricing": ("pricing", "price", "cost", "subscription"),
    "legal": ("legal", "contract", "liability", "terms"),
    "sla": ("sla", "service level", "uptime"),
    "support": ("support", "helpdesk", "ticket"),
    "incident": ("incident",),
    "change": ("change management", "change request"),
    "itil": ("itil",),
    "cmdb": ("cmdb",),
}

_KEYWORD_PATTERNS: dict[str, re.Pattern[str]] = {
    tag: re.compile(r"\b(?:" + "|".join(re.escape(p) for p in phrases) + r")\b", re.IGNORECASE)
    for tag, phrases in _KEYWORD_VOCABULARY.items()
}


class ContentTagger:
    """Extracts topical tags from chunk text.

    Parameters
    ----------
    llm:
        LLM used for tagging.  ``None`` selects keyword matching.
    max_concurrent:
        Maximum number of concurrent LLM calls (default 5).
    """

    def __init__(self, llm: ILLMProvider | None = None, max_concurrent: int = 5) -> None:
        self._llm = llm
        self._semaphore = asyncio.Semaphore(max_concurrent)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def tag(self, text: str) -> list[str]:
        """Return the topical tags for *text*; empty on any failure."""
        if not text or not text.strip():
            return []
        if self._llm is None:
            return self.keyword_tags(text)

        try:
            async with self._semaphore:
                response = await self._llm.complete(
                    system_prompt=_TAGGING_SYSTEM_PROMPT,
                    user_prompt=_TAGGING_USER_PROMPT.format(text=text[:3000]),
                    temperature=0.1,
                    max_tokens=200,
                )
            return self._parse_response(response)
        except Exception:  # noqa: BLE001
            logger.warning(
                "tagging_failed",
                text_preview=text[:80],
                msg="Returning empty tags; ingestion continues.",
            )
            return []

    @staticmethod
    def keyword_tags(text: str) -> list[str]:
        """Tag *text* by matching the fixed keyword vocabulary."""
        return sorted(tag for tag, pattern in _KEYWORD_PATTERNS.items() if pattern.search(text))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_response(response: str) -> list[str]:
        """Parse the LLM JSON response into a normalised tag list.

        Accepts clean JSON, markdown-fenced JSON, or JSON embedded in prose.
        Returns an empty list when nothing parseable is found.
        """
        cleaned = response.strip()

        fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
        if fence_match:
            cleaned = fence_match.group(1).strip()
        else:
            brace_start = cleaned.find("{")
            brace_end = cleaned.rfind("}")
            if brace_start != -1 and brace_end > brace_start:
                cleaned = cleaned[brace_start : brace_end + 1]

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError:
            logger.warning("tag_json_parse_failed", response_preview=response[:120])
            return []

        raw_tags = data.get("tags", []) if isinstance(data, dict) else data
        if not isinstance(raw_tags, list):
            return []

        tags: list[str] = []
        for item in raw_tags:
            if not isinstance(item, str):
                continue
            tag = item.strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
        return tags[:_MAX_TAGS]
