"""Feishu (Lark) cloud-document connector over the open platform HTTP API."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import httpx

from docindex.core.config import FeishuSettings
from docindex.core.exceptions import ConfigurationError, DocIndexError
from docindex.models.base import DocumentSource
from docindex.services.connectors import RemoteRecord

logger = logging.getLogger(__name__)

BLOCK_PAGE_SIZE = 500
# Refresh the tenant token this many seconds before it expires
TOKEN_REFRESH_MARGIN = 60


class FeishuError(DocIndexError):
    code = "feishu_error"


# ── Block model ──────────────────────────────────────────────

class BlockKind(StrEnum):
    TEXT = "text"
    HEADING = "heading"
    ORDERED = "ordered"
    BULLET = "bullet"
    CODE = "code"
    QUOTE = "quote"
    TODO = "todo"
    TABLE_CELL = "table_cell"
    OTHER = "other"


class ElementKind(StrEnum):
    TEXT_RUN = "text_run"
    MENTION_USER = "mention_user"
    MENTION_DOC = "mention_doc"
    OTHER = "other"


# block_type -> (kind, payload key holding the elements)
_BLOCK_TYPES: dict[int, tuple[BlockKind, str]] = {
    2: (BlockKind.TEXT, "text"),
    **{n: (BlockKind.HEADING, f"heading{n - 2}") for n in range(3, 12)},
    12: (BlockKind.ORDERED, "ordered"),
    13: (BlockKind.BULLET, "bullet"),
    14: (BlockKind.CODE, "code"),
    15: (BlockKind.QUOTE, "quote"),
    17: (BlockKind.TODO, "todo"),
    27: (BlockKind.TABLE_CELL, "table_cell"),
}


@dataclass
class TextElement:
    kind: ElementKind
    text: str = ""


@dataclass
class Block:
    kind: BlockKind
    elements: list[TextElement] = field(default_factory=list)


def parse_element(raw: dict[str, Any]) -> TextElement:
    if raw.get("text_run"):
        return TextElement(ElementKind.TEXT_RUN, raw["text_run"].get("content") or "")
    if raw.get("mention_user"):
        return TextElement(ElementKind.MENTION_USER, raw["mention_user"].get("user_id") or "")
    if raw.get("mention_doc"):
        return TextElement(ElementKind.MENTION_DOC, raw["mention_doc"].get("title") or "")
    return TextElement(ElementKind.OTHER)


def parse_block(raw: dict[str, Any]) -> Block:
    kind, key = _BLOCK_TYPES.get(raw.get("block_type", 0), (BlockKind.OTHER, ""))
    if kind in (BlockKind.OTHER, BlockKind.TABLE_CELL):
        # Table cell text lives in child blocks, which arrive as their own items
        return Block(kind)
    payload = raw.get(key) or {}
    elements = payload.get("elements") or []
    return Block(kind, [parse_element(e) for e in elements if isinstance(e, dict)])


def element_text(element: TextElement) -> str:
    if element.kind == ElementKind.TEXT_RUN:
        return element.text
    if element.kind == ElementKind.MENTION_USER:
        return "@user" if element.text else ""
    if element.kind == ElementKind.MENTION_DOC:
        return f"[{element.text}]" if element.text else ""
    return ""


def block_text(block: Block) -> str:
    return "".join(element_text(e) for e in block.elements)


def blocks_to_text(items: list[dict[str, Any]]) -> str:
    """Plain text of a document's block list, one block per line."""
    lines = []
    for raw in items:
        text = block_text(parse_block(raw))
        if text:
            lines.append(text)
    return "\n".join(lines)


# ── HTTP client ──────────────────────────────────────────────

class FeishuClient:
    """Thin async client; owns one httpx.AsyncClient and a cached tenant token."""

    def __init__(
        self,
        settings: FeishuSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.app_id or not settings.app_secret:
            raise ConfigurationError("Feishu is enabled but app_id / app_secret are missing")
        self.settings = settings
        self._http = httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/") + "/",
            timeout=30,
            transport=transport,
        )
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def __aenter__(self) -> FeishuClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _tenant_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        resp = await self._http.post(
            "auth/v3/tenant_access_token/internal",
            json={"app_id": self.settings.app_id, "app_secret": self.settings.app_secret},
        )
        resp.raise_for_status()
        data = resp.json()
        if data.get("code") != 0:
            raise FeishuError(f"Cannot obtain tenant token: {data.get('msg')}")
        self._token = data["tenant_access_token"]
        expires_in = int(data.get("expire", 7200))
        self._token_expires_at = time.monotonic() + max(0, expires_in - TOKEN_REFRESH_MARGIN)
        return self._token

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        token = await self._tenant_token()
        resp = await self._http.get(
            path,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        resp.raise_for_status()
        data = resp.json()
        if data.get("code") != 0:
            raise FeishuError(f"{path}: {data.get('msg')}")
        return data.get("data") or {}

    async def list_blocks(self, document_id: str) -> list[dict[str, Any]]:
        """Every block of a document, following pagination."""
        items: list[dict[str, Any]] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": BLOCK_PAGE_SIZE}
            if page_token:
                params["page_token"] = page_token
            data = await self._get(f"docx/v1/documents/{document_id}/blocks", params)
            items.extend(data.get("items") or [])
            page_token = data.get("page_token")
            if not data.get("has_more") or not page_token:
                return items

    async def get_document_meta(self, document_id: str) -> dict[str, Any]:
        data = await self._get(f"docx/v1/documents/{document_id}")
        document = data.get("document") or {}
        return {
            "title": document.get("title") or "",
            "revision_id": document.get("revision_id") or 0,
        }


class FeishuDocxConnector:
    """Yields one RemoteRecord per configured cloud document."""

    source = DocumentSource.FEISHU

    def __init__(self, client: FeishuClient, document_ids: list[str]) -> None:
        self.client = client
        self.document_ids = document_ids

    async def fetch(self) -> AsyncIterator[RemoteRecord]:
        for document_id in self.document_ids:
            try:
                meta = await self.client.get_document_meta(document_id)
                content = blocks_to_text(await self.client.list_blocks(document_id))
            except (FeishuError, httpx.HTTPError) as exc:
                logger.warning("Skipping Feishu document %s: %s", document_id, exc)
                continue
            yield RemoteRecord(
                source_id=document_id,
                title=meta["title"] or document_id,
                content=content,
                metadata={"document_id": document_id, "revision_id": meta["revision_id"]},
            )
