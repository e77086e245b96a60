"""Bookmark store boundary: reading trees and flattening them for a scan."""

import asyncio
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from ..utils.logging import get_structured_logger
from .types import BookmarkRef, ScannerError

logger = get_structured_logger(__name__)


class BookmarkSource(Protocol):
    """Anything that can enumerate the full bookmark tree."""

    async def load(self) -> list[BookmarkRef]:
        ...


def _children(node: Mapping[str, Any]) -> list:
    children = node.get("children")
    return children if isinstance(children, list) else []


def flatten_bookmarks(nodes: Iterable[Mapping[str, Any]]) -> list[BookmarkRef]:
    """Every node carrying a URL, depth-first in tree order."""
    bookmarks: list[BookmarkRef] = []

    def traverse(items: Iterable[Mapping[str, Any]]) -> None:
        for node in items:
            if not isinstance(node, Mapping):
                continue
            url = node.get("url")
            if url:
                bookmarks.append(
                    BookmarkRef(
                        id=str(node.get("id", len(bookmarks))),
                        url=str(url),
                        title=str(node.get("title") or node.get("name") or ""),
                    )
                )
            traverse(_children(node))

    traverse(nodes)
    return bookmarks


def tree_from_document(document: Union[dict, list]) -> list:
    """Top-level nodes from a Chromium ``Bookmarks`` file or a plain node list."""
    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        roots = document.get("roots")
        if isinstance(roots, dict):
            return [root for root in roots.values() if isinstance(root, dict)]
        return [document]
    raise ScannerError("Bookmark document must be an object or a list")


class JsonBookmarkSource:
    """Reads bookmarks from a JSON file on disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._tree: Optional[list] = None

    async def load_tree(self) -> list:
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except OSError as e:
            raise ScannerError(f"Cannot read bookmarks file {self.path}: {e}") from e

        try:
            document = json.loads(text)
        except ValueError as e:
            raise ScannerError(f"Invalid bookmarks JSON in {self.path}: {e}") from e

        self._tree = tree_from_document(document)
        return self._tree

    async def load(self) -> list[BookmarkRef]:
        bookmarks = flatten_bookmarks(await self.load_tree())
        logger.info("Bookmarks loaded", path=str(self.path), count=len(bookmarks))
        return bookmarks
