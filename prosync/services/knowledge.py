"""KnowledgeNest: wiki pages with version history, comments and search."""

from __future__ import annotations

import logging
import re
from typing import Any

from prosync.exceptions import RecordNotFoundError, ValidationError
from prosync.repository import Query, utc_now_iso
from prosync.security.sql import validate_search_input
from prosync.services.base import TableService, require_text, require_user

logger = logging.getLogger(__name__)

_EDITABLE = ("title", "slug", "content", "is_published", "tags", "parent_id")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """'Getting Started: 101' -> 'getting-started-101'."""
    return _NON_SLUG_RE.sub("-", title.lower()).strip("-")


class KnowledgeService(TableService):
    table = "knowledge_pages"
    resource_name = "Page"
    owner_field = "author_id"

    def _published(self) -> Query:
        return Query().eq("is_published", True).eq("is_archived", False)

    def _unique_slug(self, base: str, page_id: str | None = None) -> str:
        if not base:
            raise ValidationError("could not derive a slug from the title", field="slug")
        slug, n = base, 2
        while True:
            clash = self.store.first(self.table, Query().eq("slug", slug).eq("is_archived", False))
            if clash is None or clash["id"] == page_id:
                return slug
            slug, n = f"{base}-{n}", n + 1

    def list_pages(self) -> list[dict[str, Any]]:
        return self.store.select(self.table, self._published().order("updated_at", desc=True))

    def get_page(self, slug: str) -> dict[str, Any]:
        page = self.store.first(self.table, self._published().eq("slug", slug))
        if page is None:
            raise RecordNotFoundError(self.resource_name, slug)
        return page

    def get_page_by_id(self, page_id: str) -> dict[str, Any]:
        page = self._get_or_raise(page_id)
        if page.get("is_archived"):
            raise RecordNotFoundError(self.resource_name, page_id)
        return page

    def create_page(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        data = {k: v for k, v in values.items() if k in _EDITABLE}
        data["title"] = require_text(data.get("title"), "title", max_length=200)
        data["slug"] = self._unique_slug(slugify(data.get("slug") or data["title"]))
        data.setdefault("content", "")
        data.setdefault("is_published", True)
        data.update({"author_id": require_user(user_id), "is_archived": False, "version": 1})
        page = self.store.insert(self.table, data)
        logger.info("page_created", extra={"page_id": page["id"], "slug": page["slug"]})
        return page

    def update_page(self, user_id: str, page_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        current = self.get_page_by_id(page_id)
        data = {k: v for k, v in changes.items() if k in _EDITABLE}
        if "title" in data:
            data["title"] = require_text(data["title"], "title", max_length=200)
        if data.get("slug"):
            data["slug"] = self._unique_slug(slugify(data["slug"]), page_id)
        elif "title" in data and data["title"] != current["title"]:
            data["slug"] = self._unique_slug(slugify(data["title"]), page_id)

        if "content" in data and data["content"] != current.get("content"):
            self.store.insert(
                "page_versions",
                {
                    "page_id": page_id,
                    "version": current.get("version", 1),
                    "title": current["title"],
                    "content": current.get("content", ""),
                    "edited_by": user_id,
                },
            )
            data["version"] = current.get("version", 1) + 1
        data["last_edited_by"] = user_id
        return self._update_or_raise(page_id, data)

    def delete_page(self, page_id: str) -> dict[str, Any]:
        """Archive the page; it stays in the database."""
        self.get_page_by_id(page_id)
        page = self._update_or_raise(page_id, {"is_archived": True, "archived_at": utc_now_iso()})
        logger.info("page_archived", extra={"page_id": page_id})
        return page

    def list_versions(self, page_id: str) -> list[dict[str, Any]]:
        self._get_or_raise(page_id)
        return self.store.select("page_versions", Query().eq("page_id", page_id).order("version", desc=True))

    def search_pages(self, q: str) -> list[dict[str, Any]]:
        try:
            text = validate_search_input(q or "")
        except ValueError as exc:
            raise ValidationError(str(exc), field="q") from exc
        if not text:
            return []
        query = self._published().search(("title", "content"), text).order("updated_at", desc=True)
        return self.store.select(self.table, query)

    # -- comments -----------------------------------------------------------

    def list_comments(self, page_id: str) -> list[dict[str, Any]]:
        self.get_page_by_id(page_id)
        return self.store.select("page_comments", Query().eq("page_id", page_id).order("created_at"))

    def add_comment(self, user_id: str, page_id: str, content: str) -> dict[str, Any]:
        self.get_page_by_id(page_id)
        return self.store.insert(
            "page_comments",
            {
                "page_id": page_id,
                "user_id": require_user(user_id),
                "content": require_text(content, "content", max_length=5000),
                "is_resolved": False,
            },
        )

    def resolve_comment(self, user_id: str, comment_id: str) -> dict[str, Any]:
        self._get_or_raise(comment_id, "page_comments", "Comment")
        return self.store.update(
            "page_comments", comment_id, {"is_resolved": True, "resolved_by": require_user(user_id)}
        )
