"""
Knowledge base.

Partners see articles whose access_level is 'all' or exactly their own
tier; partners without an organization tier read as bronze.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..accounts.tiers import Tier
from ..database.adapter import DatabaseAdapter, get_database
from ..errors import NotFound

logger = logging.getLogger(__name__)

ACCESS_ALL = "all"
RELATED_LIMIT = 5
ARTICLE_SORT_FIELDS = ("created_at", "updated_at", "title")


class ArticleCategory(str, Enum):
    ONBOARDING = "onboarding"
    SALES = "sales"
    TECHNICAL = "technical"
    MARKETING = "marketing"
    TRAINING = "training"
    CASE_STUDIES = "case_studies"


def parse_access_level(value: str) -> str:
    if value == ACCESS_ALL:
        return value
    return Tier(value).value


def _tier_value(tier: Optional[str]) -> str:
    return Tier(tier or Tier.BRONZE.value).value


def _decode(article: Dict[str, Any]) -> Dict[str, Any]:
    tags = article.get("tags")
    if isinstance(tags, str):
        article["tags"] = json.loads(tags) if tags else []
    elif tags is None:
        article["tags"] = []
    return article


@dataclass
class NewArticle:
    title: str
    content: str
    category: ArticleCategory
    access_level: str = ACCESS_ALL
    tags: List[str] = field(default_factory=list)


class KnowledgeService:

    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    async def list_for_tier(
        self,
        tier: Optional[str],
        search: Optional[str] = None,
        category: Optional[str] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        if sort_by not in ARTICLE_SORT_FIELDS:
            raise ValueError(f"Cannot sort articles by '{sort_by}'")

        db = await self.database()
        articles = [
            _decode(a) for a in await db.fetch(
                """
                SELECT * FROM knowledge_articles
                WHERE access_level IN ($1, $2)
                ORDER BY created_at DESC
                """,
                ACCESS_ALL, _tier_value(tier)
            )
        ]

        if category:
            category = ArticleCategory(category).value
            articles = [a for a in articles if a.get("category") == category]
        if search:
            term = search.lower()
            articles = [
                a for a in articles
                if term in (a.get("title") or "").lower()
                or term in (a.get("content") or "").lower()
                or any(term in str(tag).lower() for tag in a["tags"])
            ]

        return sorted(articles, key=lambda a: str(a.get(sort_by) or ""), reverse=descending)

    async def category_counts(self, tier: Optional[str]) -> Dict[str, int]:
        counts = {c.value: 0 for c in ArticleCategory}
        for article in await self.list_for_tier(tier):
            if article.get("category") in counts:
                counts[article["category"]] += 1
        counts["all"] = sum(counts.values())
        return counts

    async def get_for_tier(self, article_id: str, tier: Optional[str]) -> Dict[str, Any]:
        """An article the tier may read; NotFound otherwise."""
        db = await self.database()
        article = await db.fetchrow(
            """
            SELECT * FROM knowledge_articles
            WHERE id = $1 AND access_level IN ($2, $3)
            """,
            article_id, ACCESS_ALL, _tier_value(tier)
        )
        if not article:
            raise NotFound("Article", article_id)
        return _decode(article)

    async def related(self, article: Dict[str, Any], tier: Optional[str]) -> List[Dict[str, Any]]:
        """Up to five readable articles in the same category, newest first."""
        db = await self.database()
        rows = await db.fetch(
            """
            SELECT * FROM knowledge_articles
            WHERE category = $1 AND id <> $2 AND access_level IN ($3, $4)
            ORDER BY created_at DESC
            LIMIT 5
            """,
            article["category"], article["id"], ACCESS_ALL, _tier_value(tier)
        )
        return [_decode(r) for r in rows[:RELATED_LIMIT]]

    # Admin

    async def list_all(self) -> List[Dict[str, Any]]:
        db = await self.database()
        return [_decode(a) for a in await db.fetch(
            "SELECT * FROM knowledge_articles ORDER BY created_at DESC"
        )]

    async def create(self, article: NewArticle, author_id: Optional[str] = None) -> Dict[str, Any]:
        if not article.title.strip():
            raise ValueError("Title is required")
        if not article.content.strip():
            raise ValueError("Content is required")

        db = await self.database()
        article_id = str(uuid4())
        now = datetime.now(timezone.utc).isoformat()
        await db.execute(
            """
            INSERT INTO knowledge_articles
                (id, title, content, category, tags, access_level, author_id, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            """,
            article_id,
            article.title.strip(),
            article.content.strip(),
            ArticleCategory(article.category).value,
            json.dumps([t.strip() for t in article.tags if t.strip()]),
            parse_access_level(article.access_level),
            author_id,
            now,
            now
        )
        logger.info(f"Knowledge article created: {article_id}")
        row = await db.fetchrow("SELECT * FROM knowledge_articles WHERE id = $1", article_id)
        return _decode(row)

    async def delete(self, article_id: str) -> None:
        db = await self.database()
        rows = await db.fetch("DELETE FROM knowledge_articles WHERE id = $1 RETURNING id", article_id)
        if not rows:
            raise NotFound("Article", article_id)
        logger.info(f"Knowledge article deleted: {article_id}")
