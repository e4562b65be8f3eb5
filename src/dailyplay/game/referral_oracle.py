"""
Referral-code validity oracle.

Codes are published as ``game_ref_code`` posts in WordPress. A code is valid
when a post matches it by slug, or failing that by title search.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache

import httpx
import structlog

from dailyplay.config import get_settings

logger = structlog.get_logger()

REF_CODE_PATH = "/wp-json/wp/v2/game_ref_code"


@dataclass(frozen=True)
class ReferralCodePost:
    id: int
    slug: str
    title: str


class BaseReferralOracle(ABC):
    """Answers whether a referral code exists."""

    @abstractmethod
    async def lookup(self, code: str) -> ReferralCodePost | None:
        """Return the matching post, or None when the code is unknown."""
        ...


class WordPressReferralOracle(BaseReferralOracle):
    """Look codes up through the WordPress REST API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def lookup(self, code: str) -> ReferralCodePost | None:
        slug = code.strip().lower()
        if not slug:
            return None

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport,
            ) as client:
                response = await client.get(REF_CODE_PATH, params={"slug": slug})
                response.raise_for_status()
                posts = response.json()
                if not posts:
                    response = await client.get(REF_CODE_PATH, params={"search": code, "per_page": 1})
                    response.raise_for_status()
                    posts = response.json()
        except httpx.HTTPError:
            logger.exception("referral_oracle_failed", code=slug)
            return None

        if not posts:
            logger.info("referral_code_unknown", code=slug)
            return None

        post = posts[0]
        return ReferralCodePost(
            id=int(post["id"]),
            slug=str(post["slug"]),
            title=str((post.get("title") or {}).get("rendered", "")),
        )


@lru_cache
def get_referral_oracle() -> BaseReferralOracle:
    settings = get_settings()
    return WordPressReferralOracle(
        settings.referral_oracle_url,
        timeout=settings.referral_oracle_timeout_seconds,
    )
