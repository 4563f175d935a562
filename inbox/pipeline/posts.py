"""
Post Registry — upserts the posts of one ingestion batch.

Returns a PostIndex (external_id → internal id) that lives exactly as long
as the batch transaction; the interaction upserter resolves direct post
links through it.
"""
import logging
from typing import Dict, Iterable, Optional, Set, Tuple

from inbox.pipeline.types import NormalizedPost, utcnow
from inbox.repositories.posts import PostRepository

logger = logging.getLogger('pipeline.posts')


class PostIndex:
    """Batch-scoped external_id → post id map. Never cached across batches."""

    def __init__(self, ids: Optional[Dict[str, str]] = None):
        self._ids = dict(ids or {})

    def add(self, external_id: str, post_id: str):
        self._ids[external_id] = post_id

    def resolve(self, external_id: Optional[str]) -> Optional[str]:
        if not external_id:
            return None
        return self._ids.get(external_id)

    def __len__(self):
        return len(self._ids)

    def __contains__(self, external_id):
        return external_id in self._ids

    def as_dict(self) -> Dict[str, str]:
        return dict(self._ids)


class PostRegistry:

    def __init__(self, session, repo: Optional[PostRepository] = None):
        self.repo = repo or PostRepository(session)

    def register(self, tenant_id: str, posts: Iterable[NormalizedPost],
                 referenced: Iterable[Tuple[str, str]] = ()) -> PostIndex:
        """
        Insert unseen posts, refresh engagement counters on known ones.

        url/caption are treated as immutable once observed and are never
        overwritten. `referenced` holds (platform, external_id) pairs that
        the batch's interactions point at; those already stored from an
        earlier batch are added to the index too, so an edit that does not
        resend its post still resolves the link. An empty batch yields an
        empty index.
        """
        index = PostIndex()
        posts = list(posts)

        now = utcnow()
        by_platform: Dict[str, list] = {}
        for post in posts:
            by_platform.setdefault(post.platform, []).append(post)

        inserted = refreshed = 0
        for platform, platform_posts in by_platform.items():
            existing = self.repo.existing_ids(platform, {p.external_id for p in platform_posts})
            for post in platform_posts:
                post_id = existing.get(post.external_id)
                if post_id:
                    self.repo.refresh_counters(post_id, post, now)
                    refreshed += 1
                else:
                    # Another ingestion may insert it between our lookup and now
                    post_id = self.repo.upsert(tenant_id, post, now)
                    existing[post.external_id] = post_id
                    inserted += 1
                index.add(post.external_id, post_id)

        if posts:
            logger.info("Tenant %s: %d posts in (%d new, %d refreshed)", tenant_id, len(posts), inserted, refreshed)

        self._resolve_referenced(index, referenced)
        return index

    def _resolve_referenced(self, index: PostIndex, referenced: Iterable[Tuple[str, str]]):
        missing: Dict[str, Set[str]] = {}
        for platform, external_id in referenced:
            if external_id and external_id not in index:
                missing.setdefault(platform, set()).add(external_id)
        for platform, external_ids in missing.items():
            for external_id, post_id in self.repo.existing_ids(platform, external_ids).items():
                index.add(external_id, post_id)
