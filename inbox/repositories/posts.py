"""
Post persistence — lookups and ON CONFLICT upserts keyed by (platform, external_id).
"""
from sqlalchemy import select, update

from inbox.database import upsert_insert
from inbox.models.post import Post
from inbox.models.tenant import new_id


class PostRepository:

    def __init__(self, session):
        self.session = session

    def existing_ids(self, platform, external_ids):
        """Map external_id → internal id for posts already stored."""
        if not external_ids:
            return {}
        stmt = select(Post.external_id, Post.id).where(
            Post.platform == platform,
            Post.external_id.in_(list(external_ids)),
        )
        return {external_id: post_id for external_id, post_id in self.session.execute(stmt)}

    def refresh_counters(self, post_id, post, now):
        self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(likes=post.likes, shares=post.shares, comments_count=post.comments_count, synced_at=now)
            .execution_options(synchronize_session=False)
        )

    def upsert(self, tenant_id, post, now):
        """
        INSERT ... ON CONFLICT (platform, external_id) DO UPDATE counters.

        A concurrent ingestion of the same post never duplicates the row or
        raises; the later writer's counters win. url/caption are only ever
        written on insert.
        """
        stmt = upsert_insert(self.session, Post).values(
            id=new_id(),
            tenant_id=tenant_id,
            platform=post.platform,
            external_id=post.external_id,
            url=post.url or '',
            image_url=post.image_url,
            caption=post.caption,
            likes=post.likes,
            shares=post.shares,
            comments_count=post.comments_count,
            posted_at=post.posted_at,
            synced_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['platform', 'external_id'],
            set_={
                'likes': stmt.excluded.likes,
                'shares': stmt.excluded.shares,
                'comments_count': stmt.excluded.comments_count,
                'synced_at': stmt.excluded.synced_at,
            },
        ).returning(Post.id)
        return self.session.execute(stmt).scalar_one()
