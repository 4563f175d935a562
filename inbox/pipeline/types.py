"""
Boundary records for the ingestion pipeline.

Platform adapters hand the pipeline a verified payload shaped as
{"posts": [...], "interactions": [...]}. IngestionBatch.from_dict() is the
single place it gets validated; everything downstream works with these
frozen dataclasses instead of loose dicts.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from inbox.config import PLATFORMS, INTERACTION_TYPES, VERBS
from inbox.errors import InvalidBatchError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC. SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return as_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))
        except ValueError:
            pass
    raise ValueError(f"{field_name}: unparseable timestamp {value!r}")


@dataclass(frozen=True)
class Referral:
    """Structured referral data attached by the platform (ads, ref links)."""
    source: Optional[str] = None
    ad_id: Optional[str] = None
    ref_code: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.source or self.ad_id or self.ref_code)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['Referral']:
        if not data:
            return None
        referral = cls(
            source=data.get('source') or None,
            ad_id=data.get('ad_id') or data.get('adId') or None,
            ref_code=data.get('ref_code') or data.get('refCode') or data.get('ref') or None,
            raw=data.get('raw') or data.get('rawPayload') or {},
        )
        return None if referral.is_empty else referral


@dataclass(frozen=True)
class NormalizedPost:
    external_id: str
    platform: str
    url: str = ''
    image_url: Optional[str] = None
    caption: Optional[str] = None
    likes: int = 0
    shares: int = 0
    comments_count: int = 0
    posted_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_platform: Optional[str] = None) -> 'NormalizedPost':
        external_id = _first(data, 'external_id', 'externalId')
        if not external_id:
            raise ValueError("post: external_id is required")
        platform = _platform(_first(data, 'platform') or default_platform)
        return cls(
            external_id=str(external_id),
            platform=platform,
            url=_first(data, 'url') or '',
            image_url=_first(data, 'image_url', 'imageUrl'),
            caption=_first(data, 'caption'),
            likes=int(_first(data, 'likes') or 0),
            shares=int(_first(data, 'shares') or 0),
            comments_count=int(_first(data, 'comments_count', 'commentsCount') or 0),
            posted_at=parse_timestamp(_first(data, 'posted_at', 'postedAt'), 'posted_at'),
        )


@dataclass(frozen=True)
class NormalizedInteraction:
    platform: str
    type: str
    external_id: str
    received_at: datetime
    verb: str = 'add'
    sender_id: Optional[str] = None
    sender_username: str = ''
    sender_display_name: Optional[str] = None
    sender_phone: Optional[str] = None
    content_text: str = ''
    edited_at: Optional[datetime] = None
    post_external_id: Optional[str] = None
    referral: Optional[Referral] = None
    post_reference: Optional[str] = None
    media_urls: Tuple[str, ...] = ()
    reply_to_external_id: Optional[str] = None

    @property
    def ordering_key(self) -> datetime:
        """Timestamp that decides which version of a row wins on conflict."""
        return self.edited_at or self.received_at

    @property
    def is_removal(self) -> bool:
        return self.verb == 'remove'

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_platform: Optional[str] = None) -> 'NormalizedInteraction':
        external_id = _first(data, 'external_id', 'externalId')
        if not external_id:
            raise ValueError("interaction: external_id is required")

        platform = _platform(_first(data, 'platform') or default_platform)

        kind = (_first(data, 'type') or '').upper()
        if kind not in INTERACTION_TYPES:
            raise ValueError(f"interaction {external_id}: unknown type {kind!r}")

        verb = (_first(data, 'verb') or 'add').lower()
        if verb not in VERBS:
            raise ValueError(f"interaction {external_id}: unknown verb {verb!r}")

        received_at = parse_timestamp(_first(data, 'received_at', 'receivedAt'), 'received_at')
        if received_at is None:
            if verb != 'remove':
                raise ValueError(f"interaction {external_id}: received_at is required")
            received_at = utcnow()

        return cls(
            platform=platform,
            type=kind,
            external_id=str(external_id),
            received_at=received_at,
            verb=verb,
            sender_id=_optional_str(_first(data, 'sender_id', 'senderId')),
            sender_username=_first(data, 'sender_username', 'senderUsername') or '',
            sender_display_name=_first(data, 'sender_display_name', 'senderDisplayName'),
            sender_phone=_optional_str(_first(data, 'sender_phone', 'senderPhone')),
            content_text=_first(data, 'content_text', 'contentText') or '',
            edited_at=parse_timestamp(_first(data, 'edited_at', 'editedAt'), 'edited_at'),
            post_external_id=_optional_str(_first(data, 'post_external_id', 'postExternalId')),
            referral=Referral.from_dict(_first(data, 'referral', 'referralData')),
            post_reference=_first(data, 'post_reference', 'postReference', 'postReferenceText') or None,
            media_urls=tuple(_first(data, 'media_urls', 'mediaUrls') or ()),
            reply_to_external_id=_optional_str(_first(data, 'reply_to_external_id', 'replyToExternalId')),
        )


@dataclass(frozen=True)
class IngestionBatch:
    posts: Tuple[NormalizedPost, ...] = ()
    interactions: Tuple[NormalizedInteraction, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.posts and not self.interactions

    @classmethod
    def from_dict(cls, data: Dict[str, Any], platform: Optional[str] = None) -> 'IngestionBatch':
        """
        Validate a raw adapter payload once, at the boundary.

        Collects every problem before raising so a bad payload is reported
        in one go. Accepts both snake_case and the camelCase keys the
        platform adapters emit.
        """
        if not isinstance(data, dict):
            raise InvalidBatchError(['batch must be an object with posts/interactions'])

        errors: List[str] = []
        posts: List[NormalizedPost] = []
        interactions: List[NormalizedInteraction] = []

        for raw in data.get('posts') or []:
            try:
                posts.append(NormalizedPost.from_dict(raw, platform))
            except (ValueError, TypeError, AttributeError) as e:
                errors.append(str(e))

        for raw in data.get('interactions') or []:
            try:
                interactions.append(NormalizedInteraction.from_dict(raw, platform))
            except (ValueError, TypeError, AttributeError) as e:
                errors.append(str(e))

        if errors:
            raise InvalidBatchError(errors)
        return cls(posts=tuple(posts), interactions=tuple(interactions))


@dataclass
class IngestionResult:
    processed_count: int = 0                                  # genuinely new interactions
    inserted_ids: List[str] = field(default_factory=list)
    upserted_ids: List[str] = field(default_factory=list)     # new + edited, all queued for analysis
    deleted_count: int = 0
    post_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed_count': self.processed_count,
            'inserted_ids': list(self.inserted_ids),
            'upserted_ids': list(self.upserted_ids),
            'deleted_count': self.deleted_count,
            'post_count': self.post_count,
        }


# ── helpers ──────────────────────────────────────────────────────────────────

def _first(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None or value == '' else str(value)


def _platform(value: Any) -> str:
    platform = (value or '').upper()
    if platform not in PLATFORMS:
        raise ValueError(f"unknown platform {value!r}")
    return platform
