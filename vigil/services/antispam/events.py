"""
Anti-Spam Event Adapters
========================

Build Events from discord.py objects and from replay records.

DESIGN:
    Detectors only ever see Event. The bot glue converts at the boundary:

        on_message      -> event_from_message(message)
        on_member_join  -> event_from_member(member)

    Replay files (JSON lines) use snake_case keys and ISO-8601 timestamps
    and go through event_from_dict. Every adapter raises InvalidInput for
    data that cannot form a valid Event.
"""

from datetime import datetime
from typing import Any, Mapping, Optional, Tuple

import discord

from vigil.core.errors import InvalidInput

from .models import Attachment, Event, EventKind


# =============================================================================
# discord.py Adapters
# =============================================================================

def event_from_message(message: discord.Message) -> Event:
    """
    Convert a guild message.

    Raises:
        InvalidInput: For DMs (no guild) or malformed data.
    """
    if message.guild is None:
        raise InvalidInput("message has no guild", message.id)

    author = message.author
    mentions = list(message.mentions)

    return Event(
        kind=EventKind.MESSAGE,
        author_id=author.id,
        guild_id=message.guild.id,
        timestamp=message.created_at,
        text=message.content or "",
        attachments=tuple(
            Attachment(filename=a.filename, size=a.size, content_type=a.content_type)
            for a in message.attachments
        ),
        mentioned_user_ids=tuple(user.id for user in mentions),
        mentioned_bot_ids=tuple(user.id for user in mentions if user.bot),
        channel_id=message.channel.id if message.channel else None,
        account_created_at=author.created_at,
        author_name=author.name,
        author_tag=str(author),
        has_default_avatar=author.avatar is None,
        message_id=message.id,
    )


def event_from_member(member: discord.Member, joined_at: Optional[datetime] = None) -> Event:
    """
    Convert a member join.

    Args:
        member: The joining member.
        joined_at: Override for the join time (defaults to member.joined_at).
    """
    timestamp = joined_at or member.joined_at
    if timestamp is None:
        raise InvalidInput("member has no join time", member.id)

    return Event(
        kind=EventKind.JOIN,
        author_id=member.id,
        guild_id=member.guild.id,
        timestamp=timestamp,
        account_created_at=member.created_at,
        author_name=member.name,
        author_tag=str(member),
        has_default_avatar=member.avatar is None,
    )


# =============================================================================
# Replay Records
# =============================================================================

def _parse_time(field: str, value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInput(f"{field} must be an ISO-8601 string", value)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidInput(f"{field} is not a valid ISO-8601 time", value) from None
    if parsed.tzinfo is None:
        raise InvalidInput(f"{field} must include a timezone", value)
    return parsed


def _parse_attachment(data: Any) -> Attachment:
    if not isinstance(data, Mapping):
        raise InvalidInput("attachment must be an object", data)
    try:
        return Attachment(
            filename=str(data["filename"]),
            size=int(data.get("size", 0)),
            content_type=data.get("content_type"),
        )
    except (KeyError, TypeError, ValueError):
        raise InvalidInput("attachment needs filename and integer size", data) from None


def _parse_ids(field: str, value: Any) -> Tuple[int, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise InvalidInput(f"{field} must be a list of IDs", value)
    return tuple(value)


def event_from_dict(data: Mapping[str, Any]) -> Event:
    """
    Build an Event from a replay record.

    Example:
        {"kind": "message", "author_id": 1, "guild_id": 2,
         "timestamp": "2026-01-01T00:00:00+00:00", "text": "hello"}
    """
    if not isinstance(data, Mapping):
        raise InvalidInput("event record must be an object", data)

    return Event(
        kind=data.get("kind", EventKind.MESSAGE.value),
        author_id=data.get("author_id"),
        guild_id=data.get("guild_id"),
        timestamp=_parse_time("timestamp", data.get("timestamp")),
        text=data.get("text"),
        attachments=tuple(_parse_attachment(a) for a in data.get("attachments") or ()),
        mentioned_user_ids=_parse_ids("mentioned_user_ids", data.get("mentioned_user_ids")),
        mentioned_bot_ids=_parse_ids("mentioned_bot_ids", data.get("mentioned_bot_ids")),
        channel_id=data.get("channel_id"),
        account_created_at=_parse_time("account_created_at", data.get("account_created_at")),
        author_name=data.get("author_name"),
        author_tag=data.get("author_tag"),
        has_default_avatar=bool(data.get("has_default_avatar", False)),
        message_id=data.get("message_id"),
    )


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "event_from_message",
    "event_from_member",
    "event_from_dict",
]
