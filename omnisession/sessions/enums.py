"""Enums for the session domain."""

from enum import Enum


class Channel(str, Enum):
    """Messaging surface a session originates from."""

    WEB = "web"
    TELEGRAM = "telegram"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    VOICE = "voice"
    API = "api"
    SMS = "sms"
    SLACK = "slack"


class DeactivationReason(str, Enum):
    """Why a session left the active state.

    - TTL: lazily expired on the next get_or_create
    - ENDED: explicit end_session
    - ROTATED: explicit clear
    - SUPERSEDED: another row of the same tuple was activated
    - DEDUPLICATED: index migration resolved a historical duplicate
    """

    TTL = "ttl"
    ENDED = "ended"
    ROTATED = "rotated"
    SUPERSEDED = "superseded"
    DEDUPLICATED = "deduplicated"
