"""Helpers for keeping credentials out of logs and terminal output."""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

VISIBLE_CHARS = 4


def mask_secret(secret: str | None) -> str:
    """Return a masked form of a secret showing only its first/last 4 chars.

    Secrets too short to reveal both ends without exposing most of the value
    are fully masked.

    Example:
        >>> mask_secret("ghp_abcdefghijklmnop1234")
        'ghp_***1234'
        >>> mask_secret("")
        ''
    """
    if not secret:
        return ""
    if len(secret) <= VISIBLE_CHARS * 2:
        return "***"
    return f"{secret[:VISIBLE_CHARS]}***{secret[-VISIBLE_CHARS:]}"


def inject_token(url: str, token: str | None, username: str = "oauth2") -> str:
    """Embed a token into an HTTPS clone URL.

    Non-HTTPS URLs (ssh, local paths) are returned unchanged.
    """
    if not token:
        return url
    parts = urlsplit(url)
    if parts.scheme != "https":
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    netloc = f"{username}:{token}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
