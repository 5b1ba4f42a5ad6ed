"""Relay error taxonomy.

Only the dispatcher turns these into user-visible responses; lower layers
raise them (or, for schema drift and empty results, log and return nothing).
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay failures."""


class AuthError(RelayError):
    """Login rejected by the upstream (bad credentials, no session cookie)."""


class TransientNetworkError(RelayError):
    """Timeout or connection failure talking to the upstream."""


class ReauthRequired(RelayError):
    """A data call came back with an authorization-failure shape."""


class UpstreamError(RelayError):
    """Upstream answered, but not with something we can use."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ShapeError(RelayError):
    """Upstream payload does not match the entity's expected nesting."""


class FatalProxyError(RelayError):
    """Malformed relay request (unknown action, unknown entity, ...)."""
