"""Exception hierarchy for kadi-sync."""

from __future__ import annotations

from typing import Any


class KadiSyncError(Exception):
    """Base class for every error raised by kadisync."""


class ConfigurationError(KadiSyncError):
    """The remote service has no host or access token configured."""


class EligibilityRejection(KadiSyncError):
    """A note is excluded from sync by extension, folder or tag filter."""


class ValidationError(KadiSyncError):
    """Confirmed sync parameters are missing or invalid."""


class FrontmatterError(KadiSyncError):
    """A note header exists but is not a YAML mapping."""


class RemoteError(KadiSyncError):
    """A request to the Kadi4Mat API failed.

    ``status_code`` and ``response`` are filled in when the server answered;
    both are ``None`` for transport failures (DNS, TLS, timeouts).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (HTTP {self.status_code})"
        return base
