"""Process-wide kadi-sync settings.

Settings are merged in this order, later sources winning:

1. the hard-coded defaults below,
2. environment variables (``KADI_HOST``, ``KADI_PAT``, ``KADI_TIMEOUT``,
   ``KADI_VERIFY_SSL``, ``KADI_DEBUG``),
3. the values stored by the host (``load_data``), written on every edit.

``conflict_resolution`` and ``custom_metadata_mapping`` are part of the
stored surface but nothing reads them yet.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from kadisync.errors import ValidationError

if TYPE_CHECKING:
    from kadisync.sync.base import Host

logger = logger.bind(module="settings")

STATES = ("active", "inactive")
VISIBILITIES = ("private", "public")
CONFLICT_RESOLUTIONS = ("local", "remote", "ask")

_CHOICES: dict[str, tuple[str, ...]] = {
    "default_state": STATES,
    "default_visibility": VISIBILITIES,
    "conflict_resolution": CONFLICT_RESOLUTIONS,
}

_ENV: dict[str, str] = {
    "KADI_HOST": "host",
    "KADI_PAT": "pat",
    "KADI_TIMEOUT": "timeout",
    "KADI_VERIFY_SSL": "verify_ssl",
    "KADI_DEBUG": "debug_mode",
}


def parse_list(value: str) -> list[str]:
    """Split a comma-separated settings field, trimming and dropping blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off", ""}:
        return False
    raise ValidationError(f"Not a boolean: {value!r}")


@dataclass
class Settings:
    """Connection, sync and advanced options."""

    # Connection
    host: str = "https://kadi.iam.kit.edu"
    pat: str = ""
    timeout: int = 60000  # milliseconds
    verify_ssl: bool = True

    # Sync options
    auto_sync_on_save: bool = False
    sync_attachments: bool = True
    default_visibility: str = "private"
    default_state: str = "active"
    conflict_resolution: str = "ask"

    # Advanced
    custom_metadata_mapping: dict[str, str] = field(default_factory=dict)
    tag_filter: list[str] = field(default_factory=list)
    exclude_folders: list[str] = field(default_factory=list)
    debug_mode: bool = False

    @property
    def configured(self) -> bool:
        return bool(self.host and self.pat)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in dataclasses.fields(cls)]

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, *, base: "Settings | None" = None) -> "Settings":
        """Merge *data* over *base* (or the defaults).

        Unknown keys are ignored; invalid values keep the base value and are
        logged.
        """
        settings = dataclasses.replace(base) if base is not None else cls()
        for key, value in (data or {}).items():
            if key not in cls.field_names():
                logger.debug(f"Ignoring unknown setting {key!r}")
                continue
            try:
                setattr(settings, key, settings._coerce(key, value))
            except ValidationError as exc:
                logger.warning(f"Invalid value for {key!r}, keeping {getattr(settings, key)!r}: {exc}")
        return settings

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, *, base: "Settings | None" = None) -> "Settings":
        environ = os.environ if environ is None else environ
        data = {name: environ[var] for var, name in _ENV.items() if environ.get(var)}
        return cls.from_dict(data, base=base)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _coerce(self, key: str, value: Any) -> Any:
        current = getattr(self, key)
        if key in _CHOICES:
            if value not in _CHOICES[key]:
                raise ValidationError(f"{key} must be one of {', '.join(_CHOICES[key])}")
            return value
        if isinstance(current, bool):
            return _parse_bool(value)
        if isinstance(current, int):
            try:
                number = int(value)
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"{key} must be an integer") from exc
            if number <= 0:
                raise ValidationError(f"{key} must be positive")
            return number
        if isinstance(current, list):
            if isinstance(value, str):
                return parse_list(value)
            if isinstance(value, (list, tuple)):
                return [str(v).strip() for v in value if str(v).strip()]
            raise ValidationError(f"{key} must be a list")
        if isinstance(current, dict):
            if not isinstance(value, dict):
                raise ValidationError(f"{key} must be a mapping")
            return {str(k): str(v) for k, v in value.items()}
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        return value.strip() if key == "host" else value

    def update(self, **changes: Any) -> None:
        """Apply settings-screen edits, validating every value first."""
        coerced = {}
        for key, value in changes.items():
            if key not in self.field_names():
                raise ValidationError(f"Unknown setting: {key}")
            coerced[key] = self._coerce(key, value)
        for key, value in coerced.items():
            setattr(self, key, value)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    def redacted(self) -> dict[str, Any]:
        data = self.to_dict()
        if data["pat"]:
            data["pat"] = data["pat"][:4] + "…"
        return data


def load_settings(host: "Host", environ: dict[str, str] | None = None) -> Settings:
    """Defaults, then environment, then the host's stored values."""
    settings = Settings.from_env(environ)
    # an empty stored string never hides an environment value
    stored = {k: v for k, v in (host.load_data() or {}).items() if v != ""}
    return Settings.from_dict(stored, base=settings)


def save_settings(host: "Host", settings: Settings) -> None:
    host.save_data(settings.to_dict())
