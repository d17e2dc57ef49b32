"""Core Note handle."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath


@dataclass(frozen=True)
class Note:
    """A markdown note owned by the host vault.

    The engine never holds note content; it only carries the vault-relative
    path and asks the host for text and header views.
    """

    #: Vault-relative POSIX path, e.g. ``Projects/run-42.md``
    path: str

    @property
    def basename(self) -> str:
        """File name without extension, used as the fallback title."""
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lstrip(".")

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    def __str__(self) -> str:
        return self.path
