"""License catalog offered when confirming a sync."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LicenseInfo:
    id: str  # SPDX identifier as accepted by Kadi4Mat
    name: str

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


#: Licenses shown in the confirmation dropdown
COMMON_LICENSE_IDS = (
    "CC-BY-4.0",
    "CC-BY-SA-4.0",
    "CC-BY-NC-4.0",
    "CC-BY-ND-4.0",
    "CC0-1.0",
    "MIT",
    "Apache-2.0",
    "GPL-3.0-only",
)

DEFAULT_LICENSE = "CC-BY-4.0"

KADI_LICENSES: tuple[LicenseInfo, ...] = (
    LicenseInfo("CC-BY-4.0", "Creative Commons Attribution 4.0 International"),
    LicenseInfo("CC-BY-SA-4.0", "Creative Commons Attribution Share Alike 4.0 International"),
    LicenseInfo("CC-BY-NC-4.0", "Creative Commons Attribution Non Commercial 4.0 International"),
    LicenseInfo("CC-BY-ND-4.0", "Creative Commons Attribution No Derivatives 4.0 International"),
    LicenseInfo("CC-BY-NC-SA-4.0", "Creative Commons Attribution Non Commercial Share Alike 4.0 International"),
    LicenseInfo("CC-BY-NC-ND-4.0", "Creative Commons Attribution Non Commercial No Derivatives 4.0 International"),
    LicenseInfo("CC-BY-3.0", "Creative Commons Attribution 3.0 Unported"),
    LicenseInfo("CC0-1.0", "Creative Commons Zero v1.0 Universal"),
    LicenseInfo("PDDL-1.0", "Open Data Commons Public Domain Dedication & License 1.0"),
    LicenseInfo("ODC-By-1.0", "Open Data Commons Attribution License v1.0"),
    LicenseInfo("ODbL-1.0", "Open Data Commons Open Database License v1.0"),
    LicenseInfo("MIT", "MIT License"),
    LicenseInfo("Apache-2.0", "Apache License 2.0"),
    LicenseInfo("BSD-2-Clause", 'BSD 2-Clause "Simplified" License'),
    LicenseInfo("BSD-3-Clause", 'BSD 3-Clause "New" or "Revised" License'),
    LicenseInfo("GPL-2.0-only", "GNU General Public License v2.0 only"),
    LicenseInfo("GPL-3.0-only", "GNU General Public License v3.0 only"),
    LicenseInfo("LGPL-3.0-only", "GNU Lesser General Public License v3.0 only"),
    LicenseInfo("AGPL-3.0-only", "GNU Affero General Public License v3.0"),
    LicenseInfo("MPL-2.0", "Mozilla Public License 2.0"),
    LicenseInfo("EUPL-1.2", "European Union Public License 1.2"),
    LicenseInfo("Unlicense", "The Unlicense"),
)

_BY_ID = {lic.id.lower(): lic for lic in KADI_LICENSES}


def get_license_by_id(license_id: str) -> LicenseInfo | None:
    return _BY_ID.get(license_id.lower())


def get_common_licenses() -> list[LicenseInfo]:
    return [_BY_ID[lid.lower()] for lid in COMMON_LICENSE_IDS]


def is_common_license(license_id: str) -> bool:
    return license_id.lower() in {lid.lower() for lid in COMMON_LICENSE_IDS}


def search_licenses(query: str) -> list[LicenseInfo]:
    """Licenses whose name or SPDX id contains every word of *query*."""
    words = query.lower().split()
    if not words:
        return list(KADI_LICENSES)
    return [lic for lic in KADI_LICENSES if all(w in f"{lic.name} {lic.id}".lower() for w in words)]
