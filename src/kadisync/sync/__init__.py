"""Remote side of kadi-sync: protocols, the Kadi4Mat client, extras and licenses."""

from kadisync.sync.base import Confirmer, Host, RecordClient
from kadisync.sync.extras import extras_to_json, json_to_extras, merge_extras
from kadisync.sync.kadi import KadiClient, Record, User, build_client
from kadisync.sync.licenses import (
    KADI_LICENSES,
    LicenseInfo,
    get_common_licenses,
    get_license_by_id,
    search_licenses,
)

__all__ = [
    "Confirmer",
    "Host",
    "RecordClient",
    "KadiClient",
    "Record",
    "User",
    "build_client",
    "json_to_extras",
    "extras_to_json",
    "merge_extras",
    "KADI_LICENSES",
    "LicenseInfo",
    "get_common_licenses",
    "get_license_by_id",
    "search_licenses",
]
