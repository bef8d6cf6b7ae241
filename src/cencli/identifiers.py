"""Asset identifier classification for the view command."""

import ipaddress
import re
from collections.abc import Iterable
from enum import Enum

from core.errors import UsageError

_SHA256 = re.compile(r"^[0-9a-fA-F]{64}$")
_HOSTNAME_PORT = re.compile(r"^(?P<host>[^\s:/]+|\[[0-9a-fA-F:.]+\]):(?P<port>\d{1,5})$")


class AssetType(Enum):
    HOST = "host"
    CERTIFICATE = "certificate"
    WEBPROPERTY = "webproperty"


def classify_identifier(value: str) -> AssetType:
    """
    Infer the asset type of one identifier.

    - IPv4/IPv6 address -> host
    - 64 hex characters (SHA-256 fingerprint) -> certificate
    - hostname:port or [ipv6]:port -> web property

    Raises:
        UsageError: identifier matches none of the above
    """
    text = value.strip()
    try:
        ipaddress.ip_address(text)
        return AssetType.HOST
    except ValueError:
        pass
    if _SHA256.match(text):
        return AssetType.CERTIFICATE
    match = _HOSTNAME_PORT.match(text)
    if match and 0 < int(match.group("port")) <= 65535:
        return AssetType.WEBPROPERTY
    raise UsageError(
        f"unable to infer asset type for '{value}': expected an IP address, "
        "a certificate SHA-256 fingerprint, or hostname:port"
    )


def classify_identifiers(values: Iterable[str]) -> tuple[AssetType, list[str]]:
    """
    Classify a list of identifiers that must all share one asset type.

    Raises:
        UsageError: empty list, unknown identifier, or mixed asset types
    """
    ids = [v.strip() for v in values if v and v.strip()]
    if not ids:
        raise UsageError("at least one asset identifier is required")

    asset_type = classify_identifier(ids[0])
    for value in ids[1:]:
        other = classify_identifier(value)
        if other is not asset_type:
            raise UsageError(
                f"cannot mix asset types in one request: '{ids[0]}' is a "
                f"{asset_type.value}, '{value}' is a {other.value}"
            )
    return asset_type, ids


__all__ = ["AssetType", "classify_identifier", "classify_identifiers"]
