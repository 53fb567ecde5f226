from __future__ import annotations

import re
from dataclasses import dataclass

MTN_FAMILY = "mtn"
CODECRAFT_FAMILY = "codecraft"

# app_settings keys holding the per-family auto-fulfillment switch
SETTING_KEYS = {
    MTN_FAMILY: "mtn_auto_fulfillment_enabled",
    CODECRAFT_FAMILY: "auto_fulfillment_enabled",
}


@dataclass(frozen=True)
class NetworkRoute:
    name: str
    family: str
    provider_code: str
    big_time: bool = False

    @property
    def setting_key(self) -> str:
        return SETTING_KEYS[self.family]


MTN = NetworkRoute("MTN", MTN_FAMILY, "MTN")
AT_ISHARE = NetworkRoute("AT-iShare", CODECRAFT_FAMILY, "AT")
AT_BIGTIME = NetworkRoute("AT-BigTime", CODECRAFT_FAMILY, "AT", big_time=True)
TELECEL = NetworkRoute("Telecel", CODECRAFT_FAMILY, "TELECEL")

_ALIASES = {
    "mtn": MTN,
    "mtndata": MTN,
    "atishare": AT_ISHARE,
    "ishare": AT_ISHARE,
    "at": AT_ISHARE,
    "airteltigo": AT_ISHARE,
    "atbigtime": AT_BIGTIME,
    "bigtime": AT_BIGTIME,
    "atbig": AT_BIGTIME,
    "telecel": TELECEL,
    "vodafone": TELECEL,
}

_SEPARATORS = re.compile(r"[\s\-_./]+")


def network_key(name: str | None) -> str:
    return _SEPARATORS.sub("", (name or "").strip().lower())


def resolve_network(name: str | None) -> NetworkRoute | None:
    """Map checkout network text ("AT - iShare", "at-ishare", "MTN") to a provider route."""
    return _ALIASES.get(network_key(name))


def supported_networks() -> list:
    return sorted({r.name for r in _ALIASES.values()})
