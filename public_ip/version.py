from __future__ import annotations

import ipaddress
from enum import Enum

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


class Version(Enum):
    V4 = "4"
    V6 = "6"
    ANY = "any"

    def matches(self, address: IPAddress) -> bool:
        if self is Version.ANY:
            return True
        if self is Version.V4:
            return address.version == 4
        return address.version == 6

    @classmethod
    def parse(cls, value: str) -> Version:
        normalized = value.strip().lower()
        if normalized in {"4", "v4", "ipv4"}:
            return cls.V4
        if normalized in {"6", "v6", "ipv6"}:
            return cls.V6
        if normalized in {"any", "both", ""}:
            return cls.ANY
        raise ValueError(f"Invalid IP version: {value}")
