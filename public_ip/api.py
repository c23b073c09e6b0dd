from __future__ import annotations

import logging
from typing import Iterator

from public_ip import dns_resolver, http_resolver
from public_ip.errors import ResolveError, VersionError
from public_ip.resolver import Attempt, CompositeResolver, Resolution, Resolver
from public_ip.version import IPAddress, Version

ALL = CompositeResolver([dns_resolver.ALL, http_resolver.ALL])

BUILTIN: dict[str, Resolver] = {
    "all": ALL,
    "dns": dns_resolver.ALL,
    "opendns": dns_resolver.OPENDNS,
    "opendns-v4": dns_resolver.OPENDNS_V4,
    "opendns-v6": dns_resolver.OPENDNS_V6,
    "google": dns_resolver.GOOGLE,
    "google-v4": dns_resolver.GOOGLE_V4,
    "google-v6": dns_resolver.GOOGLE_V6,
    "cloudflare": dns_resolver.CLOUDFLARE,
    "cloudflare-v4": dns_resolver.CLOUDFLARE_V4,
    "cloudflare-v6": dns_resolver.CLOUDFLARE_V6,
    "http-all": http_resolver.ALL,
    "http": http_resolver.HTTP,
    "https": http_resolver.HTTPS,
    "http-ipify-org": http_resolver.HTTP_IPIFY_ORG,
    "https-ipify-org": http_resolver.HTTPS_IPIFY_ORG,
    "https-myip-com": http_resolver.HTTPS_MYIP_COM,
    "https-my-ip-io": http_resolver.HTTPS_MY_IP_IO,
    "https-seeip-org": http_resolver.HTTPS_SEEIP_ORG,
    "https-ifconfig-me": http_resolver.HTTPS_IFCONFIG_ME,
    "https-amazonaws": http_resolver.HTTPS_AMAZONAWS,
}


def lookup_resolver(name: str) -> Resolver:
    key = name.strip().lower()
    try:
        return BUILTIN[key]
    except KeyError:
        known = ", ".join(sorted(BUILTIN))
        raise ValueError(f"Unknown resolver {name!r}. Known resolvers: {known}") from None


def resolve(resolver: Resolver, version: Version) -> Iterator[Attempt]:
    attempts = resolver.resolve(version)
    try:
        for attempt in attempts:
            if isinstance(attempt, Resolution) and not version.matches(attempt.address):
                yield VersionError(f"got {attempt.address}, wanted {version.name}")
            else:
                yield attempt
    finally:
        close = getattr(attempts, "close", None)
        if close is not None:
            close()


def addr_with_details(
    resolver: Resolver,
    version: Version,
    logger: logging.Logger | None = None,
) -> Resolution | None:
    logger = logger or logging.getLogger(__name__)
    attempts = resolve(resolver, version)
    try:
        for attempt in attempts:
            if isinstance(attempt, ResolveError):
                logger.warning("Resolution attempt failed: %s", attempt)
                continue
            return attempt
    finally:
        attempts.close()
    return None


def addr_with(resolver: Resolver, version: Version, logger: logging.Logger | None = None) -> IPAddress | None:
    resolution = addr_with_details(resolver, version, logger=logger)
    return resolution.address if resolution else None


def addr() -> IPAddress | None:
    return addr_with(ALL, Version.ANY)


def addr_v4() -> IPAddress | None:
    return addr_with(ALL, Version.V4)


def addr_v6() -> IPAddress | None:
    return addr_with(ALL, Version.V6)
