from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator, NamedTuple, Protocol, Union

from public_ip.errors import ResolveError
from public_ip.version import IPAddress, Version

if TYPE_CHECKING:
    from public_ip.dns_resolver import DnsDetails
    from public_ip.http_resolver import HttpDetails

    Details = Union[DnsDetails, HttpDetails]

logger = logging.getLogger(__name__)


class ServerAddress(NamedTuple):
    ip: IPAddress
    port: int

    def __str__(self) -> str:
        if self.ip.version == 6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True)
class Resolution:
    address: IPAddress
    details: Details


Attempt = Union[Resolution, ResolveError]


class Resolver(Protocol):
    def resolve(self, version: Version) -> Iterator[Attempt]: ...


class CompositeResolver:
    def __init__(self, resolvers: Iterable[Resolver]) -> None:
        self._resolvers: tuple[Resolver, ...] = tuple(resolvers)

    @property
    def resolvers(self) -> tuple[Resolver, ...]:
        return self._resolvers

    def __len__(self) -> int:
        return len(self._resolvers)

    def __iter__(self) -> Iterator[Resolver]:
        return iter(self._resolvers)

    def __repr__(self) -> str:
        return f"CompositeResolver({list(self._resolvers)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CompositeResolver):
            return NotImplemented
        return self._resolvers == other._resolvers

    def __hash__(self) -> int:
        return hash(self._resolvers)

    def resolve(self, version: Version) -> Iterator[Attempt]:
        return self._chain(version)

    def _chain(self, version: Version) -> Iterator[Attempt]:
        for index, resolver in enumerate(self._resolvers):
            logger.debug("Composite member %d/%d: %r", index + 1, len(self._resolvers), resolver)
            yield from resolver.resolve(version)


def with_timeout(resolver: Resolver, timeout_seconds: float | None) -> Resolver:
    if isinstance(resolver, CompositeResolver):
        return CompositeResolver(with_timeout(member, timeout_seconds) for member in resolver)
    if dataclasses.is_dataclass(resolver) and hasattr(resolver, "timeout_seconds"):
        return dataclasses.replace(resolver, timeout_seconds=timeout_seconds)
    return resolver
