from __future__ import annotations

import ipaddress
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, ClassVar, Iterable, Iterator

import dns.exception
import dns.message
import dns.name
import dns.query
import dns.rdataclass
import dns.rdatatype

from public_ip.errors import AddrError, DnsError, OtherError, ResolveError
from public_ip.resolver import Attempt, CompositeResolver, Resolution, ServerAddress
from public_ip.version import IPAddress, Version

DEFAULT_DNS_PORT = 53
DEFAULT_TIMEOUT_SECONDS = 10.0

logger = logging.getLogger(__name__)

Transport = Callable[[dns.message.Message, ServerAddress, "float | None"], dns.message.Message]


class QueryMethod(Enum):
    A = dns.rdatatype.A
    AAAA = dns.rdatatype.AAAA
    TXT = dns.rdatatype.TXT

    @property
    def rdatatype(self) -> dns.rdatatype.RdataType:
        return self.value


@dataclass(frozen=True)
class DnsDetails:
    kind: ClassVar[str] = "dns"

    name: dns.name.Name
    server: ServerAddress
    method: QueryMethod


def udp_transport(
    query: dns.message.Message,
    server: ServerAddress,
    timeout_seconds: float | None,
) -> dns.message.Message:
    return dns.query.udp(query, str(server.ip), timeout=timeout_seconds, port=server.port)


def parse_dns_response(response: dns.message.Message, method: QueryMethod) -> IPAddress:
    if not response.answer:
        raise AddrError()
    rrset = response.answer[0]
    records = list(rrset)
    if not records:
        raise AddrError()
    if rrset.rdtype != method.rdatatype:
        raise DnsError(
            f"invalid response: expected {method.name} record, got {dns.rdatatype.to_text(rrset.rdtype)}"
        )
    record = records[0]
    if method is QueryMethod.TXT:
        if not record.strings:
            raise AddrError()
        try:
            return ipaddress.ip_address(record.strings[0].decode("utf-8"))
        except ValueError as exc:
            raise AddrError(exc) from exc
    return ipaddress.ip_address(record.address)


class DnsResolutions(Iterator[Attempt]):
    def __init__(
        self,
        name: dns.name.Name,
        servers: Iterable[IPAddress],
        port: int,
        query: dns.message.Message,
        method: QueryMethod,
        timeout_seconds: float | None,
        transport: Transport,
    ) -> None:
        self._name = name
        self._pending: deque[IPAddress] = deque(servers)
        self._port = port
        self._query = query
        self._method = method
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def remaining(self) -> tuple[IPAddress, ...]:
        return tuple(self._pending)

    def __iter__(self) -> DnsResolutions:
        return self

    def __next__(self) -> Attempt:
        if not self._pending:
            raise StopIteration
        server = ServerAddress(self._pending.popleft(), self._port)
        return self._attempt(server)

    def close(self) -> None:
        self._pending.clear()

    def _attempt(self, server: ServerAddress) -> Attempt:
        logger.debug("Querying %s for %s %s", server, self._name, self._method.name)
        try:
            response = self._transport(self._query, server, self._timeout_seconds)
        except (dns.exception.DNSException, OSError) as exc:
            logger.debug("DNS query to %s failed: %s", server, exc)
            return DnsError(exc)
        try:
            address = parse_dns_response(response, self._method)
        except ResolveError as exc:
            logger.debug("Unusable DNS response from %s: %s", server, exc)
            return exc
        return Resolution(address, DnsDetails(name=self._name, server=server, method=self._method))


@dataclass(frozen=True)
class DnsResolver:
    name: str
    servers: tuple[IPAddress, ...]
    port: int = DEFAULT_DNS_PORT
    method: QueryMethod = QueryMethod.A
    query_class: dns.rdataclass.RdataClass = dns.rdataclass.IN
    timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS
    transport: Transport = field(default=udp_transport, repr=False, compare=False)

    def __post_init__(self) -> None:
        servers = tuple(ipaddress.ip_address(server) for server in self.servers)
        object.__setattr__(self, "servers", servers)

    def resolve(self, version: Version) -> Iterator[Attempt]:
        try:
            name = dns.name.from_text(self.name)
        except dns.exception.DNSException as exc:
            return iter([OtherError(exc)])
        servers = [server for server in self.servers if version.matches(server)]
        query = dns.message.make_query(name, self.method.rdatatype, self.query_class, use_edns=0)
        return DnsResolutions(
            name=name,
            servers=servers,
            port=self.port,
            query=query,
            method=self.method,
            timeout_seconds=self.timeout_seconds,
            transport=self.transport,
        )


OPENDNS_V4 = DnsResolver(
    "myip.opendns.com",
    ("208.67.222.222", "208.67.220.220", "208.67.222.220", "208.67.220.222"),
    method=QueryMethod.A,
)
OPENDNS_V6 = DnsResolver(
    "myip.opendns.com",
    ("2620:0:ccc::2", "2620:0:ccd::2"),
    method=QueryMethod.AAAA,
)
OPENDNS = CompositeResolver([OPENDNS_V4, OPENDNS_V6])

GOOGLE_V4 = DnsResolver(
    "o-o.myaddr.l.google.com",
    ("216.239.32.10", "216.239.34.10", "216.239.36.10", "216.239.38.10"),
    method=QueryMethod.TXT,
)
GOOGLE_V6 = DnsResolver(
    "o-o.myaddr.l.google.com",
    ("2001:4860:4802:32::a", "2001:4860:4802:34::a", "2001:4860:4802:36::a", "2001:4860:4802:38::a"),
    method=QueryMethod.TXT,
)
GOOGLE = CompositeResolver([GOOGLE_V4, GOOGLE_V6])

CLOUDFLARE_V4 = DnsResolver(
    "whoami.cloudflare",
    ("1.1.1.1", "1.0.0.1"),
    method=QueryMethod.TXT,
    query_class=dns.rdataclass.CH,
)
CLOUDFLARE_V6 = DnsResolver(
    "whoami.cloudflare",
    ("2606:4700:4700::1111", "2606:4700:4700::1001"),
    method=QueryMethod.TXT,
    query_class=dns.rdataclass.CH,
)
CLOUDFLARE = CompositeResolver([CLOUDFLARE_V4, CLOUDFLARE_V6])

ALL = CompositeResolver([OPENDNS, GOOGLE, CLOUDFLARE])
