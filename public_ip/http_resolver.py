from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Iterator
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter

from public_ip.errors import AddrError, HttpError, ResolveError
from public_ip.resolver import Attempt, CompositeResolver, Resolution, ServerAddress
from public_ip.version import IPAddress, Version

DEFAULT_TIMEOUT_SECONDS = 10.0
SOURCE_ADDRESSES = {
    Version.V4: ("0.0.0.0", 0),
    Version.V6: ("::", 0),
}

logger = logging.getLogger(__name__)


class ExtractMethod(Enum):
    PLAIN_TEXT = "plain_text"
    STRIP_DOUBLE_QUOTES = "strip_double_quotes"
    EXTRACT_JSON_IP_FIELD = "extract_json_ip_field"


@dataclass(frozen=True)
class HttpDetails:
    kind: ClassVar[str] = "http"

    url: str
    server: ServerAddress | None
    method: ExtractMethod


def _peer_address(raw: Any) -> ServerAddress | None:
    connection = getattr(raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return None
    try:
        host, port = sock.getpeername()[:2]
        return ServerAddress(ipaddress.ip_address(host), port)
    except (OSError, ValueError):
        return None


class ResolverAdapter(HTTPAdapter):
    def __init__(self, source_address: tuple[str, int] | None = None, **kwargs: Any) -> None:
        # Read by init_poolmanager, which HTTPAdapter.__init__ calls.
        self._source_address = source_address
        super().__init__(**kwargs)

    def init_poolmanager(self, connections: int, maxsize: int, block: bool = False, **pool_kwargs: Any) -> None:
        if self._source_address is not None:
            pool_kwargs["source_address"] = self._source_address
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)

    def build_response(self, req: requests.PreparedRequest, resp: Any) -> requests.Response:
        response = super().build_response(req, resp)
        # The pooled connection still owns its socket until the body is read.
        response.peer_address = _peer_address(resp)
        return response


def build_session(version: Version) -> requests.Session:
    session = requests.Session()
    adapter = ResolverAdapter(SOURCE_ADDRESSES.get(version))
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def validate_url(url: str) -> str:
    prepared = requests.PreparedRequest()
    prepared.prepare_url(url, None)
    scheme = urlsplit(prepared.url).scheme
    if scheme not in {"http", "https"}:
        raise requests.exceptions.InvalidSchema(f"Unsupported URL scheme {scheme!r}: {url}")
    return prepared.url


def extract_address(body: Any, method: ExtractMethod) -> IPAddress:
    if method is ExtractMethod.PLAIN_TEXT:
        value = body.strip()
    elif method is ExtractMethod.STRIP_DOUBLE_QUOTES:
        value = body.strip().removeprefix('"').removesuffix('"')
    else:
        value = body.get("ip") if isinstance(body, dict) else None
        if not isinstance(value, str):
            raise HttpError("response JSON has no string \"ip\" field")
    try:
        return ipaddress.ip_address(value)
    except ValueError as exc:
        raise AddrError(exc) from exc


def _read_body(response: requests.Response, method: ExtractMethod) -> Any:
    if method is ExtractMethod.EXTRACT_JSON_IP_FIELD:
        return response.json()
    return response.text


@dataclass(frozen=True)
class HttpResolver:
    url: str
    method: ExtractMethod = ExtractMethod.PLAIN_TEXT
    timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS
    session_factory: Callable[[Version], requests.Session] = field(
        default=build_session, repr=False, compare=False
    )

    def resolve(self, version: Version) -> Iterator[Attempt]:
        try:
            url = validate_url(self.url)
        except requests.RequestException as exc:
            return iter([HttpError(exc)])
        return self._resolutions(version, url)

    def _resolutions(self, version: Version, url: str) -> Iterator[Attempt]:
        yield self._attempt(version, url)

    def _attempt(self, version: Version, url: str) -> Attempt:
        logger.debug("Requesting %s (version=%s, method=%s)", url, version.name, self.method.name)
        session = self.session_factory(version)
        try:
            response = session.get(url, timeout=self.timeout_seconds, stream=True)
            try:
                server = getattr(response, "peer_address", None)
                response.raise_for_status()
                body = _read_body(response, self.method)
            finally:
                response.close()
            address = extract_address(body, self.method)
        except requests.RequestException as exc:
            logger.debug("HTTP request to %s failed: %s", url, exc)
            return HttpError(exc)
        except ResolveError as exc:
            logger.debug("Unusable HTTP response from %s: %s", url, exc)
            return exc
        finally:
            session.close()
        return Resolution(address, HttpDetails(url=url, server=server, method=self.method))


HTTP_IPIFY_ORG = HttpResolver("http://api.ipify.org")
HTTPS_IPIFY_ORG = HttpResolver("https://api.ipify.org")
HTTPS_MYIP_COM = HttpResolver("https://api.myip.com", ExtractMethod.EXTRACT_JSON_IP_FIELD)
HTTPS_MY_IP_IO = HttpResolver("https://api.my-ip.io/ip")
HTTPS_SEEIP_ORG = HttpResolver("https://ip.seeip.org")
HTTPS_IFCONFIG_ME = HttpResolver("https://ifconfig.me/ip")
HTTPS_AMAZONAWS = HttpResolver("https://checkip.amazonaws.com")

HTTP = CompositeResolver([HTTP_IPIFY_ORG])
HTTPS = CompositeResolver(
    [
        HTTPS_IPIFY_ORG,
        HTTPS_MYIP_COM,
        HTTPS_MY_IP_IO,
        HTTPS_SEEIP_ORG,
        HTTPS_IFCONFIG_ME,
        HTTPS_AMAZONAWS,
    ]
)
ALL = CompositeResolver([HTTP, HTTPS])
