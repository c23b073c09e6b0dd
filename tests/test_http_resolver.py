import ipaddress
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests

from public_ip.errors import AddrError, HttpError
from public_ip.http_resolver import (
    ExtractMethod,
    HttpDetails,
    HttpResolver,
    ResolverAdapter,
    build_session,
    extract_address,
)
from public_ip.resolver import Resolution, ServerAddress
from public_ip.version import Version


class _Response:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"status={self.status_code}")

    def json(self):
        try:
            return json.loads(self.text)
        except json.JSONDecodeError as exc:
            raise requests.exceptions.JSONDecodeError(exc.msg, exc.doc, exc.pos) from exc

    def close(self) -> None:
        self.closed = True


class _Session:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.calls: list[tuple[str, float | None, bool]] = []
        self.closed = False

    def get(self, url: str, timeout: float | None, stream: bool) -> _Response:
        self.calls.append((url, timeout, stream))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def close(self) -> None:
        self.closed = True


class _SessionFactory:
    def __init__(self, outcome) -> None:
        self.session = _Session(outcome)
        self.versions: list[Version] = []

    def __call__(self, version: Version) -> _Session:
        self.versions.append(version)
        return self.session


def _resolve(outcome, method=ExtractMethod.PLAIN_TEXT, url="https://ip.example/ip", version=Version.ANY):
    factory = _SessionFactory(outcome)
    resolver = HttpResolver(url, method, timeout_seconds=5, session_factory=factory)
    return list(resolver.resolve(version)), factory


@pytest.mark.parametrize(
    ("body", "method"),
    [
        (" 203.0.113.7 \n", ExtractMethod.PLAIN_TEXT),
        ('"203.0.113.7"', ExtractMethod.STRIP_DOUBLE_QUOTES),
        ('{"ip":"203.0.113.7"}', ExtractMethod.EXTRACT_JSON_IP_FIELD),
    ],
)
def test_extract_methods(body: str, method: ExtractMethod) -> None:
    attempts, _factory = _resolve(_Response(body), method=method)

    assert len(attempts) == 1
    assert isinstance(attempts[0], Resolution)
    assert attempts[0].address == ipaddress.ip_address("203.0.113.7")


def test_strip_double_quotes_removes_one_layer() -> None:
    with pytest.raises(AddrError):
        extract_address('""203.0.113.7""', ExtractMethod.STRIP_DOUBLE_QUOTES)
    assert extract_address(' "2001:db8::7"\n', ExtractMethod.STRIP_DOUBLE_QUOTES) == ipaddress.ip_address(
        "2001:db8::7"
    )


def test_success_details_and_session_lifecycle() -> None:
    response = _Response("198.51.100.4\n")
    attempts, factory = _resolve(response, version=Version.V4)

    resolution = attempts[0]
    assert isinstance(resolution.details, HttpDetails)
    assert resolution.details.kind == "http"
    assert resolution.details.url == "https://ip.example/ip"
    assert resolution.details.server is None
    assert resolution.details.method is ExtractMethod.PLAIN_TEXT
    assert factory.versions == [Version.V4]
    assert factory.session.calls == [("https://ip.example/ip", 5, True)]
    assert factory.session.closed is True
    assert response.closed is True


def test_request_exception_is_http_error() -> None:
    attempts, factory = _resolve(requests.ConnectionError("network issue"))

    assert len(attempts) == 1
    assert isinstance(attempts[0], HttpError)
    assert isinstance(attempts[0].inner, requests.ConnectionError)
    assert factory.session.closed is True


def test_bad_status_is_http_error() -> None:
    attempts, _factory = _resolve(_Response("oops", status_code=503))

    assert isinstance(attempts[0], HttpError)


def test_unparsable_body_is_addr_error() -> None:
    attempts, _factory = _resolve(_Response("not-an-ip"))

    assert isinstance(attempts[0], AddrError)


def test_invalid_json_is_http_error() -> None:
    attempts, _factory = _resolve(_Response("<html>"), method=ExtractMethod.EXTRACT_JSON_IP_FIELD)

    assert isinstance(attempts[0], HttpError)


def test_json_without_string_ip_field_is_http_error() -> None:
    missing, _factory = _resolve(_Response('{"address": "1.2.3.4"}'), method=ExtractMethod.EXTRACT_JSON_IP_FIELD)
    numeric, _factory = _resolve(_Response('{"ip": 1234}'), method=ExtractMethod.EXTRACT_JSON_IP_FIELD)

    assert isinstance(missing[0], HttpError)
    assert isinstance(numeric[0], HttpError)


def test_json_ip_field_that_is_not_an_address_is_addr_error() -> None:
    attempts, _factory = _resolve(_Response('{"ip": "localhost"}'), method=ExtractMethod.EXTRACT_JSON_IP_FIELD)

    assert isinstance(attempts[0], AddrError)


@pytest.mark.parametrize("url", ["not a url", "ftp://ip.example/ip", "https://"])
def test_invalid_url_short_circuits_without_network(url: str) -> None:
    attempts, factory = _resolve(_Response("203.0.113.7"), url=url)

    assert len(attempts) == 1
    assert isinstance(attempts[0], HttpError)
    assert factory.versions == []


def test_resolve_is_lazy() -> None:
    factory = _SessionFactory(_Response("203.0.113.7"))
    attempts = HttpResolver("https://ip.example/ip", session_factory=factory).resolve(Version.ANY)

    assert factory.versions == []
    next(attempts)
    assert factory.versions == [Version.ANY]
    assert list(attempts) == []


def test_build_session_binds_local_family() -> None:
    v4 = build_session(Version.V4)
    v6 = build_session(Version.V6)
    default = build_session(Version.ANY)

    assert isinstance(v4.get_adapter("https://ip.example"), ResolverAdapter)
    assert v4.get_adapter("http://ip.example").poolmanager.connection_pool_kw["source_address"] == ("0.0.0.0", 0)
    assert v6.get_adapter("https://ip.example").poolmanager.connection_pool_kw["source_address"] == ("::", 0)
    assert "source_address" not in default.get_adapter("https://ip.example").poolmanager.connection_pool_kw


class _EchoHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def do_GET(self) -> None:
        body = b"203.0.113.7\n"
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args) -> None:
        pass


@pytest.fixture
def echo_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _EchoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


def test_reports_remote_server_of_live_connection(echo_server, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("http_proxy", "HTTP_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(name, raising=False)
    port = echo_server.server_address[1]

    attempts = list(HttpResolver(f"http://127.0.0.1:{port}/ip", timeout_seconds=5).resolve(Version.V4))

    resolution = attempts[0]
    assert isinstance(resolution, Resolution)
    assert resolution.address == ipaddress.ip_address("203.0.113.7")
    assert resolution.details.server == ServerAddress(ipaddress.ip_address("127.0.0.1"), port)
    assert str(resolution.details.server) == f"127.0.0.1:{port}"
