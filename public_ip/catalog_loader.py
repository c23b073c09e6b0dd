from __future__ import annotations

import ipaddress
import logging
from pathlib import Path
from typing import Any

import dns.rdataclass
import yaml

from public_ip.dns_resolver import DEFAULT_DNS_PORT, DnsResolver, QueryMethod
from public_ip.http_resolver import ExtractMethod, HttpResolver
from public_ip.resolver import CompositeResolver, Resolver

DNS_CLASSES = {
    "IN": dns.rdataclass.IN,
    "CH": dns.rdataclass.CH,
}


def list_yaml_files(source: Path) -> list[Path]:
    if source.is_file():
        return [source]
    matches = [path for path in source.rglob("*") if path.is_file() and path.suffix.lower() in {".yml", ".yaml"}]
    return sorted(matches)


def _parse_dns_entry(entry: dict[str, Any]) -> DnsResolver:
    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValueError("missing 'name'")
    servers = entry.get("servers")
    if not isinstance(servers, list) or not servers:
        raise ValueError("'servers' must be a non-empty list")
    port = entry.get("port", DEFAULT_DNS_PORT)
    if not isinstance(port, int) or not 0 < port < 65536:
        raise ValueError(f"invalid port: {port!r}")
    method_raw = str(entry.get("method", "A")).upper()
    if method_raw not in QueryMethod.__members__:
        raise ValueError(f"unknown query method: {method_raw}")
    class_raw = str(entry.get("class", "IN")).upper()
    if class_raw not in DNS_CLASSES:
        raise ValueError(f"unsupported query class: {class_raw}")
    return DnsResolver(
        name=name.strip(),
        servers=tuple(ipaddress.ip_address(str(server).strip()) for server in servers),
        port=port,
        method=QueryMethod[method_raw],
        query_class=DNS_CLASSES[class_raw],
    )


def _parse_http_entry(entry: dict[str, Any]) -> HttpResolver:
    url = entry.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ValueError("missing 'url'")
    method_raw = str(entry.get("method", ExtractMethod.PLAIN_TEXT.value)).strip().lower()
    try:
        method = ExtractMethod(method_raw)
    except ValueError:
        raise ValueError(f"unknown extract method: {method_raw}") from None
    return HttpResolver(url=url.strip(), method=method)


def _parse_entry(entry: Any) -> Resolver:
    if not isinstance(entry, dict):
        raise ValueError("entry must be a mapping")
    kind = str(entry.get("type", "")).strip().lower()
    if kind == "dns":
        return _parse_dns_entry(entry)
    if kind == "http":
        return _parse_http_entry(entry)
    raise ValueError(f"unknown resolver type: {kind or '<missing>'}")


def load_resolvers(source: Path, logger: logging.Logger | None = None) -> CompositeResolver:
    logger = logger or logging.getLogger(__name__)
    resolvers: list[Resolver] = []

    for file_path in list_yaml_files(source):
        try:
            with file_path.open("r", encoding="utf-8") as handle:
                docs = list(yaml.safe_load_all(handle))
        except yaml.YAMLError as exc:
            logger.warning("Failed parsing YAML in %s: %s", file_path, exc)
            continue
        except OSError as exc:
            logger.warning("Failed reading %s: %s", file_path, exc)
            continue

        for doc in docs:
            if not isinstance(doc, dict):
                continue
            entries = doc.get("resolvers")
            if not isinstance(entries, list):
                continue
            for index, entry in enumerate(entries):
                try:
                    resolvers.append(_parse_entry(entry))
                except ValueError as exc:
                    logger.warning("Skipping resolver %s:resolvers[%d]: %s", file_path, index, exc)

    return CompositeResolver(resolvers)
