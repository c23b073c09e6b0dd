from __future__ import annotations

import logging
import sys

from public_ip.api import addr_with_details, lookup_resolver
from public_ip.catalog_loader import load_resolvers
from public_ip.config import AppConfig, load_config
from public_ip.logging_setup import setup_logging
from public_ip.resolver import CompositeResolver, Resolution, Resolver, with_timeout


def build_resolver(config: AppConfig, logger: logging.Logger) -> Resolver:
    resolvers = [lookup_resolver(name) for name in config.resolvers]
    if config.resolvers_file is not None:
        extra = load_resolvers(config.resolvers_file, logger=logger)
        logger.info("Loaded %d resolvers from %s", len(extra), config.resolvers_file)
        resolvers.append(extra)
    resolver = resolvers[0] if len(resolvers) == 1 else CompositeResolver(resolvers)
    return with_timeout(resolver, config.request_timeout_seconds)


def format_resolution(resolution: Resolution, show_details: bool) -> str:
    if not show_details:
        return str(resolution.address)
    details = resolution.details
    if details.kind == "dns":
        return f"{resolution.address} (dns {details.method.name} {details.name} via {details.server})"
    server = details.server or "unknown server"
    return f"{resolution.address} (http {details.url} via {server})"


def main(argv: list[str] | None = None) -> int:
    try:
        config = load_config(argv=argv)
        setup_logging(config.log_level)
    except Exception as exc:  # noqa: BLE001
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    logger = logging.getLogger("public-ip")
    logger.info(
        "Resolving public IP version=%s resolvers=%s resolvers_file=%s",
        config.version.name,
        ",".join(config.resolvers),
        config.resolvers_file,
    )

    resolver = build_resolver(config, logger)
    resolution = addr_with_details(resolver, config.version, logger=logger)
    if resolution is None:
        print(f"Unable to resolve public IP (version={config.version.name})", file=sys.stderr)
        return 1

    print(format_resolution(resolution, config.show_details))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
