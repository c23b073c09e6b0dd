from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path

from public_ip.api import BUILTIN
from public_ip.version import Version

DEFAULT_RESOLVERS = ["all"]


def _parse_bool(value: str | bool | None, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value: {value}")


@dataclass(frozen=True)
class AppConfig:
    version: Version
    resolvers: list[str]
    resolvers_file: Path | None
    show_details: bool
    log_level: str
    request_timeout_seconds: float


def load_config(argv: list[str] | None = None) -> AppConfig:
    parser = argparse.ArgumentParser(description="Print this host's public IP address.")
    parser.add_argument(
        "--version",
        dest="ip_version",
        help="IP version to resolve: 4, 6 or any (default from env or any).",
    )
    parser.add_argument(
        "--resolver",
        action="append",
        dest="resolvers",
        help=f"Built-in resolver to use, repeatable. One of: {', '.join(sorted(BUILTIN))}.",
    )
    parser.add_argument("--resolvers-file", help="YAML file or directory with extra resolver definitions.")
    parser.add_argument("--details", action="store_true", help="Print which server produced the address.")

    args = parser.parse_args(argv)

    version = Version.parse(args.ip_version or os.getenv("PUBLIC_IP_VERSION", "any"))

    if args.resolvers:
        resolvers = [name.strip().lower() for name in args.resolvers if name.strip()]
    else:
        resolvers_raw = os.getenv("PUBLIC_IP_RESOLVERS", "")
        if resolvers_raw.strip():
            resolvers = [entry.strip().lower() for entry in resolvers_raw.split(",") if entry.strip()]
        else:
            resolvers = DEFAULT_RESOLVERS.copy()
    unknown = [name for name in resolvers if name not in BUILTIN]
    if unknown:
        raise ValueError(f"Unknown resolvers: {', '.join(unknown)}")

    resolvers_file_raw = args.resolvers_file or os.getenv("PUBLIC_IP_RESOLVERS_FILE")
    resolvers_file = Path(resolvers_file_raw) if resolvers_file_raw else None
    if resolvers_file is not None and not resolvers_file.exists():
        raise ValueError(f"Resolvers file does not exist: {resolvers_file}")

    timeout = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))
    if timeout <= 0:
        raise ValueError(f"REQUEST_TIMEOUT_SECONDS must be > 0, got {timeout}")

    show_details = args.details or _parse_bool(os.getenv("PUBLIC_IP_SHOW_DETAILS"), default=False)
    log_level = os.getenv("LOG_LEVEL", "WARNING")

    return AppConfig(
        version=version,
        resolvers=resolvers,
        resolvers_file=resolvers_file,
        show_details=show_details,
        log_level=log_level,
        request_timeout_seconds=timeout,
    )
