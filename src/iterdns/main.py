from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from .cache import ZoneCache
from .config import init_logging, load_config
from .dnssec import DnspythonVerifier
from .errors import DnsError, FormatError
from .name import DomainName
from .records import rrtype_of
from .resolver import IterativeResolver
from .transport import SocketTransport

EXIT_OK = 0
EXIT_RESOLUTION_ERROR = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iterdns",
        description="Resolve a DNS name iteratively, starting from the root servers",
    )
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument(
        "--tcp", action="store_true", help="Send every query over TCP instead of UDP"
    )
    parser.add_argument(
        "--dnssec",
        action="store_true",
        help="Request DNSSEC records and report the signature verification status",
    )
    parser.add_argument("name", help="Domain name to resolve")
    parser.add_argument("type", nargs="?", default="A", help="Record type (default: A)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the iterdns command.
    Parses arguments, loads configuration, resolves the name and prints the response.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code: 0 on success, 1 when resolution fails, 2 on usage or
        configuration errors.

    Example use:
        CLI:
            iterdns www.example.com AAAA
            PYTHONPATH=src python -m iterdns.main --config example_configs/iterdns.yaml example.com MX
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_config(args.config)
    except (OSError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_USAGE

    init_logging(settings.logging)
    logger = logging.getLogger("iterdns.main")
    if args.config:
        logger.info("Loaded config from %s", args.config)

    try:
        name = DomainName.parse(args.name)
        rrtype = rrtype_of(args.type)
    except (FormatError, ValueError) as exc:
        print(f"invalid query: {exc}", file=sys.stderr)
        return EXIT_USAGE

    resolver_cfg = settings.resolver
    if args.dnssec and not resolver_cfg.dnssec:
        resolver_cfg = replace(resolver_cfg, dnssec=True)

    resolver = IterativeResolver(
        ZoneCache(settings.cache_capacity),
        root_hints=settings.root_hints,
        transport=SocketTransport(
            per_try_timeout_ms=resolver_cfg.per_try_timeout_ms, tcp_only=args.tcp
        ),
        verifier=DnspythonVerifier() if resolver_cfg.dnssec else None,
        config=resolver_cfg,
    )

    try:
        result = resolver.resolve(name, rrtype)
    except DnsError as exc:
        logger.error("Resolution of %s %s failed: %s", name, args.type, exc)
        print(f";; resolution failed: {exc}", file=sys.stderr)
        return EXIT_RESOLUTION_ERROR

    print(result.response.to_text())
    print()
    if result.from_cache:
        print(";; SERVER: (cache)")
    else:
        print(f";; SERVER: {result.server} ({result.server.name})")
    if result.truncated:
        print(";; WARNING: answer truncated even over TCP")
    if result.dnssec_status is not None:
        print(f";; DNSSEC: {result.dnssec_status.value}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
