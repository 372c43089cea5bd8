#!/usr/bin/env python3
"""Command line entry point for the MySQL security audit.

Connection settings are resolved from built-in defaults, an optional YAML
file, ``MYSQL_AUDIT_*`` environment variables and command line flags, each
overriding the previous one.
"""

import argparse
import logging
import os
import sys
from typing import Any, Dict, Mapping, Optional, Sequence

import yaml

import report
from checks import CHECKS
from scanner import AuditError, ConnectionConfig, ConnectivityError, resolve_connection, run_checks

logger = logging.getLogger(__name__)

ENV_PREFIX = "MYSQL_AUDIT_"

DEFAULTS: Dict[str, Any] = {
    "host": "127.0.0.1",
    "port": 3306,
    "user": "root",
    "password": "",
    "use_ssl": True,
    "ssl_ca": None,
    "ssl_cert": None,
    "ssl_key": None,
}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(AuditError):
    """Raised for unusable configuration values."""


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigError(f"Invalid boolean value: {value!r}")


def _parse_port(value: Any) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port: {value!r}")
    if not 0 < port < 65536:
        raise ConfigError(f"Port out of range: {port}")
    return port


def _normalize(settings: Mapping[str, Any], source: str) -> Dict[str, Any]:
    unknown = sorted(set(settings) - set(DEFAULTS))
    if unknown:
        raise ConfigError(f"Unknown setting(s) in {source}: {', '.join(unknown)}")

    normalized: Dict[str, Any] = {}
    for key, value in settings.items():
        if key == "port":
            normalized[key] = _parse_port(value)
        elif key == "use_ssl":
            normalized[key] = _parse_bool(value)
        elif value is None:
            if not key.startswith("ssl_"):
                raise ConfigError(f"Setting {key!r} in {source} must not be empty")
            normalized[key] = None
        else:
            normalized[key] = str(value)
    return normalized


def load_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")
    return _normalize(data, path)


def environment_settings(environ: Mapping[str, str]) -> Dict[str, Any]:
    settings: Dict[str, Any] = {}
    names = {
        "host": "HOST",
        "port": "PORT",
        "user": "USER",
        "password": "PASSWORD",
        "use_ssl": "SSL",
        "ssl_ca": "SSL_CA",
        "ssl_cert": "SSL_CERT",
        "ssl_key": "SSL_KEY",
    }
    for key, suffix in names.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is not None:
            settings[key] = value
    if "password" not in settings and "MYSQL_PWD" in environ:
        settings["password"] = environ["MYSQL_PWD"]
    return _normalize(settings, "environment")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Audit a MySQL server for common security settings.",
    )
    parser.add_argument("--config", help="YAML file with connection settings")
    parser.add_argument("--host", help="MySQL host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, help="MySQL port (default: 3306)")
    parser.add_argument("--user", help="MySQL user (default: root)")
    parser.add_argument("--password", help="MySQL password (uses MYSQL_AUDIT_PASSWORD/MYSQL_PWD when omitted)")
    parser.add_argument(
        "--ssl",
        dest="use_ssl",
        action=argparse.BooleanOptionalAction,
        help="Try TLS first and fall back to plain TCP (default: on)",
    )
    parser.add_argument("--ssl-ca", help="CA certificate; enables server certificate verification")
    parser.add_argument("--ssl-cert", help="Client certificate")
    parser.add_argument("--ssl-key", help="Client private key")
    parser.add_argument("--list-checks", action="store_true", help="List the checks and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def parse_arguments(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> argparse.Namespace:
    parser = build_parser()
    environ = os.environ if environ is None else environ

    preliminary, _ = parser.parse_known_args(argv)
    defaults = dict(DEFAULTS)
    try:
        if preliminary.config:
            defaults.update(load_config_file(preliminary.config))
        defaults.update(environment_settings(environ))
    except ConfigError as exc:
        parser.error(str(exc))

    parser.set_defaults(**defaults)
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ConnectionConfig:
    return ConnectionConfig(
        host=args.host,
        port=args.port,
        user=args.user,
        password=args.password,
        use_ssl=args.use_ssl,
        ssl_ca=args.ssl_ca,
        ssl_cert=args.ssl_cert,
        ssl_key=args.ssl_key,
    )


def list_checks() -> None:
    for check in CHECKS:
        print(f"{check.id}\t{check.description}")


def run_audit(config: ConnectionConfig) -> int:
    try:
        resolved, connection, version = resolve_connection(config)
    except ConnectivityError as exc:
        print(f"[!] {exc}")
        return 1

    total = len(CHECKS)
    count = 0
    with connection:
        report.print_header(config, resolved, version)
        for index, result in enumerate(run_checks(connection, CHECKS), start=1):
            report.print_result(result, index, total)
            count = index
    report.print_footer(count)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    if args.list_checks:
        list_checks()
        return 0

    config = config_from_args(args)
    logger.debug("Resolved configuration: %r", config)
    return run_audit(config)


if __name__ == "__main__":
    sys.exit(main())
