from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
import logging
import ssl

import pymysql
from pymysql.connections import Connection
from pymysql.cursors import DictCursor

from checks import CHECKS, CheckDefinition

logger = logging.getLogger(__name__)

PASS_MESSAGE = "query executed successfully"


@dataclass(frozen=True)
class ConnectionConfig:
    host: str = "127.0.0.1"
    port: int = 3306
    user: str = "root"
    password: str = field(default="", repr=False)
    use_ssl: bool = True
    ssl_ca: Optional[str] = None
    ssl_cert: Optional[str] = None
    ssl_key: Optional[str] = None


@dataclass
class CheckResult:
    check_id: str
    description: str
    output: str
    success: bool
    message: str
    remediation: Optional[str] = None


class AuditError(Exception):
    """Base class for audit failures."""


class ConnectivityError(AuditError):
    """Raised when the server cannot be reached in any TLS mode."""


class CheckExecutionError(AuditError):
    """Raised when a single check query fails."""


def connect_mysql(config: ConnectionConfig) -> Connection:
    connect_args: Dict[str, Any] = {
        "host": config.host,
        "port": config.port,
        "user": config.user,
        "password": config.password,
        "cursorclass": DictCursor,
    }
    if config.use_ssl:
        # Self-signed server certificates are accepted unless a CA is given.
        ssl_config: Dict[str, Any] = {
            "check_hostname": False,
            "verify_mode": ssl.CERT_NONE,
        }
        if config.ssl_ca:
            ssl_config["ca"] = config.ssl_ca
            ssl_config["verify_mode"] = ssl.CERT_REQUIRED
        if config.ssl_cert:
            ssl_config["cert"] = config.ssl_cert
        if config.ssl_key:
            ssl_config["key"] = config.ssl_key
        connect_args["ssl"] = ssl_config
    return pymysql.connect(**connect_args)


def _probe(config: ConnectionConfig) -> Tuple[Connection, str]:
    # Unreadable TLS files surface as OSError while PyMySQL builds its SSL context.
    try:
        connection = connect_mysql(config)
    except (pymysql.MySQLError, OSError) as exc:
        raise ConnectivityError(str(exc)) from exc

    try:
        with connection.cursor() as cursor:
            version = _fetch_scalar(cursor, "SELECT VERSION()")
            # PyMySQL silently skips TLS when the server does not offer it.
            cipher = _fetch_session_status(cursor, "Ssl_cipher") if config.use_ssl else None
    except pymysql.MySQLError as exc:
        connection.close()
        raise ConnectivityError(str(exc)) from exc

    if config.use_ssl and not cipher:
        connection.close()
        raise ConnectivityError("server did not negotiate TLS")
    return connection, "" if version is None else str(version)


def resolve_connection(config: ConnectionConfig) -> Tuple[ConnectionConfig, Connection, str]:
    """Open the session used for the whole run.

    With TLS requested, a failed probe is retried once without TLS. Returns
    the config actually in effect, the open connection and the server
    version reported by the probe.
    """
    attempts = [config]
    if config.use_ssl:
        attempts.append(replace(config, use_ssl=False))

    last_error: Optional[Exception] = None
    for attempt in attempts:
        logger.debug(
            "Connecting to %s:%s as %s (TLS %s)",
            attempt.host,
            attempt.port,
            attempt.user,
            "enabled" if attempt.use_ssl else "disabled",
        )
        try:
            connection, version = _probe(attempt)
        except ConnectivityError as exc:
            last_error = exc
            if attempt.use_ssl:
                logger.warning("TLS connection failed (%s); retrying without TLS", exc)
            continue
        return attempt, connection, version

    logger.error("Cannot connect to %s:%s: %s", config.host, config.port, last_error)
    raise ConnectivityError(
        f"Cannot connect to MySQL at {config.host}:{config.port}: {last_error}"
    ) from last_error


def _fetch_scalar(
    cursor: DictCursor,
    query: str,
    params: Optional[Iterable[Any]] = None,
) -> Optional[Any]:
    cursor.execute(query, params)
    row = cursor.fetchone()
    if not row:
        return None
    return next(iter(row.values()))


def _fetch_session_status(cursor: DictCursor, name: str) -> Optional[str]:
    cursor.execute("SHOW SESSION STATUS LIKE %s", (name,))
    row = cursor.fetchone()
    if not row:
        return None
    return row.get("Value")


def execute_query(cursor: DictCursor, query: str) -> Tuple[List[str], List[Dict[str, Any]]]:
    """Run *query* and return its column names and rows."""
    logger.debug("Executing: %s", query)
    try:
        cursor.execute(query)
        rows = list(cursor.fetchall())
    except pymysql.MySQLError as exc:
        raise CheckExecutionError(str(exc)) from exc
    columns = [column[0] for column in cursor.description or ()]
    return columns, rows


def _format_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


def format_rows(columns: Sequence[str], rows: Sequence[Dict[str, Any]]) -> str:
    if not columns:
        return ""
    lines = ["\t".join(columns)]
    for row in rows:
        lines.append("\t".join(_format_value(row.get(column)) for column in columns))
    return "\n".join(lines)


def run_check(cursor: DictCursor, check: CheckDefinition) -> CheckResult:
    try:
        columns, rows = execute_query(cursor, check.query)
    except CheckExecutionError as exc:
        logger.debug("Check %s failed: %s", check.id, exc)
        return CheckResult(
            check_id=check.id,
            description=check.description,
            output="",
            success=False,
            message=str(exc),
            remediation=check.remediation,
        )

    output = format_rows(columns, rows)
    if check.evaluator is None:
        return CheckResult(check.id, check.description, output, True, PASS_MESSAGE)

    passed, message = check.evaluator(rows)
    return CheckResult(
        check_id=check.id,
        description=check.description,
        output=output,
        success=passed,
        message=message,
        remediation=None if passed else check.remediation,
    )


def run_checks(
    connection: Connection,
    checks: Sequence[CheckDefinition] = CHECKS,
) -> Iterator[CheckResult]:
    with connection.cursor() as cursor:
        for check in checks:
            yield run_check(cursor, check)
