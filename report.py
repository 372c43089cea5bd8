"""Plain-text rendering of audit results on standard output."""

from __future__ import annotations

from typing import Optional, TextIO

from scanner import CheckResult, ConnectionConfig


def print_header(
    requested: ConnectionConfig,
    resolved: ConnectionConfig,
    version: str,
    stream: Optional[TextIO] = None,
) -> None:
    print(f"MySQL security audit: {resolved.user}@{resolved.host}:{resolved.port}", file=stream)
    tls = "enabled" if resolved.use_ssl else "disabled"
    print(f"Server version: {version or 'unknown'} (TLS: {tls})", file=stream)
    if requested.use_ssl and not resolved.use_ssl:
        print("[!] TLS connection failed; continuing without TLS", file=stream)
    print(file=stream)


def print_result(result: CheckResult, index: int, total: int, stream: Optional[TextIO] = None) -> None:
    print(f"[*] {index}/{total} {result.description}", file=stream)
    if result.output:
        print(result.output, file=stream)
    if result.success:
        print(f"[+] Passed: {result.message}", file=stream)
    else:
        print(f"[!] Failed: {result.message}", file=stream)
        if result.remediation:
            print(f"    Remediation: {result.remediation}", file=stream)
    print(file=stream)


def print_footer(count: int, stream: Optional[TextIO] = None) -> None:
    print(f"Audit complete: {count} checks run.", file=stream)
