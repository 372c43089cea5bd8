from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

LOOPBACK_BIND_ADDRESSES = {"127.0.0.1", "localhost"}

Rows = List[Dict[str, Any]]
Evaluator = Callable[[Rows], Tuple[bool, str]]


@dataclass(frozen=True)
class CheckDefinition:
    id: str
    description: str
    query: str
    remediation: str
    # Value-inspecting checks decide pass/fail from the rows; all others pass
    # as soon as the query executes.
    evaluator: Optional[Evaluator] = None


def _evaluate_bind_address(rows: Rows) -> Tuple[bool, str]:
    value = rows[0].get("Value") if rows else None
    value = "" if value is None else str(value)
    if value in LOOPBACK_BIND_ADDRESSES:
        return True, f"MySQL is bound to localhost ({value})"
    return False, f"MySQL is bound to '{value}', which allows unrestricted network access"


CHECKS: Tuple[CheckDefinition, ...] = (
    CheckDefinition(
        id="server_version",
        description="Checking MySQL server version",
        query="SELECT VERSION()",
        remediation="Keep MySQL on a supported release and apply security patches promptly.",
    ),
    CheckDefinition(
        id="anonymous_users",
        description="Checking for anonymous users",
        query="SELECT User, Host FROM mysql.user WHERE User = ''",
        remediation="Remove anonymous accounts: DROP USER ''@'<host>';",
    ),
    CheckDefinition(
        id="empty_passwords",
        description="Checking for accounts without a password",
        query=(
            "SELECT User, Host FROM mysql.user "
            "WHERE authentication_string = '' OR authentication_string IS NULL"
        ),
        remediation="Set a strong password for every account: ALTER USER '<user>'@'<host>' IDENTIFIED BY '<password>';",
    ),
    CheckDefinition(
        id="remote_root",
        description="Checking for remote root access",
        query=(
            "SELECT User, Host FROM mysql.user "
            "WHERE User = 'root' AND Host NOT IN ('localhost', '127.0.0.1', '::1')"
        ),
        remediation="Restrict root to local logins and use named administrative accounts for remote work.",
    ),
    CheckDefinition(
        id="wildcard_hosts",
        description="Checking for accounts reachable from any host",
        query="SELECT User, Host FROM mysql.user WHERE Host = '%'",
        remediation="Limit account hosts to specific addresses or trusted subnets instead of '%'.",
    ),
    CheckDefinition(
        id="test_database",
        description="Checking for the test database",
        query="SHOW DATABASES LIKE 'test'",
        remediation="Drop the default test database: DROP DATABASE test;",
    ),
    CheckDefinition(
        id="password_policy",
        description="Checking password validation policy",
        query="SHOW VARIABLES LIKE 'validate_password%'",
        remediation="Install the validate_password component and set validate_password.policy to MEDIUM or STRONG.",
    ),
    CheckDefinition(
        id="password_lifetime",
        description="Checking default password lifetime",
        query="SHOW VARIABLES LIKE 'default_password_lifetime'",
        remediation="Set default_password_lifetime (for example 90) to enforce password rotation.",
    ),
    CheckDefinition(
        id="ssl_status",
        description="Checking SSL support",
        query="SHOW VARIABLES LIKE 'have_ssl'",
        remediation="Configure ssl_ca, ssl_cert and ssl_key in my.cnf to enable SSL support.",
    ),
    CheckDefinition(
        id="secure_transport",
        description="Checking whether secure transport is required",
        query="SHOW VARIABLES LIKE 'require_secure_transport'",
        remediation="Set require_secure_transport=ON to reject unencrypted connections.",
    ),
    CheckDefinition(
        id="tls_versions",
        description="Checking enabled TLS protocol versions",
        query="SHOW VARIABLES LIKE 'tls_version'",
        remediation="Restrict tls_version to TLSv1.2,TLSv1.3.",
    ),
    CheckDefinition(
        id="binary_logging",
        description="Checking binary logging",
        query="SHOW VARIABLES LIKE 'log_bin'",
        remediation="Enable log_bin to support point-in-time recovery and auditing.",
    ),
    CheckDefinition(
        id="binlog_format",
        description="Checking binary log format",
        query="SHOW VARIABLES LIKE 'binlog_format'",
        remediation="Use binlog_format=ROW for consistent replication and auditing.",
    ),
    CheckDefinition(
        id="general_log",
        description="Checking general query log",
        query="SHOW VARIABLES LIKE 'general_log%'",
        remediation="Disable general_log in production; it records statements including credentials.",
    ),
    CheckDefinition(
        id="error_log",
        description="Checking error log location",
        query="SHOW VARIABLES LIKE 'log_error'",
        remediation="Set log_error to a file readable only by the mysql user.",
    ),
    CheckDefinition(
        id="slow_query_log",
        description="Checking slow query log",
        query="SHOW VARIABLES LIKE 'slow_query_log%'",
        remediation="Protect the slow query log file and rotate it regularly.",
    ),
    CheckDefinition(
        id="local_infile",
        description="Checking LOAD DATA LOCAL INFILE",
        query="SHOW VARIABLES LIKE 'local_infile'",
        remediation="Set local_infile=OFF to prevent clients from reading arbitrary local files.",
    ),
    CheckDefinition(
        id="secure_file_priv",
        description="Checking secure_file_priv",
        query="SHOW VARIABLES LIKE 'secure_file_priv'",
        remediation="Point secure_file_priv at a dedicated directory to limit file import and export.",
    ),
    CheckDefinition(
        id="symbolic_links",
        description="Checking symbolic link support",
        query="SHOW VARIABLES LIKE 'have_symlink'",
        remediation="Add skip-symbolic-links to my.cnf unless symbolic links are required.",
    ),
    CheckDefinition(
        id="skip_networking",
        description="Checking network access",
        query="SHOW VARIABLES LIKE 'skip_networking'",
        remediation="Enable skip_networking when only local clients connect through the socket.",
    ),
    CheckDefinition(
        id="bind_address",
        description="Checking bind address",
        query="SHOW VARIABLES LIKE 'bind_address'",
        remediation="Set bind-address=127.0.0.1 in my.cnf unless remote clients must connect.",
        evaluator=_evaluate_bind_address,
    ),
    CheckDefinition(
        id="server_port",
        description="Checking server port",
        query="SHOW VARIABLES LIKE 'port'",
        remediation="Consider moving MySQL off the default port 3306 and firewalling it.",
    ),
    CheckDefinition(
        id="file_privilege",
        description="Checking accounts with the FILE privilege",
        query="SELECT User, Host FROM mysql.user WHERE File_priv = 'Y'",
        remediation="Revoke FILE from accounts that do not need it: REVOKE FILE ON *.* FROM '<user>'@'<host>';",
    ),
    CheckDefinition(
        id="super_privilege",
        description="Checking accounts with the SUPER privilege",
        query="SELECT User, Host FROM mysql.user WHERE Super_priv = 'Y'",
        remediation="Revoke SUPER from non-administrative accounts.",
    ),
    CheckDefinition(
        id="grant_privilege",
        description="Checking accounts with GRANT OPTION",
        query="SELECT User, Host FROM mysql.user WHERE Grant_priv = 'Y'",
        remediation="Revoke GRANT OPTION from accounts that do not manage other users.",
    ),
    CheckDefinition(
        id="auth_plugins",
        description="Checking authentication plugins",
        query="SELECT User, Host, plugin FROM mysql.user",
        remediation="Migrate accounts to caching_sha2_password.",
    ),
    CheckDefinition(
        id="sql_mode",
        description="Checking SQL mode",
        query="SELECT @@GLOBAL.sql_mode",
        remediation="Include STRICT_TRANS_TABLES and NO_ENGINE_SUBSTITUTION in sql_mode.",
    ),
)
