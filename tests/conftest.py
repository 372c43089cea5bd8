from typing import Any, Dict, List, Optional, Tuple, Union

import pymysql
import pytest

VERSION_QUERY = "SELECT VERSION()"
CIPHER_QUERY = "SHOW SESSION STATUS LIKE %s"

Response = Union[Exception, Tuple[List[str], List[Dict[str, Any]]]]


class FakeServer:
    """In-memory stand-in for a MySQL server reached through PyMySQL."""

    def __init__(self, version: str = "8.0.36", tls: bool = True, reachable: bool = True) -> None:
        self.version = version
        self.tls = tls
        self.reachable = reachable
        self.responses: Dict[str, Response] = {}
        self.queries: List[str] = []
        self.connect_calls: List[Dict[str, Any]] = []
        self.connections: List["FakeConnection"] = []

    def respond(self, query: str, connection: "FakeConnection") -> Response:
        if query == VERSION_QUERY and query not in self.responses:
            return ["VERSION()"], [{"VERSION()": self.version}]
        if query == CIPHER_QUERY:
            cipher = "TLS_AES_256_GCM_SHA384" if connection.tls else ""
            return ["Variable_name", "Value"], [{"Variable_name": "Ssl_cipher", "Value": cipher}]
        return self.responses.get(query, (["Variable_name", "Value"], []))

    def connect(self, **kwargs: Any) -> "FakeConnection":
        self.connect_calls.append(kwargs)
        if not self.reachable:
            raise pymysql.err.OperationalError(2003, "Can't connect to MySQL server")
        wants_tls = "ssl" in kwargs
        if wants_tls and not self.tls:
            # Mirrors PyMySQL, which drops TLS when the server does not offer it.
            wants_tls = False
        connection = FakeConnection(self, tls=wants_tls)
        self.connections.append(connection)
        return connection


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection
        self.description: Optional[Tuple[Tuple[Any, ...], ...]] = None
        self._rows: List[Dict[str, Any]] = []

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None

    def execute(self, query: str, params: Any = None) -> int:
        server = self.connection.server
        server.queries.append(query)
        outcome = server.respond(query, self.connection)
        if isinstance(outcome, Exception):
            self.description = None
            self._rows = []
            raise outcome
        columns, rows = outcome
        self.description = tuple((name, None, None, None, None, None, None) for name in columns) or None
        self._rows = list(rows)
        return len(self._rows)

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._rows[0] if self._rows else None

    def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._rows)


class FakeConnection:
    def __init__(self, server: FakeServer, tls: bool) -> None:
        self.server = server
        self.tls = tls
        self.closed = False

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeConnection":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


@pytest.fixture
def server(monkeypatch: pytest.MonkeyPatch) -> FakeServer:
    fake = FakeServer()
    monkeypatch.setattr(pymysql, "connect", fake.connect)
    return fake


@pytest.fixture
def cursor(server: FakeServer) -> FakeCursor:
    return FakeConnection(server, tls=False).cursor()
