"""
InfluxDB 1.x HTTP writer built on a shared ``httpx.AsyncClient``.

The sink talks to the destination only through the :class:`PointWriter`
protocol, so tests and alternative transports can substitute their own
implementation. :class:`InfluxDBWriter` is the production one:

- ``GET /query?q=SHOW DATABASES`` to list databases
- ``POST /query`` with ``CREATE DATABASE`` to create one
- ``POST /write?db=<name>&precision=ns`` with a line-protocol body
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

import httpx
import orjson

from ...core.errors import DatabaseCreationError, SinkWriteError
from ...core.points import DataPoint, encode_points
from ...core.settings import InfluxDBConnectionInfo


@runtime_checkable
class PointWriter(Protocol):
    """Destination for translated points."""

    async def ensure_database_exists(self, name: str) -> bool:
        """Create database ``name`` when missing; return True if created."""

    async def write_batch(
        self, points: Sequence[DataPoint], database_name: str
    ) -> None:
        """Write ``points`` in one call; raise on any failure."""

    async def aclose(self) -> None:
        """Release network resources."""


def _quote_identifier(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class InfluxDBWriter:
    """HTTP implementation of :class:`PointWriter`."""

    name = "influxdb"

    def __init__(
        self,
        connection_info: InfluxDBConnectionInfo,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._info = connection_info
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._last_status: int | None = None
        self._last_error: str | None = None

    @property
    def last_status(self) -> int | None:
        return self._last_status

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            auth: httpx.BasicAuth | None = None
            if self._info.username:
                password = (
                    self._info.password.get_secret_value()
                    if self._info.password is not None
                    else ""
                )
                auth = httpx.BasicAuth(self._info.username, password)
            self._client = httpx.AsyncClient(auth=auth, timeout=self._timeout)
        return self._client

    def _url(self, path: str) -> str:
        return f"{self._info.base_url}{path}"

    async def _query(self, method: str, statement: str) -> list[dict[str, Any]]:
        client = self._get_client()
        if method == "GET":
            resp = await client.get(self._url("/query"), params={"q": statement})
        else:
            resp = await client.post(self._url("/query"), data={"q": statement})
        if resp.status_code >= 300:
            raise DatabaseCreationError(
                f"InfluxDB query returned status {resp.status_code}",
                status_code=resp.status_code,
                statement=statement,
            )
        payload = orjson.loads(resp.content) if resp.content else {}
        results: list[dict[str, Any]] = payload.get("results", []) or []
        for result in results:
            if "error" in result:
                raise DatabaseCreationError(
                    f"InfluxDB query failed: {result['error']}",
                    statement=statement,
                )
        return results

    async def list_databases(self) -> list[str]:
        results = await self._query("GET", "SHOW DATABASES")
        names: list[str] = []
        for result in results:
            for series in result.get("series", []) or []:
                for row in series.get("values", []) or []:
                    if row:
                        names.append(str(row[0]))
        return names

    async def create_database(self, name: str) -> None:
        # CREATE DATABASE is a no-op when the database already exists
        await self._query("POST", f"CREATE DATABASE {_quote_identifier(name)}")

    async def ensure_database_exists(self, name: str) -> bool:
        try:
            if name in await self.list_databases():
                return False
            await self.create_database(name)
            return True
        except DatabaseCreationError:
            raise
        except (httpx.HTTPError, orjson.JSONDecodeError) as exc:
            raise DatabaseCreationError(
                f"Could not ensure database {name!r} exists",
                cause=exc,
            ) from exc

    async def write_batch(
        self, points: Sequence[DataPoint], database_name: str
    ) -> None:
        if not points:
            return
        body = encode_points(points)
        client = self._get_client()
        try:
            resp = await client.post(
                self._url("/write"),
                params={"db": database_name, "precision": "ns"},
                content=body,
                headers={"Content-Type": "text/plain; charset=utf-8"},
            )
        except httpx.HTTPError as exc:
            self._last_error = str(exc)
            raise SinkWriteError(
                f"InfluxDB write failed: {exc}",
                sink_name=self.name,
                cause=exc,
            ) from exc
        self._last_status = resp.status_code
        if resp.status_code >= 300:
            self._last_error = resp.text[:500]
            raise SinkWriteError(
                f"InfluxDB write returned status {resp.status_code}",
                sink_name=self.name,
                status_code=resp.status_code,
                body=resp.text[:500],
            )
        self._last_error = None

    async def aclose(self) -> None:
        client = self._client
        if client is None:
            return
        if self._owns_client:
            self._client = None
            await client.aclose()


__all__ = ["InfluxDBWriter", "PointWriter"]
