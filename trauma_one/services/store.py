"""Row-store adapters.

``PostgrestStore`` talks to the hosted backend's REST row API with httpx.
``SQLiteStore`` implements the same surface over aiosqlite for local
development and tests. Both consume ``TableQuery`` objects, so query
composition stays independent of the backend.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone

import aiosqlite
import httpx

from trauma_one.errors import SessionExpiredError, StoreError, is_session_expired
from trauma_one.services.query import Condition, TableQuery

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    rows: list[dict]
    count: int | None = None


class StoreAdapter:
    engine: str

    async def select(self, query: TableQuery) -> QueryResult:  # pragma: no cover - interface
        raise NotImplementedError

    async def insert(self, table: str, rows: list[dict]) -> list[dict]:  # pragma: no cover - interface
        raise NotImplementedError

    async def update(
        self, table: str, values: dict, conditions: list[Condition]
    ) -> list[dict]:  # pragma: no cover - interface
        raise NotImplementedError

    def for_session(self, access_token: str | None) -> "StoreAdapter":
        """Return an adapter that acts with the caller's credentials."""
        return self

    async def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


# --- PostgREST ---


def _quote(value) -> str:
    # Reserved characters (commas, parentheses) must be double-quoted
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _render_condition(condition: Condition, nested: bool = False) -> str:
    if condition.op == "in":
        return f"in.({','.join(_quote(v) for v in condition.value)})"
    value = _quote(condition.value) if nested else str(condition.value)
    return f"{condition.op}.{value}"


def _parse_content_range(header: str | None) -> int | None:
    # "0-9/15" or "*/0"
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


@dataclass
class PostgrestStore(StoreAdapter):
    client: httpx.AsyncClient
    base_url: str
    api_key: str
    access_token: str | None = None
    engine: str = "postgrest"

    def for_session(self, access_token: str | None) -> "PostgrestStore":
        return replace(self, access_token=access_token)

    def _headers(self, prefer: list[str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        if prefer:
            headers["Prefer"] = ",".join(prefer)
        return headers

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    @staticmethod
    def _filter_params(conditions: list[Condition]) -> list[tuple[str, str]]:
        return [(c.column, _render_condition(c)) for c in conditions]

    @classmethod
    def build_params(cls, query: TableQuery) -> list[tuple[str, str]]:
        select = query.columns
        for relation in query.embed:
            select += f",{relation}(*)"
        params = [("select", select)]
        params.extend(cls._filter_params(query.filters))
        for group in query.any_of:
            rendered = ",".join(
                f"{c.column}.{_render_condition(c, nested=True)}" for c in group
            )
            params.append(("or", f"({rendered})"))
        if query.order_by:
            direction = "desc" if query.descending else "asc"
            params.append(("order", f"{query.order_by}.{direction}"))
        if query.offset is not None:
            params.append(("offset", str(query.offset)))
        if query.limit is not None:
            params.append(("limit", str(query.limit)))
        return params

    async def _send(self, method: str, table: str, **kwargs) -> httpx.Response:
        try:
            resp = await self.client.request(method, self._url(table), **kwargs)
        except httpx.HTTPError as e:
            logger.error("Store request %s %s failed: %s", method, table, e)
            raise StoreError(f"Could not reach the backing store: {e}") from e
        if resp.status_code >= 400:
            raise _store_error(resp)
        return resp

    async def select(self, query: TableQuery) -> QueryResult:
        prefer = ["count=exact"] if query.count else None
        resp = await self._send(
            "GET",
            query.table,
            params=self.build_params(query),
            headers=self._headers(prefer),
        )
        count = _parse_content_range(resp.headers.get("content-range")) if query.count else None
        return QueryResult(rows=resp.json(), count=count)

    async def insert(self, table: str, rows: list[dict]) -> list[dict]:
        resp = await self._send(
            "POST",
            table,
            json=rows,
            headers=self._headers(["return=representation"]),
        )
        return resp.json()

    async def update(self, table: str, values: dict, conditions: list[Condition]) -> list[dict]:
        if not conditions:
            raise ValueError("Refusing to update without a filter")
        resp = await self._send(
            "PATCH",
            table,
            params=self._filter_params(conditions),
            json=values,
            headers=self._headers(["return=representation"]),
        )
        return resp.json()

    async def close(self) -> None:
        await self.client.aclose()


def _store_error(resp: httpx.Response) -> StoreError:
    code = None
    message = resp.text or resp.reason_phrase
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        message = body.get("message") or body.get("msg") or message
    logger.error("Store error %s (%s): %s", resp.status_code, code, message)
    if is_session_expired(code, message):
        return SessionExpiredError(message, code=code, status_code=resp.status_code)
    return StoreError(message, code=code, status_code=resp.status_code)


# --- SQLite ---

TABLE_COLUMNS = {
    "patients": (
        "id",
        "first_name",
        "last_name",
        "birthdate",
        "sex",
        "hospital_registration_number",
        "blood_type",
        "profile_picture",
        "created_at",
    ),
    "admissions": (
        "id",
        "patient_id",
        "chief_complaint",
        "nature_of_injury",
        "date_of_injury",
        "time_of_injury",
        "place_of_injury",
        "history_of_present_illness",
        "past_medical_history",
        "personal_social_history",
        "obstetric_gynecologic_history",
        "blood_pressure",
        "hr",
        "rr",
        "spo2",
        "temperature",
        "physical_examination",
        "imaging_findings",
        "laboratory",
        "diagnosis",
        "initial_management",
        "surgical_plan",
        "surgery_done",
        "surgery_done_at",
        "remarks",
        "status",
        "severity",
        "created_at",
    ),
}

# (table, relation) -> (foreign key on table, key on relation)
EMBEDDED_RELATIONS = {
    ("admissions", "patients"): ("patient_id", "id"),
}


def _check_column(table: str, column: str) -> str:
    if column not in TABLE_COLUMNS.get(table, ()):
        raise ValueError(f"Unknown column {table}.{column}")
    return column


def _sql_condition(table: str, condition: Condition, params: list) -> str:
    column = _check_column(table, condition.column)
    if condition.op == "eq":
        params.append(condition.value)
        return f"{column} = ?"
    if condition.op == "gte":
        params.append(condition.value)
        return f"{column} >= ?"
    if condition.op == "ilike":
        params.append(str(condition.value).lower())
        return f"LOWER(COALESCE({column}, '')) LIKE ?"
    # in
    if not condition.value:
        return "0"
    params.extend(condition.value)
    return f"{column} IN ({', '.join('?' for _ in condition.value)})"


def _sql_where(table: str, filters: list[Condition], any_of: list[tuple[Condition, ...]]) -> tuple[str, list]:
    params: list = []
    clauses = [_sql_condition(table, c, params) for c in filters]
    for group in any_of:
        clauses.append("(" + " OR ".join(_sql_condition(table, c, params) for c in group) + ")")
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


def _integrity_code(error: aiosqlite.IntegrityError) -> str:
    # Postgres SQLSTATE equivalents
    text = str(error)
    if "UNIQUE" in text:
        return "23505"
    if "CHECK" in text:
        return "23514"
    if "NOT NULL" in text:
        return "23502"
    return "23503"


@dataclass
class SQLiteStore(StoreAdapter):
    conn: aiosqlite.Connection
    engine: str = "sqlite"

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    async def _fetch_all(self, sql: str, params: list) -> list[dict]:
        try:
            cursor = await self.conn.execute(sql, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            logger.error("SQLite query failed: %s", e)
            raise StoreError(str(e)) from e
        return [dict(row) for row in rows]

    async def select(self, query: TableQuery) -> QueryResult:
        table = query.table
        if table not in TABLE_COLUMNS:
            raise StoreError(f'relation "{table}" does not exist', code="42P01")
        if query.columns == "*":
            columns = "*"
        else:
            columns = ", ".join(_check_column(table, c.strip()) for c in query.columns.split(","))
        where, params = _sql_where(table, query.filters, query.any_of)

        sql = f"SELECT {columns} FROM {table}{where}"
        if query.order_by:
            direction = "DESC" if query.descending else "ASC"
            sql += f" ORDER BY {_check_column(table, query.order_by)} {direction}, rowid {direction}"
        page_params = list(params)
        if query.limit is not None:
            sql += " LIMIT ? OFFSET ?"
            page_params.extend([query.limit, query.offset or 0])
        rows = await self._fetch_all(sql, page_params)

        count = None
        if query.count:
            counted = await self._fetch_all(f"SELECT COUNT(*) AS count FROM {table}{where}", params)
            count = counted[0]["count"]

        for relation in query.embed:
            await self._embed(table, relation, rows)
        return QueryResult(rows=rows, count=count)

    async def _embed(self, table: str, relation: str, rows: list[dict]) -> None:
        try:
            foreign_key, key = EMBEDDED_RELATIONS[(table, relation)]
        except KeyError:
            raise StoreError(
                f"Could not find a relationship between '{table}' and '{relation}'"
            ) from None
        ids = sorted({row[foreign_key] for row in rows if row.get(foreign_key)})
        related = {}
        if ids:
            placeholders = ", ".join("?" for _ in ids)
            for item in await self._fetch_all(
                f"SELECT * FROM {relation} WHERE {key} IN ({placeholders})", ids
            ):
                related[item[key]] = item
        for row in rows:
            row[relation] = related.get(row.get(foreign_key))

    async def insert(self, table: str, rows: list[dict]) -> list[dict]:
        inserted_ids = []
        try:
            for row in rows:
                record = {k: v for k, v in row.items() if v is not None}
                record.setdefault("id", str(uuid.uuid4()))
                record.setdefault("created_at", self._now())
                columns = [_check_column(table, c) for c in record]
                await self.conn.execute(
                    f"INSERT INTO {table} ({', '.join(columns)}) "
                    f"VALUES ({', '.join('?' for _ in columns)})",
                    list(record.values()),
                )
                inserted_ids.append(record["id"])
            await self.conn.commit()
        except aiosqlite.IntegrityError as e:
            await self.conn.rollback()
            logger.error("SQLite insert into %s rejected: %s", table, e)
            raise StoreError(str(e), code=_integrity_code(e)) from e
        except aiosqlite.Error as e:
            await self.conn.rollback()
            logger.error("SQLite insert into %s failed: %s", table, e)
            raise StoreError(str(e)) from e
        result = await self.select(TableQuery(table).in_("id", inserted_ids))
        by_id = {row["id"]: row for row in result.rows}
        return [by_id[i] for i in inserted_ids if i in by_id]

    async def update(self, table: str, values: dict, conditions: list[Condition]) -> list[dict]:
        if not conditions:
            raise ValueError("Refusing to update without a filter")
        assignments = ", ".join(f"{_check_column(table, c)} = ?" for c in values)
        where, params = _sql_where(table, conditions, [])
        try:
            await self.conn.execute(
                f"UPDATE {table} SET {assignments}{where}",
                [*values.values(), *params],
            )
            await self.conn.commit()
        except aiosqlite.Error as e:
            await self.conn.rollback()
            logger.error("SQLite update of %s failed: %s", table, e)
            raise StoreError(str(e)) from e
        result = await self.select(TableQuery(table, filters=list(conditions)))
        return result.rows

    async def executescript(self, script: str) -> None:
        await self.conn.executescript(script)

    async def close(self) -> None:
        await self.conn.close()
