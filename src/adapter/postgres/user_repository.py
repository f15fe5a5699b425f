"""PostgreSQL implementation of UserRepository.

All values travel as query parameters. ``get`` builds its WHERE clause from
the whitelisted filter keys as identifiers and passes a positional parameter
list in the order the placeholders appear: filter values, then OFFSET, then
LIMIT.
"""

import uuid
from datetime import datetime, timezone
from logging import getLogger
from typing import Any, Mapping, Sequence

import psycopg
from psycopg import sql
from psycopg_pool import ConnectionPool

from adapter.postgres import USERS_TABLE_NAME
from domain.model.errors import InternalError, NotFoundError, ValidationError
from domain.model.user import User
from port.user_repository import FILTER_FIELDS
from utils.concurrency import check_deadline, time_remaining

logger = getLogger(__name__)

_COLUMNS = sql.SQL(', ').join(map(sql.Identifier, (
    'id', 'name', 'surnames', 'email', 'password_hash', 'claims', 'created_at', 'updated_at',
)))
_TABLE = sql.Identifier(USERS_TABLE_NAME)

_SCHEMA = sql.SQL("""
CREATE TABLE IF NOT EXISTS {table} (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL DEFAULT '',
    surnames TEXT NOT NULL DEFAULT '',
    email TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    claims INTEGER[] NOT NULL DEFAULT '{{}}',
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
)
""").format(table=_TABLE)

_EMAIL_INDEX = sql.SQL("CREATE INDEX IF NOT EXISTS idx_users_email ON {table} (email)").format(table=_TABLE)

_INSERT = sql.SQL("""
INSERT INTO {table} (name, surnames, email, password_hash, claims, created_at, updated_at)
    VALUES (%s, %s, %s, %s, %s, %s, %s)
    RETURNING id
""").format(table=_TABLE)

_SELECT_BY_ID = sql.SQL("SELECT {columns} FROM {table} WHERE id = %s").format(columns=_COLUMNS, table=_TABLE)

_UPDATE = sql.SQL("""
UPDATE {table} SET name = %s, surnames = %s, email = %s, password_hash = %s, claims = %s, updated_at = %s
    WHERE id = %s
""").format(table=_TABLE)

_DELETE = sql.SQL("DELETE FROM {table} WHERE id = %s").format(table=_TABLE)

_SET_STATEMENT_TIMEOUT = sql.SQL("SET LOCAL statement_timeout = {}")


def _uuid(user_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(user_id))
    except ValueError as e:
        raise ValidationError(f"invalid ID: {user_id}") from e


def _utc(value: datetime | None) -> datetime | None:
    """TIMESTAMPTZ values come back in the session time zone."""
    return value.astimezone(timezone.utc) if value is not None else None


def _bound(conn: psycopg.Connection) -> None:
    """Limit the current transaction to what is left of the request deadline, if any."""
    remaining = time_remaining()
    if remaining is None:
        return
    check_deadline()
    conn.execute(_SET_STATEMENT_TIMEOUT.format(sql.Literal(max(int(remaining * 1000), 1))))


def _row_to_user(row) -> User:
    return User(
        id=str(row[0]),
        name=row[1],
        surnames=row[2],
        email=row[3],
        password_hash=row[4],
        claim_ids=list(row[5] or []),
        created_at=_utc(row[6]),
        updated_at=_utc(row[7]),
    )


def _insert_params(user: User) -> tuple:
    return (
        user.name, user.surnames, user.email, user.password_hash,
        list(user.claim_ids), user.created_at, user.updated_at,
    )


class PostgresUserRepository:
    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    def ensure_schema(self) -> bool:
        """Create the users table and its email index if missing."""
        try:
            with self.pool.connection() as conn:
                conn.execute(_SCHEMA)
                conn.execute(_EMAIL_INDEX)
            return True
        except psycopg.Error as e:
            logger.error("Failed to create users schema", extra={"error": str(e)})
            return False

    def build_select(self, filter: Mapping[str, Any], skip: int | None, take: int | None) -> tuple[sql.Composed, list]:
        """Return the SELECT statement for ``get`` and its positional parameters."""
        if (skip is not None and skip < 0) or (take is not None and take < 0):
            raise ValidationError("skip and take cannot be negative")

        query = sql.SQL("SELECT {columns} FROM {table}").format(columns=_COLUMNS, table=_TABLE)
        params: list = []

        conditions = []
        for key, value in filter.items():
            if key not in FILTER_FIELDS:
                raise ValidationError(f"unknown filter field: {key}")
            conditions.append(sql.SQL("{} = %s").format(sql.Identifier(key)))
            params.append(_uuid(value) if key == 'id' else value)
        if conditions:
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions)

        query += sql.SQL(" ORDER BY created_at, id")
        if skip is not None:
            query += sql.SQL(" OFFSET %s")
            params.append(skip)
        if take is not None:
            query += sql.SQL(" LIMIT %s")
            params.append(take)
        return query, params

    # ── write operations ─────────────────────────────────────

    def create(self, user: User) -> str:
        try:
            with self.pool.connection() as conn:
                _bound(conn)
                row = conn.execute(_INSERT, _insert_params(user)).fetchone()
        except psycopg.Error as e:
            logger.error("Failed to create user", extra={"error": str(e)})
            raise InternalError(f"failed to create user: {e}") from e
        return str(row[0])

    def create_many(self, users: Sequence[User]) -> list[str]:
        """Insert every user in one transaction; the first failure rolls all back."""
        ids = []
        try:
            with self.pool.connection() as conn:
                with conn.transaction():
                    _bound(conn)
                    for user in users:
                        row = conn.execute(_INSERT, _insert_params(user)).fetchone()
                        ids.append(str(row[0]))
        except psycopg.Error as e:
            logger.error("Failed to create users", extra={"count": len(users), "error": str(e)})
            raise InternalError(f"failed to create users: {e}") from e
        return ids

    def update(self, user_id: str, user: User) -> None:
        params = (
            user.name, user.surnames, user.email, user.password_hash,
            list(user.claim_ids), user.updated_at, _uuid(user_id),
        )
        try:
            with self.pool.connection() as conn:
                _bound(conn)
                rowcount = conn.execute(_UPDATE, params).rowcount
        except psycopg.Error as e:
            logger.error("Failed to update user", extra={"userId": user_id, "error": str(e)})
            raise InternalError(f"failed to update user: {e}") from e
        if rowcount < 1:
            raise NotFoundError(f"ID {user_id} not found")

    def delete(self, user_id: str) -> None:
        try:
            with self.pool.connection() as conn:
                _bound(conn)
                rowcount = conn.execute(_DELETE, (_uuid(user_id),)).rowcount
        except psycopg.Error as e:
            logger.error("Failed to delete user", extra={"userId": user_id, "error": str(e)})
            raise InternalError(f"failed to delete user: {e}") from e
        if rowcount < 1:
            raise NotFoundError(f"ID {user_id} not found")

    # ── read operations ──────────────────────────────────────

    def get(self, filter: Mapping[str, Any], skip: int | None = None, take: int | None = None) -> list[User]:
        """Return matching users. An empty result raises NotFoundError."""
        query, params = self.build_select(filter, skip, take)
        try:
            with self.pool.connection() as conn:
                _bound(conn)
                rows = conn.execute(query, params).fetchall()
        except psycopg.Error as e:
            logger.error("Failed to get users", extra={"filter": list(filter), "error": str(e)})
            raise InternalError(f"failed to get users: {e}") from e
        if not rows:
            raise NotFoundError("no users found")
        return [_row_to_user(row) for row in rows]

    def get_by_id(self, user_id: str) -> User:
        try:
            with self.pool.connection() as conn:
                _bound(conn)
                row = conn.execute(_SELECT_BY_ID, (_uuid(user_id),)).fetchone()
        except psycopg.Error as e:
            logger.error("Failed to get user by ID", extra={"userId": user_id, "error": str(e)})
            raise InternalError(f"failed to get user: {e}") from e
        if row is None:
            raise NotFoundError(f"ID {user_id} not found")
        return _row_to_user(row)

    def ping(self) -> bool:
        try:
            with self.pool.connection() as conn:
                conn.execute("SELECT 1")
            return True
        except psycopg.Error as e:
            logger.warning("PostgreSQL ping failed", extra={"error": str(e)[:200]})
            return False
