"""Records, enumerations and the SQLite store behind the management service."""

from __future__ import annotations

import math
import re
import sqlite3
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

DEFAULT_PAGE_SIZE = 10


class ErrorCode(IntEnum):
    """Result codes carried by :class:`ManageError`."""

    SYSTEM = 1
    DUPLICATE_ENTRY = 1062
    NOT_FIND_APP = 2001
    MEMBER_NOT_MANAGER = 2002
    NOT_FIND_DB = 2003
    NOT_DB_MANAGER = 2004
    CANT_CREATE_DB = 2005
    IS_NOT_MEMBER = 2006
    NOT_FIND_PRODUCT = 2007
    MEMBER_EXPIRED = 2008
    DUPLICATE_PRODUCT_NAME = 2009
    PARAM_EMPTY = 2010
    MEMBER_UNDER_APPROVAL = 2011
    IS_MEMBER = 2012
    IS_NOT_APPLY = 2013
    MEMBER_NOT_UNDER_APPROVAL = 2014
    NOT_FIND_TABLE = 2015
    NOT_FIND_PLUGIN = 2016
    EMAIL_SEND_FREQUENTLY = 2017
    CODE_INCORRECTLY = 2018
    ACCOUNT_EXISTS = 2019
    ACCOUNT_NOT_EXISTS = 2020
    PASSWORD_INCORRECT = 2021
    PLUGIN_FRONT_NOT_FIND = 2022


class ManageError(Exception):
    """An error with a result code, raised wherever an operation is refused."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class Status(IntEnum):
    ONLINE = 1
    OFFLINE = 2


class ProductRole(IntEnum):
    NOT_JOIN = 0
    MANAGER = 1
    DEVELOPER = 2
    OPERATOR = 3
    EXPIRED = 4


class MemberStatus(IntEnum):
    NOT_APPLY = 0
    APPROVAL = 1
    RENEWAL = 2
    CHANGE_ROLE = 3
    JOINED = 4
    REJECT = 5
    QUIT = 6
    EXPIRED = 9


class ExpireType(IntEnum):
    PERMANENT = 0
    ONE_MONTH = 1
    THREE_MONTHS = 2
    HALF_YEAR = 3
    YEAR = 4


_TIME_FIELDS = frozenset({"created_at", "updated_at"})


def _timestamp() -> Any:
    return field(default_factory=datetime.now)


def _parse_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value is None or value == "":
        return datetime.now()
    return datetime.fromisoformat(str(value))


class _Record:
    """Conversion between dataclass records and table rows."""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        values = {}
        for f in fields(cls):
            if f.name not in row:
                continue
            value = row[f.name]
            if f.name in _TIME_FIELDS:
                value = _parse_time(value)
            elif isinstance(f.default, bool):
                value = bool(value)
            values[f.name] = value
        return cls(**values)

    def to_row(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class PageInfo:
    total: int = 0
    total_page: int = 0
    page: int = 0
    size: int = 0


@dataclass
class User(_Record):
    id: int = 0
    account: str = ""
    password: str = ""
    nickname: str = ""
    mobile: str = ""
    token: str = ""
    avatar_url: str = ""
    gender: int = 0
    company: str = ""
    department: str = ""
    city: str = ""
    province: str = ""
    country: str = ""
    last_login_time: int = 0
    last_login_ip: str = ""
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


@dataclass
class UserBase:
    user_id: int = 0
    account: str = ""
    nickname: str = ""
    avatar_url: str = ""
    gender: int = 0


@dataclass
class CollectTable(_Record):
    id: int = 0
    userid: int = 0
    table_id: int = 0
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


@dataclass
class Product(_Record):
    id: int = 0
    name: str = ""
    intro: str = ""
    creator: int = 0
    manager: str = ""
    status: int = 0
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


@dataclass
class ProductMember(_Record):
    id: int = 0
    product_id: int = 0
    userid: int = 0
    role: int = 0
    status: int = 0
    join_time: int = 0
    expire_type: int = 0
    expire_time: int = 0
    out_time: int = 0
    change_role: int = 0
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


@dataclass
class SearchKeyword(_Record):
    id: int = 0
    type: int = 0
    sid: int = 0
    sname: str = ""
    field: str = ""
    skey: str = ""
    scontent: str = ""
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


@dataclass
class AppInfo(_Record):
    appid: int = 0
    name: str = ""
    secret: str = ""
    intro: str = ""
    creator: int = 0
    manager: str = ""
    status: int = 0
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


@dataclass
class DBInfo(_Record):
    id: int = 0
    name: str = ""
    intro: str = ""
    desc: str = ""
    product_id: int = 0
    creator: int = 0
    manager: str = ""
    status: int = 0
    write_timeout: int = 0
    read_timeout: int = 0
    warn_timeout: int = 0
    omit_error: bool = False
    debug: bool = False
    type: int = 0
    version: str = ""
    network: str = ""
    address: str = ""
    bak_address: str = ""
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


@dataclass
class TableInfo(_Record):
    id: int = 0
    name: str = ""
    intro: str = ""
    desc: str = ""
    table_verify: str = ""
    db: int = 0
    definition: str = ""
    status: int = 0
    creator: int = 0
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


@dataclass
class Plugin(_Record):
    id: int = 0
    name: str = ""
    intro: str = ""
    version: str = ""
    func: str = ""
    support_types: str = ""
    online: int = 0
    source: int = 0
    desc: str = ""
    creator: int = 0
    manager: str = ""
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


@dataclass
class PluginConfig(_Record):
    id: int = 0
    plugin_id: int = 0
    plugin_version: int = 0
    key: str = ""
    name: str = ""
    type: int = 0
    not_null: bool = False
    more_info: str = ""
    default: str = ""
    desc: str = ""
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


_SCHEMA = """
CREATE TABLE IF NOT EXISTS tbl_user (
    id INTEGER PRIMARY KEY,
    account TEXT NOT NULL DEFAULT '',
    password TEXT NOT NULL DEFAULT '',
    nickname TEXT NOT NULL DEFAULT '',
    mobile TEXT NOT NULL DEFAULT '',
    token TEXT NOT NULL DEFAULT '',
    avatar_url TEXT NOT NULL DEFAULT '',
    gender INTEGER NOT NULL DEFAULT 1,
    company TEXT NOT NULL DEFAULT '',
    department TEXT NOT NULL DEFAULT '',
    city TEXT NOT NULL DEFAULT '',
    province TEXT NOT NULL DEFAULT '',
    country TEXT NOT NULL DEFAULT '',
    last_login_time INTEGER NOT NULL DEFAULT 0,
    last_login_ip TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (account, mobile)
);
CREATE TABLE IF NOT EXISTS tbl_sequence (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS tbl_product (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT '' UNIQUE,
    intro TEXT NOT NULL DEFAULT '',
    creator INTEGER NOT NULL DEFAULT 0,
    manager TEXT NOT NULL DEFAULT '',
    status INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS tbl_product_member (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id INTEGER NOT NULL DEFAULT 0,
    userid INTEGER NOT NULL DEFAULT 0,
    role INTEGER NOT NULL DEFAULT 0,
    status INTEGER NOT NULL DEFAULT 0,
    join_time INTEGER NOT NULL DEFAULT 0,
    expire_type INTEGER NOT NULL DEFAULT 0,
    expire_time INTEGER NOT NULL DEFAULT 0,
    out_time INTEGER NOT NULL DEFAULT 0,
    change_role INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (product_id, userid)
);
CREATE TABLE IF NOT EXISTS tbl_collect_table (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    userid INTEGER NOT NULL DEFAULT 0,
    table_id INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (userid, table_id)
);
CREATE TABLE IF NOT EXISTS tbl_search_keyword (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    "type" INTEGER NOT NULL DEFAULT 0,
    sid INTEGER NOT NULL DEFAULT 0,
    sname TEXT NOT NULL DEFAULT '',
    field TEXT NOT NULL DEFAULT '',
    skey TEXT NOT NULL DEFAULT '',
    scontent TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE ("type", sid, field, skey)
);
CREATE TABLE IF NOT EXISTS tbl_app_info (
    appid INTEGER PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    secret TEXT NOT NULL DEFAULT '',
    intro TEXT NOT NULL DEFAULT '',
    creator INTEGER NOT NULL DEFAULT 0,
    manager TEXT NOT NULL DEFAULT '',
    status INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS tbl_db (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT '',
    intro TEXT NOT NULL DEFAULT '',
    "desc" TEXT NOT NULL DEFAULT '',
    product_id INTEGER NOT NULL DEFAULT 0,
    creator INTEGER NOT NULL DEFAULT 0,
    manager TEXT NOT NULL DEFAULT '',
    status INTEGER NOT NULL DEFAULT 0,
    write_timeout INTEGER NOT NULL DEFAULT 0,
    read_timeout INTEGER NOT NULL DEFAULT 0,
    warn_timeout INTEGER NOT NULL DEFAULT 0,
    omit_error INTEGER NOT NULL DEFAULT 0,
    debug INTEGER NOT NULL DEFAULT 0,
    "type" INTEGER NOT NULL DEFAULT 0,
    version TEXT NOT NULL DEFAULT '',
    network TEXT NOT NULL DEFAULT '',
    address TEXT NOT NULL DEFAULT '',
    bak_address TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS tbl_table (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT '',
    intro TEXT NOT NULL DEFAULT '',
    "desc" TEXT NOT NULL DEFAULT '',
    table_verify TEXT NOT NULL DEFAULT '',
    db INTEGER NOT NULL DEFAULT 0,
    definition TEXT NOT NULL DEFAULT '',
    status INTEGER NOT NULL DEFAULT 0,
    creator INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS tbl_plugin (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT '',
    intro TEXT NOT NULL DEFAULT '',
    version TEXT NOT NULL DEFAULT '',
    func TEXT NOT NULL DEFAULT '',
    support_types TEXT NOT NULL DEFAULT '',
    online INTEGER NOT NULL DEFAULT 0,
    source INTEGER NOT NULL DEFAULT 0,
    "desc" TEXT NOT NULL DEFAULT '',
    creator INTEGER NOT NULL DEFAULT 0,
    manager TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS tbl_plugin_config (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    plugin_id INTEGER NOT NULL DEFAULT 0,
    plugin_version INTEGER NOT NULL DEFAULT 0,
    "key" TEXT NOT NULL DEFAULT '',
    name TEXT NOT NULL DEFAULT '',
    "type" INTEGER NOT NULL DEFAULT 0,
    not_null INTEGER NOT NULL DEFAULT 0,
    more_info TEXT NOT NULL DEFAULT '',
    "default" TEXT NOT NULL DEFAULT '',
    "desc" TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (plugin_id, plugin_version, "key")
);
"""

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_OPERATORS = {
    "": "=",
    "=": "=",
    "!": "!=",
    "!=": "!=",
    ">": ">",
    ">=": ">=",
    "<": "<",
    "<=": "<=",
    "~": "LIKE",
    "!~": "NOT LIKE",
}


def _quote(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"invalid identifier {name!r}")
    return f'"{name}"'


def _to_sql(value: Any) -> Any:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return value


def _compile_condition(key: str, value: Any) -> tuple[str, list[Any]]:
    name, _, op = key.strip().partition(" ")
    op = op.strip()
    if op not in _OPERATORS:
        raise ValueError(f"unknown operator {op!r} in {key!r}")
    column = _quote(name)
    sql_op = _OPERATORS[op]
    if isinstance(value, (list, tuple, set, frozenset)):
        if sql_op not in ("=", "!="):
            raise ValueError(f"operator {op!r} does not take a list")
        items = [_to_sql(v) for v in value]
        if not items:
            return ("0" if sql_op == "=" else "1"), []
        marks = ", ".join("?" for _ in items)
        keyword = "IN" if sql_op == "=" else "NOT IN"
        return f"{column} {keyword} ({marks})", items
    if value is None:
        if sql_op not in ("=", "!="):
            raise ValueError(f"operator {op!r} does not take None")
        return f"{column} IS {'NULL' if sql_op == '=' else 'NOT NULL'}", []
    return f"{column} {sql_op} ?", [_to_sql(value)]


def _compile_logic(value: Any, joiner: str) -> tuple[str, list[Any]]:
    if isinstance(value, Mapping):
        sql, params = _compile_group(value, joiner)
    else:
        pieces: list[str] = []
        params = []
        for item in value:
            sub_sql, sub_params = _compile_group(item, "AND")
            if sub_sql:
                pieces.append(f"({sub_sql})")
                params.extend(sub_params)
        sql = f" {joiner} ".join(pieces)
    return (f"({sql})" if sql else ""), params


def _compile_group(where: Mapping[str, Any], joiner: str) -> tuple[str, list[Any]]:
    parts: list[str] = []
    params: list[Any] = []
    for key, value in where.items():
        word = key.strip().upper()
        if word in ("AND", "OR"):
            sql, sub = _compile_logic(value, word)
        else:
            sql, sub = _compile_condition(key, value)
        if sql:
            parts.append(sql)
            params.extend(sub)
    return f" {joiner} ".join(parts), params


def compile_where(where: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    """Turn a condition mapping into an SQL clause and its parameters.

    Keys are column names, optionally followed by an operator
    (``>``, ``>=``, ``<``, ``<=``, ``!``, ``~`` for LIKE, ``!~``); list values
    become IN clauses; the keys ``AND`` and ``OR`` nest a mapping, or a list
    of mappings, joined by that word.  An empty mapping gives an empty clause.
    """
    if not where:
        return "", []
    return _compile_group(where, "AND")


class Database:
    """A thread-safe SQLite store holding every management table."""

    def __init__(self, path: str = ":memory:") -> None:
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.executescript(_SCHEMA)
            names = [
                row[0]
                for row in self._conn.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table' "
                    "AND name NOT LIKE 'sqlite_%'"
                )
            ]
            self._columns = {
                name: [r[1] for r in self._conn.execute(f"PRAGMA table_info({_quote(name)})")]
                for name in names
            }

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _table_columns(self, table: str) -> list[str]:
        try:
            return self._columns[table]
        except KeyError:
            raise ValueError(f"unknown table {table!r}") from None

    def _prepare(self, table: str, row: Any, stamp: bool) -> dict[str, Any]:
        columns = self._table_columns(table)
        if isinstance(row, _Record):
            row = row.to_row()
        data: dict[str, Any] = {}
        for key, value in row.items():
            if key not in columns:
                raise ValueError(f"unknown column {key!r} in table {table!r}")
            if value is None or (key == "id" and not value):
                continue
            data[key] = _to_sql(value)
        if stamp:
            now = _to_sql(datetime.now())
            for name in _TIME_FIELDS:
                if name in columns and name not in data:
                    data[name] = now
        return data

    def _run(self, sql: str, params: list[Any], fetch: bool = False):
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
                rows = [dict(r) for r in cursor.fetchall()] if fetch else None
                self._conn.commit()
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                code = ErrorCode.DUPLICATE_ENTRY if "UNIQUE" in str(exc) else ErrorCode.SYSTEM
                raise ManageError(code, str(exc)) from exc
            except sqlite3.Error as exc:
                raise ManageError(ErrorCode.SYSTEM, str(exc)) from exc
            return cursor, rows

    def _write(self, verb: str, table: str, row: Any) -> int:
        data = self._prepare(table, row, stamp=True)
        columns = ", ".join(_quote(c) for c in data)
        marks = ", ".join("?" for _ in data)
        sql = f"{verb} INTO {_quote(table)} ({columns}) VALUES ({marks})"
        cursor, _ = self._run(sql, list(data.values()))
        return cursor.lastrowid

    def insert(self, table: str, row: Any) -> int:
        """Insert a row and return its row id."""
        return self._write("INSERT", table, row)

    def replace(self, table: str, row: Any) -> int:
        """Insert a row, replacing any row it collides with; return its row id."""
        return self._write("INSERT OR REPLACE", table, row)

    def update(self, table: str, where: Mapping[str, Any] | None, values: Mapping[str, Any]) -> int:
        """Update matching rows and return how many changed."""
        columns = self._table_columns(table)
        data = self._prepare(table, values, stamp=False)
        if "updated_at" in columns and "updated_at" not in data:
            data["updated_at"] = _to_sql(datetime.now())
        if not data:
            return 0
        assignments = ", ".join(f"{_quote(c)} = ?" for c in data)
        clause, params = compile_where(where)
        sql = f"UPDATE {_quote(table)} SET {assignments}"
        if clause:
            sql += f" WHERE {clause}"
        cursor, _ = self._run(sql, list(data.values()) + params)
        return cursor.rowcount

    def delete(self, table: str, where: Mapping[str, Any] | None) -> int:
        """Delete matching rows and return how many went."""
        self._table_columns(table)
        clause, params = compile_where(where)
        sql = f"DELETE FROM {_quote(table)}"
        if clause:
            sql += f" WHERE {clause}"
        cursor, _ = self._run(sql, params)
        return cursor.rowcount

    def find(self, table: str, where: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        """Return the first matching row, or None."""
        self._table_columns(table)
        clause, params = compile_where(where)
        sql = f"SELECT * FROM {_quote(table)}"
        if clause:
            sql += f" WHERE {clause}"
        _, rows = self._run(sql + " LIMIT 1", params, fetch=True)
        return rows[0] if rows else None

    def _order_clause(self, table: str, order) -> str:
        if not order:
            return ""
        if isinstance(order, str):
            order = [order]
        columns = self._table_columns(table)
        terms = []
        for item in order:
            name, direction = (item[1:], "DESC") if item.startswith("-") else (item, "ASC")
            if name not in columns:
                raise ValueError(f"unknown column {name!r} in table {table!r}")
            terms.append(f"{_quote(name)} {direction}")
        return " ORDER BY " + ", ".join(terms)

    def find_all(
        self,
        table: str,
        where: Mapping[str, Any] | None = None,
        order=None,
        page: int | None = None,
        size: int | None = None,
    ) -> tuple[PageInfo, list[dict[str, Any]]]:
        """Return page details and the matching rows.

        Without a page every matching row comes back; with one, pages are
        counted from 1 and hold ``size`` rows.
        """
        self._table_columns(table)
        clause, params = compile_where(where)
        base = f"FROM {_quote(table)}" + (f" WHERE {clause}" if clause else "")
        sql = f"SELECT * {base}{self._order_clause(table, order)}"
        if page is None:
            _, rows = self._run(sql, params, fetch=True)
            return PageInfo(total=len(rows), total_page=1 if rows else 0), rows
        page = max(page, 1)
        size = size if size and size > 0 else DEFAULT_PAGE_SIZE
        _, counted = self._run(f"SELECT COUNT(*) AS n {base}", params, fetch=True)
        total = counted[0]["n"]
        _, rows = self._run(f"{sql} LIMIT ? OFFSET ?", params + [size, (page - 1) * size], fetch=True)
        info = PageInfo(total=total, total_page=math.ceil(total / size), page=page, size=size)
        return info, rows