"""Storage of databases, tables and users' collected tables."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from horm_manage.models import CollectTable, Database, DBInfo, PageInfo, Status, TableInfo

DB_TABLE = "tbl_db"
TABLE_TABLE = "tbl_table"
COLLECT_TABLE = "tbl_collect_table"


def tables_to_map(tables: Iterable[TableInfo]) -> dict[int, TableInfo]:
    """Tables keyed by id."""
    return {table.id: table for table in tables}


def collect_table_ids(collects: Iterable[CollectTable]) -> list[int]:
    """The table ids of collected tables, in order."""
    return [collect.table_id for collect in collects]


class DBRepository:
    """Queries over the database table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, info: DBInfo) -> int:
        return self._db.insert(DB_TABLE, info)

    def update_by_id(self, db_id: int, values: Mapping[str, Any]) -> int:
        return self._db.update(DB_TABLE, {"id": db_id}, values)

    def get_by_id(self, db_id: int) -> DBInfo | None:
        row = self._db.find(DB_TABLE, {"id": db_id})
        return DBInfo.from_row(row) if row else None

    def get_by_ids(self, db_ids: Iterable[int]) -> list[DBInfo]:
        _, rows = self._db.find_all(DB_TABLE, {"id": list(db_ids)})
        return [DBInfo.from_row(row) for row in rows]

    def list_by_product(self, product_id: int) -> list[DBInfo]:
        _, rows = self._db.find_all(DB_TABLE, {"product_id": product_id}, ["-id"])
        return [DBInfo.from_row(row) for row in rows]


class TableRepository:
    """Queries over the table of tables."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, info: TableInfo) -> int:
        return self._db.insert(TABLE_TABLE, info)

    def update_by_id(self, table_id: int, values: Mapping[str, Any]) -> int:
        return self._db.update(TABLE_TABLE, {"id": table_id}, values)

    def list_online(self, page: int, size: int) -> tuple[PageInfo, list[TableInfo]]:
        """Online tables, newest first."""
        info, rows = self._db.find_all(TABLE_TABLE, {"status": Status.ONLINE}, ["-id"], page, size)
        return info, [TableInfo.from_row(row) for row in rows]

    def get_by_id(self, table_id: int) -> TableInfo | None:
        row = self._db.find(TABLE_TABLE, {"id": table_id})
        return TableInfo.from_row(row) if row else None

    def get_by_ids(self, table_ids: Iterable[int]) -> list[TableInfo]:
        ids = list(table_ids)
        if not ids:
            return []
        _, rows = self._db.find_all(TABLE_TABLE, {"id": ids}, ["-id"])
        return [TableInfo.from_row(row) for row in rows]

    def list_by_db(self, db_id: int) -> list[TableInfo]:
        _, rows = self._db.find_all(TABLE_TABLE, {"db": db_id}, ["-id"])
        return [TableInfo.from_row(row) for row in rows]


class CollectRepository:
    """Tables a user has collected."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def list(self, user_id: int, page: int, size: int) -> tuple[PageInfo, list[CollectTable]]:
        info, rows = self._db.find_all(COLLECT_TABLE, {"userid": user_id}, ["-id"], page, size)
        return info, [CollectTable.from_row(row) for row in rows]

    def remove(self, user_id: int, table_id: int) -> int:
        return self._db.delete(COLLECT_TABLE, {"userid": user_id, "table_id": table_id})

    def add(self, user_id: int, table_id: int) -> int:
        row = {"userid": user_id, "table_id": table_id, "updated_at": datetime.now()}
        return self._db.replace(COLLECT_TABLE, row)