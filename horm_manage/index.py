"""The front page table listing and users' collected tables."""

from __future__ import annotations

from dataclasses import dataclass, field

from horm_manage.catalog_repo import (
    CollectRepository,
    TableRepository,
    collect_table_ids,
    tables_to_map,
)
from horm_manage.models import Database
from horm_manage.tables import TableSummary, table_summary

COLLECT_TABLE_ADD = 1
COLLECT_TABLE_REMOVE = 2


@dataclass
class TablePage:
    total: int = 0
    total_page: int = 0
    page: int = 0
    size: int = 0
    tables: list[TableSummary] = field(default_factory=list)


def index_table_list(store: Database, page: int, size: int) -> TablePage:
    """One page of online tables, newest first."""
    info, tables = TableRepository(store).list_online(page, size)
    return TablePage(
        total=info.total,
        total_page=info.total_page,
        page=page,
        size=size,
        tables=[table_summary(t) for t in tables],
    )


def collect_table_list(store: Database, user_id: int, page: int, size: int) -> TablePage:
    """One page of the user's collected tables, most recently collected first."""
    info, collects = CollectRepository(store).list(user_id, page, size)
    tables = tables_to_map(TableRepository(store).get_by_ids(collect_table_ids(collects)))
    return TablePage(
        total=info.total,
        total_page=info.total_page,
        page=page,
        size=size,
        tables=[
            table_summary(tables[c.table_id]) for c in collects if c.table_id in tables
        ],
    )


def collect_table(store: Database, user_id: int, table_id: int, status: int) -> None:
    """Collect the table when ``status`` is COLLECT_TABLE_ADD, else drop it."""
    collects = CollectRepository(store)
    if status == COLLECT_TABLE_ADD:
        collects.add(user_id, table_id)
    else:
        collects.remove(user_id, table_id)