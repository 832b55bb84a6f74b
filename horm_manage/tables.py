"""Tables registered under a database: creation, settings and details."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from horm_manage.accounts import user_ids, users_from_map
from horm_manage.catalog_repo import DBRepository, TableRepository
from horm_manage.databases import DBSummary, db_and_managers, db_summary, require_db_manager
from horm_manage.membership import member_user_ids, product_and_managers
from horm_manage.models import (
    Database,
    DBInfo,
    ErrorCode,
    ManageError,
    ProductRole,
    Status,
    TableInfo,
    UserBase,
)
from horm_manage.products import ProductSummary
from horm_manage.users_repo import UserRepository


@dataclass
class TableSummary:
    id: int = 0
    name: str = ""
    intro: str = ""
    desc: str = ""
    status: int = 0
    create_time: int = 0


@dataclass
class TableDetail:
    info: TableSummary
    db_info: DBSummary | None = None
    creator: UserBase | None = None
    db_manager: list[UserBase] = field(default_factory=list)
    product_info: ProductSummary | None = None
    product_manager: list[UserBase] = field(default_factory=list)
    is_manager: bool = False


def table_summary(info: TableInfo | None) -> TableSummary | None:
    if info is None:
        return None
    return TableSummary(
        id=info.id,
        name=info.name,
        intro=info.intro,
        desc=info.desc,
        status=info.status,
        create_time=int(info.created_at.timestamp()),
    )


def find_table(tables: Iterable[TableInfo], table_id: int) -> TableInfo | None:
    return next((table for table in tables if table.id == table_id), None)


def _get_table(store: Database, table_id: int) -> TableInfo:
    info = TableRepository(store).get_by_id(table_id)
    if info is None:
        raise ManageError(ErrorCode.NOT_FIND_TABLE, f"not find table [{table_id}]")
    return info


def require_table_manager(store: Database, user_id: int, table_id: int) -> tuple[TableInfo, DBInfo]:
    """The table and its database, raising unless the user manages that database."""
    info = _get_table(store, table_id)
    db = require_db_manager(store, user_id, info.db)
    return info, db


def table_and_db(store: Database, table_id: int) -> tuple[TableInfo, DBInfo]:
    """The table and the database it belongs to; raises when either is missing."""
    info = _get_table(store, table_id)
    db = DBRepository(store).get_by_id(info.db)
    if db is None:
        raise ManageError(ErrorCode.NOT_FIND_DB, f"not find db [{info.db}]")
    return info, db


def add_table(
    store: Database,
    user_id: int,
    db_id: int,
    name: str,
    intro: str,
    desc: str,
    table_verify: str = "",
) -> int:
    """Register an online table under the database; database managers only."""
    require_db_manager(store, user_id, db_id)
    now = datetime.now()
    info = TableInfo(
        name=name,
        intro=intro,
        desc=desc,
        table_verify=table_verify,
        db=db_id,
        status=Status.ONLINE,
        creator=user_id,
        created_at=now,
        updated_at=now,
    )
    return TableRepository(store).add(info)


def update_table_base(store: Database, user_id: int, table_id: int, intro: str, desc: str) -> None:
    require_table_manager(store, user_id, table_id)
    TableRepository(store).update_by_id(table_id, {"intro": intro, "desc": desc})


def update_table_status(store: Database, user_id: int, table_id: int, status: int) -> None:
    require_table_manager(store, user_id, table_id)
    TableRepository(store).update_by_id(table_id, {"status": status})


def update_table_advance(store: Database, user_id: int, table_id: int, table_verify: str) -> None:
    require_table_manager(store, user_id, table_id)
    TableRepository(store).update_by_id(table_id, {"table_verify": table_verify})


def table_detail(store: Database, user_id: int, table_id: int) -> TableDetail:
    """The table with its database, managers and product, as seen by the user."""
    info = _get_table(store, table_id)
    db, db_managers = db_and_managers(store, info.db)
    my_role, product, product_managers = product_and_managers(store, user_id, db.product_id)
    product_manager_ids = member_user_ids(product_managers)
    bases = UserRepository(store).bases_map_by_ids(
        user_ids(info.creator, db_managers, product_manager_ids)
    )
    manages = my_role == ProductRole.MANAGER or (
        my_role not in (ProductRole.NOT_JOIN, ProductRole.EXPIRED) and user_id in db_managers
    )
    return TableDetail(
        info=table_summary(info),
        db_info=db_summary(db),
        creator=bases.get(info.creator),
        db_manager=users_from_map(bases, db_managers),
        product_info=ProductSummary.from_product(product),
        product_manager=users_from_map(bases, product_manager_ids),
        is_manager=manages,
    )


def table_advance_config(store: Database, user_id: int, table_id: int) -> tuple[str, str]:
    """The table's definition and its name pattern; managers only."""
    info, _ = require_table_manager(store, user_id, table_id)
    return info.definition, info.table_verify