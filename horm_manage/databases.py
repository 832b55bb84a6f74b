"""Databases registered under a product: creation, managers and network settings."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from horm_manage.accounts import user_ids, users_from_map
from horm_manage.catalog_repo import DBRepository, TableRepository
from horm_manage.membership import member_user_ids, product_and_managers, product_role, user_product_role
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
from horm_manage.products_repo import ProductMemberRepository
from horm_manage.users_repo import UserRepository


@dataclass
class NetworkSettings:
    """How the service reaches a database and how it treats slow or failed calls."""

    type: int = 0
    version: str = ""
    network: str = ""
    address: str = ""
    bak_address: str = ""
    write_timeout: int = 0
    read_timeout: int = 0
    warn_timeout: int = 0
    omit_error: bool = False
    debug: bool = False

    def to_values(self) -> dict:
        return {
            "type": self.type,
            "version": self.version,
            "network": self.network,
            "address": self.address,
            "bak_address": self.bak_address,
            "write_timeout": self.write_timeout,
            "read_timeout": self.read_timeout,
            "warn_timeout": self.warn_timeout,
            "omit_error": self.omit_error,
            "debug": self.debug,
        }


@dataclass
class DBSummary:
    id: int = 0
    name: str = ""
    intro: str = ""
    desc: str = ""
    product_id: int = 0
    type: int = 0
    version: str = ""
    status: int = 0
    create_time: int = 0


@dataclass
class DBOverview:
    info: DBSummary
    creator: UserBase | None = None
    manager: list[UserBase] = field(default_factory=list)
    product_info: object = None
    product_manager: list[UserBase] = field(default_factory=list)
    tables: list[TableInfo] = field(default_factory=list)
    is_manager: bool = False


def db_summary(info: DBInfo | None) -> DBSummary | None:
    if info is None:
        return None
    return DBSummary(
        id=info.id,
        name=info.name,
        intro=info.intro,
        desc=info.desc,
        product_id=info.product_id,
        type=info.type,
        version=info.version,
        status=info.status,
        create_time=int(info.created_at.timestamp()),
    )


def find_db(dbs: Iterable[DBInfo], db_id: int) -> DBInfo | None:
    return next((db for db in dbs if db.id == db_id), None)


def db_and_managers(store: Database, db_id: int) -> tuple[DBInfo, list[int]]:
    """The database and its manager ids; raises when it does not exist."""
    db = DBRepository(store).get_by_id(db_id)
    if db is None:
        raise ManageError(ErrorCode.NOT_FIND_DB, "not find db")
    return db, user_ids(db.manager)


def require_db_manager(store: Database, user_id: int, db_id: int) -> DBInfo:
    """Return the database, raising unless the user manages it or its product."""
    db, managers = db_and_managers(store, db_id)
    role, _ = user_product_role(store, user_id, db.product_id)
    if role == ProductRole.MANAGER or user_id in managers:
        return db
    raise ManageError(ErrorCode.NOT_DB_MANAGER, "user is not manager of db")


def add_db(
    store: Database,
    user_id: int,
    product_id: int,
    name: str,
    intro: str,
    desc: str,
    network: NetworkSettings,
) -> int:
    """Register a database under the product; product managers and developers only."""
    role, _ = user_product_role(store, user_id, product_id)
    if role not in (ProductRole.MANAGER, ProductRole.DEVELOPER):
        raise ManageError(
            ErrorCode.CANT_CREATE_DB,
            "user id not product manager or developer, can`t create table",
        )
    now = datetime.now()
    info = DBInfo(
        name=name,
        intro=intro,
        desc=desc,
        product_id=product_id,
        creator=user_id,
        manager=str(user_id),
        status=Status.ONLINE,
        created_at=now,
        updated_at=now,
        **network.to_values(),
    )
    return DBRepository(store).add(info)


def update_db_base(
    store: Database, user_id: int, db_id: int, name: str, intro: str, desc: str
) -> None:
    require_db_manager(store, user_id, db_id)
    DBRepository(store).update_by_id(db_id, {"name": name, "intro": intro, "desc": desc})


def maintain_db_manager(
    store: Database, user_id: int, db_id: int, managers: Iterable[int]
) -> None:
    """Replace the database's managers; each must be a member of its product."""
    db = require_db_manager(store, user_id, db_id)
    unique = list(dict.fromkeys(managers))
    members = ProductMemberRepository(store).get_by_users(db.product_id, unique)
    roles = {member.userid: product_role(member) for member in members}
    for uid in unique:
        if roles.get(uid, ProductRole.NOT_JOIN) == ProductRole.NOT_JOIN:
            raise ManageError(ErrorCode.IS_NOT_MEMBER, f"user [{uid}] is not member of product")
    DBRepository(store).update_by_id(db_id, {"manager": ",".join(str(u) for u in unique)})


def update_db_status(store: Database, user_id: int, db_id: int, status: int) -> None:
    require_db_manager(store, user_id, db_id)
    DBRepository(store).update_by_id(db_id, {"status": status})


def update_db_network(
    store: Database, user_id: int, db_id: int, network: NetworkSettings
) -> None:
    require_db_manager(store, user_id, db_id)
    DBRepository(store).update_by_id(db_id, network.to_values())


def db_base(store: Database, user_id: int, db_id: int) -> DBOverview:
    """The database with its managers, product, product managers and tables."""
    from horm_manage.products import ProductSummary

    db, managers = db_and_managers(store, db_id)
    my_role, product, product_managers = product_and_managers(store, user_id, db.product_id)
    product_manager_ids = member_user_ids(product_managers)
    bases = UserRepository(store).bases_map_by_ids(
        user_ids(db.creator, managers, product_manager_ids)
    )
    manages = my_role == ProductRole.MANAGER or (
        my_role not in (ProductRole.NOT_JOIN, ProductRole.EXPIRED) and user_id in managers
    )
    return DBOverview(
        info=db_summary(db),
        creator=bases.get(db.creator),
        manager=users_from_map(bases, managers),
        product_info=ProductSummary.from_product(product),
        product_manager=users_from_map(bases, product_manager_ids),
        tables=TableRepository(store).list_by_db(db_id),
        is_manager=manages,
    )


def db_network_detail(store: Database, user_id: int, db_id: int) -> NetworkSettings:
    db = require_db_manager(store, user_id, db_id)
    return NetworkSettings(
        type=db.type,
        version=db.version,
        network=db.network,
        address=db.address,
        bak_address=db.bak_address,
        write_timeout=db.write_timeout,
        read_timeout=db.read_timeout,
        warn_timeout=db.warn_timeout,
        omit_error=db.omit_error,
        debug=db.debug,
    )