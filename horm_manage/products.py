"""Products: creation, managers, status, listings and details."""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field

from horm_manage.accounts import user_ids, users_from_map
from horm_manage.catalog_repo import DBRepository
from horm_manage.databases import DBSummary, db_summary
from horm_manage.membership import product_role, user_product_role
from horm_manage.models import (
    Database,
    ErrorCode,
    ExpireType,
    ManageError,
    MemberStatus,
    PageInfo,
    Product,
    ProductMember,
    ProductRole,
    SearchKeyword,
    Status,
    UserBase,
)
from horm_manage.products_repo import ProductMemberRepository, ProductRepository
from horm_manage.search_repo import SearchKeywordRepository
from horm_manage.users_repo import UserRepository

SEARCH_TYPE_PRODUCT = 1


@dataclass
class ProductSummary:
    id: int = 0
    name: str = ""
    intro: str = ""
    status: int = 0
    created_at: int = 0

    @classmethod
    def from_product(cls, product: Product) -> ProductSummary:
        return cls(
            id=product.id,
            name=product.name,
            intro=product.intro,
            status=product.status,
            created_at=int(product.created_at.timestamp()),
        )


@dataclass
class ProductDetail:
    info: ProductSummary
    creator: UserBase | None = None
    manager: list[UserBase] = field(default_factory=list)
    role: int = 0
    status: int = 0
    change_role: int = 0
    expire_time: int = 0
    out_time: int = 0
    dbs: list[DBSummary] = field(default_factory=list)


def _require_product_manager(store: Database, user_id: int, product_id: int) -> None:
    role, _ = user_product_role(store, user_id, product_id)
    if role != ProductRole.MANAGER:
        raise ManageError(ErrorCode.MEMBER_NOT_MANAGER, "not product manager")


def add_product(
    store: Database, user_id: int, name: str, intro: str, managers: Iterable[int] = ()
) -> int:
    """Create a product; the creator joins it and manages it with the given users."""
    manager_ids = list(managers)
    if user_id not in manager_ids:
        manager_ids.append(user_id)
    user_map = UserRepository(store).bases_map_by_ids(manager_ids)

    product = Product(
        name=name,
        intro=intro,
        creator=user_id,
        manager=",".join(str(uid) for uid in manager_ids),
        status=Status.ONLINE,
    )
    try:
        product_id = ProductRepository(store).add(product)
    except ManageError as exc:
        if exc.code == ErrorCode.DUPLICATE_ENTRY:
            raise ManageError(
                ErrorCode.DUPLICATE_PRODUCT_NAME, "product name is duplicated"
            ) from exc
        raise

    ProductMemberRepository(store).insert(
        ProductMember(
            product_id=product_id,
            userid=user_id,
            role=ProductRole.DEVELOPER,
            status=MemberStatus.JOINED,
            join_time=int(time.time()),
            expire_type=ExpireType.PERMANENT,
            expire_time=0,
        )
    )

    def keyword(field_name: str, content: str, skey: str = "") -> SearchKeyword:
        return SearchKeyword(
            type=SEARCH_TYPE_PRODUCT,
            sid=product_id,
            sname=name,
            field=field_name,
            skey=skey,
            scontent=content,
        )

    keywords = [keyword("name", name)]
    if intro:
        keywords.append(keyword("intro", intro))
    creator = user_map.get(user_id)
    if creator is not None:
        keywords.append(keyword("creator", f"{creator.nickname}({creator.account})", str(user_id)))
    for uid in manager_ids:
        base = user_map.get(uid)
        if base is not None:
            keywords.append(keyword("manager", f"{base.nickname}({base.account})", str(uid)))
    SearchKeywordRepository(store).add_many(keywords)

    return product_id


def update_product(store: Database, user_id: int, product_id: int, name: str, intro: str) -> None:
    _require_product_manager(store, user_id, product_id)
    ProductRepository(store).update_by_id(product_id, {"name": name, "intro": intro})


def maintain_product_manager(
    store: Database, user_id: int, product_id: int, managers: Iterable[int]
) -> None:
    """Replace the product's managers; each must be a member of the product."""
    _require_product_manager(store, user_id, product_id)
    unique = list(dict.fromkeys(managers))
    members = ProductMemberRepository(store).get_by_users(product_id, unique)
    roles = {member.userid: product_role(member) for member in members}
    for uid in unique:
        if roles.get(uid, ProductRole.NOT_JOIN) == ProductRole.NOT_JOIN:
            raise ManageError(ErrorCode.IS_NOT_MEMBER, f"user [{uid}] is not member of product")
    ProductRepository(store).update_by_id(
        product_id, {"manager": ",".join(str(u) for u in unique)}
    )


def update_product_status(store: Database, user_id: int, product_id: int, status: int) -> None:
    _require_product_manager(store, user_id, product_id)
    ProductRepository(store).update_by_id(product_id, {"status": status})


def product_list(
    store: Database, status: int, page: int, size: int
) -> tuple[PageInfo, list[ProductSummary]]:
    """One page of products, newest first; a status of 0 means any status."""
    info, products = ProductRepository(store).list(status, page, size)
    return info, [ProductSummary.from_product(p) for p in products]


def product_detail(store: Database, user_id: int, product_id: int) -> ProductDetail:
    """The product, its managers, the user's standing in it and its databases."""
    product = ProductRepository(store).get_by_id(product_id)
    if product is None:
        raise ManageError(ErrorCode.NOT_FIND_PRODUCT, "not find product")

    manager_ids = user_ids(product.manager)
    bases = UserRepository(store).bases_map_by_ids(user_ids(product.creator, manager_ids))
    member = ProductMemberRepository(store).get_by_user(product_id, user_id)

    return ProductDetail(
        info=ProductSummary.from_product(product),
        creator=bases.get(product.creator),
        manager=users_from_map(bases, manager_ids),
        role=product_role(member, product),
        status=member.status if member else MemberStatus.NOT_APPLY,
        change_role=member.change_role if member else 0,
        expire_time=member.expire_time if member else 0,
        out_time=member.out_time if member else 0,
        dbs=[db_summary(db) for db in DBRepository(store).list_by_product(product_id)],
    )