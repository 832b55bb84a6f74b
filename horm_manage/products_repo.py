"""Storage of products and their members."""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from typing import Any

from horm_manage.models import Database, MemberStatus, PageInfo, Product, ProductMember

PRODUCT_TABLE = "tbl_product"
MEMBER_TABLE = "tbl_product_member"


class ProductRepository:
    """Queries over the product table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, product: Product) -> int:
        return self._db.insert(PRODUCT_TABLE, product)

    def update_by_id(self, product_id: int, values: Mapping[str, Any]) -> int:
        return self._db.update(PRODUCT_TABLE, {"id": product_id}, values)

    def get_by_id(self, product_id: int) -> Product | None:
        row = self._db.find(PRODUCT_TABLE, {"id": product_id})
        return Product.from_row(row) if row else None

    def list(self, status: int, page: int, size: int) -> tuple[PageInfo, list[Product]]:
        """Products newest first; a positive status filters on it."""
        where = {"status": status} if status > 0 else {}
        info, rows = self._db.find_all(PRODUCT_TABLE, where, ["-id"], page, size)
        return info, [Product.from_row(row) for row in rows]


class ProductMemberRepository:
    """Queries over product membership."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def insert(self, member: ProductMember) -> int:
        return self._db.insert(MEMBER_TABLE, member)

    def replace(self, values: Mapping[str, Any]) -> int:
        return self._db.replace(MEMBER_TABLE, values)

    def update_by_id(self, member_id: int, values: Mapping[str, Any]) -> int:
        return self._db.update(MEMBER_TABLE, {"id": member_id}, values)

    def get_by_user(self, product_id: int, user_id: int) -> ProductMember | None:
        row = self._db.find(MEMBER_TABLE, {"product_id": product_id, "userid": user_id})
        return ProductMember.from_row(row) if row else None

    def get_by_users(self, product_id: int, user_ids: Iterable[int]) -> list[ProductMember]:
        where = {"product_id": product_id, "userid": list(user_ids)}
        _, rows = self._db.find_all(MEMBER_TABLE, where)
        return [ProductMember.from_row(row) for row in rows]

    def list_all(self, product_id: int, page: int, size: int) -> tuple[PageInfo, list[ProductMember]]:
        """Every member, by status and then most recently updated."""
        info, rows = self._db.find_all(
            MEMBER_TABLE, {"product_id": product_id}, ["status", "-updated_at"], page, size
        )
        return info, [ProductMember.from_row(row) for row in rows]

    def list_joined(
        self, product_id: int, page: int, size: int, now: int | None = None
    ) -> tuple[PageInfo, list[ProductMember]]:
        """Members whose membership is in force at ``now``."""
        if now is None:
            now = int(time.time())
        where = {
            "product_id": product_id,
            "status": [MemberStatus.RENEWAL, MemberStatus.CHANGE_ROLE, MemberStatus.JOINED],
            "OR": {"expire_time": 0, "expire_time >": now},
        }
        info, rows = self._db.find_all(MEMBER_TABLE, where, ["-updated_at"], page, size)
        return info, [ProductMember.from_row(row) for row in rows]