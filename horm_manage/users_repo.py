"""Storage of user accounts and the id sequence."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from horm_manage.models import Database, User, UserBase

USER_TABLE = "tbl_user"
SEQUENCE_TABLE = "tbl_sequence"


def user_base_from_user(user: User) -> UserBase:
    """The public part of a user record."""
    return UserBase(
        user_id=user.id,
        account=user.account,
        nickname=user.nickname,
        avatar_url=user.avatar_url,
        gender=user.gender,
    )


class UserRepository:
    """Queries over the user table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def insert(self, user: User) -> int:
        return self._db.insert(USER_TABLE, user)

    def update_by_id(self, user_id: int, values: Mapping[str, Any]) -> int:
        return self._db.update(USER_TABLE, {"id": user_id}, values)

    def get_by_account(self, account: str) -> User | None:
        row = self._db.find(USER_TABLE, {"account": account})
        return User.from_row(row) if row else None

    def get_by_id(self, user_id: int) -> User | None:
        row = self._db.find(USER_TABLE, {"id": user_id})
        return User.from_row(row) if row else None

    def search(self, keyword: str) -> list[User]:
        """Users whose account or nickname contains the keyword."""
        pattern = f"%{keyword}%"
        where = {"OR": {"account ~": pattern, "nickname ~": pattern}}
        _, rows = self._db.find_all(USER_TABLE, where)
        return [User.from_row(row) for row in rows]

    def bases_by_ids(self, user_ids: Iterable[int]) -> list[UserBase]:
        unique = list(dict.fromkeys(user_ids))
        if not unique:
            return []
        _, rows = self._db.find_all(USER_TABLE, {"id": unique})
        return [user_base_from_user(User.from_row(row)) for row in rows]

    def bases_map_by_ids(self, user_ids: Iterable[int]) -> dict[int, UserBase]:
        return {base.user_id: base for base in self.bases_by_ids(user_ids)}

    def next_sequence(self) -> int:
        """Draw the next number from the id sequence."""
        return self._db.insert(SEQUENCE_TABLE, {"created_at": datetime.now()})