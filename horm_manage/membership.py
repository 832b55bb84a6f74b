"""Product membership: roles, join requests, approvals and member listings."""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from horm_manage.accounts import expire_time as renewed_expire_time
from horm_manage.accounts import is_manager, user_ids
from horm_manage.models import (
    Database,
    ErrorCode,
    ManageError,
    MemberStatus,
    PageInfo,
    Product,
    ProductMember,
    ProductRole,
)
from horm_manage.products_repo import ProductMemberRepository, ProductRepository
from horm_manage.users_repo import UserRepository

APPROVAL_ACCESS = 1
APPROVAL_REJECT = 2
RENEWAL_WINDOW = 7 * 86400

_ACTIVE_STATUSES = (MemberStatus.JOINED, MemberStatus.RENEWAL, MemberStatus.CHANGE_ROLE)
_PENDING_STATUSES = (MemberStatus.APPROVAL, MemberStatus.RENEWAL)
_APPLICABLE_ROLES = (ProductRole.DEVELOPER, ProductRole.OPERATOR)


@dataclass
class ProductMemberView:
    member_id: int = 0
    userid: int = 0
    account: str = ""
    nickname: str = ""
    join_time: int = 0
    expire_type: int = 0
    expire_time: int = 0
    out_time: int = 0
    change_role: int = 0
    role: int = 0
    status: int = 0


@dataclass
class ProductMemberList:
    total: int = 0
    total_page: int = 0
    page: int = 0
    size: int = 0
    role: int = 0
    status: int = 0
    change_role: int = 0
    members: list[ProductMemberView] = field(default_factory=list)


def _now() -> int:
    return int(time.time())


def product_role(
    member: ProductMember | None, product: Product | None = None, now: int | None = None
) -> int:
    """The member's role; manager is only recognised when the product is given."""
    if member is None or member.id == 0:
        return ProductRole.NOT_JOIN
    if member.status not in _ACTIVE_STATUSES:
        return ProductRole.NOT_JOIN
    if now is None:
        now = _now()
    if member.expire_time != 0 and member.expire_time < now:
        return ProductRole.EXPIRED
    if product is not None and is_manager(member.userid, product.manager):
        return ProductRole.MANAGER
    return member.role


def product_real_role_status(
    member: ProductMember | None, product: Product | None = None, now: int | None = None
) -> tuple[int, int]:
    """The role and status to show for a member."""
    if member is None or member.id == 0:
        return ProductRole.NOT_JOIN, MemberStatus.NOT_APPLY

    role = member.role
    if product is not None and is_manager(member.userid, product.manager):
        role = ProductRole.MANAGER

    current = product_role(member, product, now)
    if current == ProductRole.NOT_JOIN:
        if member.status in (MemberStatus.NOT_APPLY, MemberStatus.QUIT):
            return ProductRole.NOT_JOIN, MemberStatus.NOT_APPLY
        return role, member.status
    if current == ProductRole.EXPIRED:
        if member.status == MemberStatus.RENEWAL:
            return role, MemberStatus.RENEWAL
        return role, MemberStatus.EXPIRED
    return current, member.status


def _get_product(store: Database, product_id: int) -> Product:
    product = ProductRepository(store).get_by_id(product_id)
    if product is None:
        raise ManageError(ErrorCode.NOT_FIND_PRODUCT, "not find product")
    return product


def user_product_role(store: Database, user_id: int, product_id: int) -> tuple[int, Product]:
    """The user's role in the product and the product; raises for non-members."""
    product = _get_product(store, product_id)
    member = ProductMemberRepository(store).get_by_user(product_id, user_id)
    role = product_role(member, product)
    if role == ProductRole.NOT_JOIN:
        raise ManageError(ErrorCode.IS_NOT_MEMBER, "user is not member of product")
    if role == ProductRole.EXPIRED:
        raise ManageError(ErrorCode.MEMBER_EXPIRED, "product member permission has expired")
    return role, product


def product_and_managers(
    store: Database, user_id: int, product_id: int
) -> tuple[int, Product, list[ProductMember]]:
    """The user's role, the product, and its members acting as managers."""
    product = _get_product(store, product_id)
    members = ProductMemberRepository(store).get_by_users(
        product_id, user_ids(user_id, product.manager)
    )
    my_role = ProductRole.NOT_JOIN
    managers: list[ProductMember] = []
    for member in members:
        role = product_role(member, product)
        if role == ProductRole.MANAGER:
            managers.append(member)
        if member.userid == user_id:
            my_role = role
    return my_role, product, managers


def member_user_ids(members: Iterable[ProductMember]) -> list[int]:
    return [member.userid for member in members]


def _require_manager(store: Database, user_id: int, product_id: int) -> None:
    role, _ = user_product_role(store, user_id, product_id)
    if role != ProductRole.MANAGER:
        raise ManageError(ErrorCode.MEMBER_NOT_MANAGER, "not product manager")


def _check_applicable_role(role: int) -> None:
    if role not in _APPLICABLE_ROLES:
        raise ManageError(ErrorCode.PARAM_EMPTY, "input param [role] is invalid")


def join_product(
    store: Database, user_id: int, product_id: int, role: int, expire_type: int
) -> None:
    """Apply to join the product, to rejoin it, or to renew a membership about to expire."""
    repo = ProductMemberRepository(store)
    member = repo.get_by_user(product_id, user_id)
    now = _now()

    if member is None:
        _check_applicable_role(role)
        repo.insert(
            ProductMember(
                product_id=product_id,
                userid=user_id,
                role=role,
                status=MemberStatus.APPROVAL,
                join_time=now,
                expire_type=expire_type,
            )
        )
        return

    if product_role(member) == ProductRole.NOT_JOIN:
        if member.status in _PENDING_STATUSES:
            raise ManageError(
                ErrorCode.MEMBER_UNDER_APPROVAL,
                "under approval, please do not apply repeatedly",
            )
        _check_applicable_role(role)
        repo.replace(
            {
                "id": member.id,
                "product_id": member.product_id,
                "userid": member.userid,
                "role": role,
                "status": MemberStatus.APPROVAL,
                "join_time": now,
                "expire_type": expire_type,
                "expire_time": 0,
                "out_time": 0,
                "updated_at": datetime.now(),
            }
        )
        return

    # Only memberships ending within the renewal window may be renewed.
    if member.expire_time == 0 or member.expire_time - now > RENEWAL_WINDOW:
        raise ManageError(ErrorCode.IS_MEMBER, "user is already member of product")
    if member.status in _PENDING_STATUSES:
        raise ManageError(
            ErrorCode.MEMBER_UNDER_APPROVAL, "under approval, please do not apply repeatedly"
        )
    if role != member.role:
        raise ManageError(ErrorCode.PARAM_EMPTY, "renewal input param [role] must be empty")
    repo.update_by_id(
        member.id,
        {"status": MemberStatus.RENEWAL, "expire_type": expire_type, "out_time": 0},
    )


def approve_member(
    store: Database, user_id: int, product_id: int, member_user_id: int, status: int
) -> None:
    """Approve or reject a pending join or renewal request; managers only."""
    _require_manager(store, user_id, product_id)
    repo = ProductMemberRepository(store)
    member = repo.get_by_user(product_id, member_user_id)
    if member is None:
        raise ManageError(
            ErrorCode.IS_NOT_APPLY, "user has not applied for product permissions"
        )
    if member.status not in _PENDING_STATUSES:
        raise ManageError(ErrorCode.MEMBER_NOT_UNDER_APPROVAL, "user is not in approval status")

    if status == APPROVAL_ACCESS:
        update = {
            "status": MemberStatus.JOINED,
            "expire_time": renewed_expire_time(member.expire_time, member.expire_type),
        }
        if member.status == MemberStatus.APPROVAL:
            update["join_time"] = _now()
    else:
        update = {"status": MemberStatus.REJECT}
    repo.update_by_id(member.id, update)


def apply_role_change(store: Database, user_id: int, product_id: int, role: int) -> None:
    """Ask to change one's own role in the product."""
    repo = ProductMemberRepository(store)
    member = repo.get_by_user(product_id, user_id)
    current = product_role(member)
    if current == ProductRole.NOT_JOIN:
        raise ManageError(ErrorCode.IS_NOT_MEMBER, "user is not member of product")
    if current == ProductRole.EXPIRED:
        raise ManageError(
            ErrorCode.MEMBER_EXPIRED,
            "product member permission has expired, please renewal first",
        )
    if member.status == MemberStatus.RENEWAL:
        raise ManageError(
            ErrorCode.MEMBER_UNDER_APPROVAL, "please complete the renewal approval first"
        )
    if member.status != MemberStatus.JOINED:
        raise ManageError(ErrorCode.IS_NOT_MEMBER, "user is not member of product")
    if role == member.role:
        return
    repo.update_by_id(member.id, {"status": MemberStatus.CHANGE_ROLE, "change_role": role})


def approve_role_change(
    store: Database, user_id: int, product_id: int, member_user_id: int, status: int
) -> None:
    """Approve or reject a pending role change; managers only."""
    _require_manager(store, user_id, product_id)
    repo = ProductMemberRepository(store)
    member = repo.get_by_user(product_id, member_user_id)
    if product_role(member) == ProductRole.NOT_JOIN:
        raise ManageError(ErrorCode.IS_NOT_MEMBER, "user is not member of product")
    if member.status != MemberStatus.CHANGE_ROLE:
        raise ManageError(
            ErrorCode.MEMBER_NOT_UNDER_APPROVAL, "user is not in role change approval status"
        )
    update = {"status": MemberStatus.JOINED, "change_role": 0}
    if status == APPROVAL_ACCESS:
        update["role"] = member.change_role
    repo.update_by_id(member.id, update)


def remove_member(store: Database, user_id: int, product_id: int, member_user_id: int) -> None:
    """Put a member out of the product; managers only."""
    _require_manager(store, user_id, product_id)
    repo = ProductMemberRepository(store)
    member = repo.get_by_user(product_id, member_user_id)
    if product_role(member) == ProductRole.NOT_JOIN:
        raise ManageError(
            ErrorCode.IS_NOT_MEMBER, "user is already not member of the product"
        )
    repo.update_by_id(member.id, {"status": MemberStatus.QUIT, "out_time": _now()})


def product_member_list(
    store: Database, user_id: int, product_id: int, page: int, size: int
) -> ProductMemberList:
    """Members visible to the user: all for managers, joined ones for other members."""
    repo = ProductMemberRepository(store)
    my_member = repo.get_by_user(product_id, user_id)
    product = _get_product(store, product_id)

    role = product_role(my_member, product)
    result = ProductMemberList(
        page=page,
        size=size,
        role=role,
        status=my_member.status if my_member else MemberStatus.NOT_APPLY,
        change_role=my_member.change_role if my_member else 0,
    )

    info: PageInfo | None = None
    members: list[ProductMember] = []
    if role == ProductRole.MANAGER:
        info, members = repo.list_all(product_id, page, size)
    elif role in (ProductRole.DEVELOPER, ProductRole.OPERATOR):
        info, members = repo.list_joined(product_id, page, size)

    if info is not None:
        result.total = info.total
        result.total_page = info.total_page

    if members:
        bases = UserRepository(store).bases_map_by_ids(member_user_ids(members))
        for member in members:
            base = bases.get(member.userid)
            if base is None:
                continue
            real_role, real_status = product_real_role_status(member, product)
            result.members.append(
                ProductMemberView(
                    member_id=member.id,
                    userid=member.userid,
                    account=base.account,
                    nickname=base.nickname,
                    join_time=int(member.join_time),
                    expire_type=member.expire_type,
                    expire_time=member.expire_time,
                    out_time=member.out_time,
                    change_role=member.change_role,
                    role=real_role,
                    status=real_status,
                )
            )
    return result