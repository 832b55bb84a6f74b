"""User accounts: e-mail codes, registration, login and user-id helpers."""

from __future__ import annotations

import dataclasses
import hashlib
import random
import secrets
import time
from collections.abc import Iterable, Iterator, Mapping
from datetime import date, datetime, timedelta
from email.message import EmailMessage
from typing import Any

from horm_manage.cache import Cache
from horm_manage.models import (
    Database,
    ErrorCode,
    ExpireType,
    ManageError,
    User,
    UserBase,
)
from horm_manage.users_repo import UserRepository

EMAIL_CODE_PREFIX = "email_code_"
EMAIL_CODE_EXPIRE = 300
EMAIL_SEND_INTERVAL = 60
EMAIL_SUBJECT = "聚码数据—邮箱身份验证"

_EMAIL_BODY = """亲爱的用户：<br><br>
	您好，感谢使用聚码服务，您正在进行邮箱验证，<br><br>
	本次请求的验证码为 <font size="4" style="color:#FFA500;"><b>{code}</b></font><font style="color:#989898;">（为了保证您的账号安全，请在 5 分钟内完成验证）</font>，如非本人操作请忽略，切勿将此验证码泄露给他人，以免给您账号下的数据带来损失。<br><br>
	聚码数据团队<br>{year}年{month:02d}月{day:02d}日<br>"""

_MONTHS_BY_TYPE = {
    ExpireType.ONE_MONTH: 1,
    ExpireType.THREE_MONTHS: 3,
    ExpireType.HALF_YEAR: 6,
    ExpireType.YEAR: 12,
}


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def _code_key(account: str) -> str:
    return f"{EMAIL_CODE_PREFIX}{account}"


def _check_code(cache: Cache, account: str, code: str) -> str:
    key = _code_key(account)
    saved = cache.get(key)
    saved_code = "" if saved is None else str(saved)
    if saved_code != str(code):
        raise ManageError(ErrorCode.CODE_INCORRECTLY, "code verify incorrectly")
    return key


def issue_email_code(cache: Cache, account: str) -> EmailMessage:
    """Store a fresh verification code for the account and return the mail carrying it.

    Raises when a code was issued less than the send interval ago.
    """
    key = _code_key(account)
    if cache.ttl(key) > EMAIL_CODE_EXPIRE - EMAIL_SEND_INTERVAL:
        raise ManageError(ErrorCode.EMAIL_SEND_FREQUENTLY, "send email frequently")

    code = 1000 + secrets.randbelow(8888)
    today = date.today()

    message = EmailMessage()
    message["To"] = account
    message["Subject"] = EMAIL_SUBJECT
    message.set_content(
        _EMAIL_BODY.format(code=code, year=today.year, month=today.month, day=today.day),
        subtype="html",
    )

    cache.set(key, code, EMAIL_CODE_EXPIRE)
    return message


def register(
    store: Database, cache: Cache, account: str, code: str, nickname: str, password: str
) -> User:
    """Create an account once its e-mail code checks out; the code is then spent."""
    key = _check_code(cache, account, code)
    users = UserRepository(store)
    if users.get_by_account(account) is not None:
        raise ManageError(ErrorCode.ACCOUNT_EXISTS, "account is registered")

    user = User(
        id=generate_user_id(store),
        account=account,
        nickname=nickname,
        password=_md5(password),
    )
    try:
        users.insert(user)
    finally:
        cache.delete(key)
    return user


def login(store: Database, account: str, password: str, ip: str) -> User:
    """Check the password, issue a new login token and return the updated user."""
    users = UserRepository(store)
    user = users.get_by_account(account)
    if user is None:
        raise ManageError(ErrorCode.ACCOUNT_NOT_EXISTS, "account is not exists")
    if user.password != _md5(password):
        raise ManageError(ErrorCode.PASSWORD_INCORRECT, "password verification failed")

    now = int(time.time())
    token = _md5(f"{user.id}{now}{secrets.randbelow(10000)}")
    users.update_by_id(
        user.id, {"last_login_time": now, "last_login_ip": ip, "token": token}
    )
    return dataclasses.replace(user, token=token, last_login_time=now, last_login_ip=ip)


def reset_password(store: Database, cache: Cache, account: str, code: str, password: str) -> None:
    """Set a new password once the e-mail code checks out; the code is then spent."""
    key = _check_code(cache, account, code)
    users = UserRepository(store)
    user = users.get_by_account(account)
    if user is None:
        raise ManageError(ErrorCode.ACCOUNT_EXISTS, "not find user")
    try:
        users.update_by_id(user.id, {"password": _md5(password)})
    finally:
        cache.delete(key)


def find_users(store: Database, keyword: str) -> list[UserBase]:
    """Users whose account or nickname contains the keyword."""
    if not keyword:
        return []
    from horm_manage.users_repo import user_base_from_user

    return [user_base_from_user(user) for user in UserRepository(store).search(keyword)]


def find_users_by_id(store: Database, ids: Iterable[int]) -> list[UserBase]:
    ids = list(ids)
    if not ids:
        return []
    return UserRepository(store).bases_by_ids(ids)


def generate_user_id(store: Database) -> int:
    """A new user id: 1, eight sequence digits and four random digits."""
    seq = UserRepository(store).next_sequence() % 100000000
    return int(f"1{seq:07d}{random.randrange(9999):04d}")


def is_manager(user_id: int, managers: str) -> bool:
    """Whether the user is among the comma separated managers."""
    if not managers:
        return False
    return user_id in user_ids(managers)


def _add_months(start: datetime, months: int) -> datetime:
    # Days past the end of the target month roll into the next one.
    total = start.month - 1 + months
    first = start.replace(year=start.year + total // 12, month=total % 12 + 1, day=1)
    return first + timedelta(days=start.day - 1)


def expire_time(expire_at: int, expire_type: int, now: int | None = None) -> int:
    """The expiry after renewing by ``expire_type``, counted from the old expiry if
    still in the future, else from now; 0 for permanent."""
    if now is None:
        now = int(time.time())
    start = datetime.fromtimestamp(expire_at if expire_at > now else now)
    try:
        months = _MONTHS_BY_TYPE[ExpireType(expire_type)]
    except (ValueError, KeyError):
        return 0
    return int(_add_months(start, months).timestamp())


def users_from_map(user_map: Mapping[int, UserBase], user_ids: Iterable[int]) -> list[UserBase]:
    """The users found in the map, in the order of the ids."""
    return [user_map[uid] for uid in user_ids if uid in user_map]


def _split_ids(text: str) -> Iterator[int]:
    for part in text.split(","):
        part = part.strip()
        if part.isdigit():
            yield int(part)


def user_ids(*args: Any) -> list[int]:
    """Collect user ids from ints, lists of ints and comma separated text, without repeats."""
    collected: list[int] = []
    for item in args:
        if isinstance(item, bool):
            continue
        if isinstance(item, int):
            if item > 0:
                collected.append(item)
        elif isinstance(item, str):
            collected.extend(_split_ids(item))
        elif isinstance(item, (bytes, bytearray)):
            collected.extend(_split_ids(bytes(item).decode("utf-8", "replace")))
        elif isinstance(item, (list, tuple)):
            collected.extend(int(u) for u in item)
    return list(dict.fromkeys(collected))