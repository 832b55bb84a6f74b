from datetime import datetime

import pytest

from horm_manage.accounts import (
    EMAIL_CODE_PREFIX,
    EMAIL_SEND_INTERVAL,
    EMAIL_SUBJECT,
    expire_time,
    find_users,
    find_users_by_id,
    generate_user_id,
    is_manager,
    issue_email_code,
    login,
    register,
    reset_password,
    user_ids,
    users_from_map,
)
from horm_manage.cache import Cache
from horm_manage.models import Database, ErrorCode, ExpireType, ManageError, User, UserBase
from horm_manage.users_repo import UserRepository

ACCOUNT = "user@example.com"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def db():
    with Database() as database:
        yield database


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return Cache(clock)


def _code(cache, account=ACCOUNT):
    return str(cache.get(EMAIL_CODE_PREFIX + account))


def test_issue_email_code_stores_code_in_message(cache):
    message = issue_email_code(cache, ACCOUNT)
    code = _code(cache)
    assert message["To"] == ACCOUNT
    assert message["Subject"] == EMAIL_SUBJECT
    assert code in message.get_content()
    assert 1000 <= int(code) < 9888


def test_issue_email_code_too_often(cache, clock):
    issue_email_code(cache, ACCOUNT)
    with pytest.raises(ManageError) as info:
        issue_email_code(cache, ACCOUNT)
    assert info.value.code == ErrorCode.EMAIL_SEND_FREQUENTLY
    clock.now += EMAIL_SEND_INTERVAL + 1
    issue_email_code(cache, ACCOUNT)
    assert cache.get(EMAIL_CODE_PREFIX + ACCOUNT) is not None


def test_register_and_login(db, cache):
    issue_email_code(cache, ACCOUNT)
    password = "password"
    user = register(db, cache, ACCOUNT, _code(cache), "Nick", password=password)
    assert cache.get(EMAIL_CODE_PREFIX + ACCOUNT) is None
    stored = UserRepository(db).get_by_account(ACCOUNT)
    assert stored.id == user.id
    assert stored.nickname == "Nick"
    assert stored.password != password

    logged = login(db, ACCOUNT, password, "10.0.0.1")
    assert logged.id == user.id
    assert len(logged.token) == 32
    stored = UserRepository(db).get_by_account(ACCOUNT)
    assert stored.token == logged.token
    assert stored.last_login_ip == "10.0.0.1"


def test_register_wrong_code(db, cache):
    issue_email_code(cache, ACCOUNT)
    wrong = "0" if _code(cache) != "0" else "1"
    password = "password"
    with pytest.raises(ManageError) as info:
        register(db, cache, ACCOUNT, wrong, "Nick", password=password)
    assert info.value.code == ErrorCode.CODE_INCORRECTLY


def test_register_existing_account(db, cache, clock):
    password = "password"
    issue_email_code(cache, ACCOUNT)
    register(db, cache, ACCOUNT, _code(cache), "Nick", password=password)
    clock.now += EMAIL_SEND_INTERVAL + 1
    issue_email_code(cache, ACCOUNT)
    with pytest.raises(ManageError) as info:
        register(db, cache, ACCOUNT, _code(cache), "Other", password=password)
    assert info.value.code == ErrorCode.ACCOUNT_EXISTS


def test_login_errors(db, cache):
    password = "password"
    with pytest.raises(ManageError) as info:
        login(db, ACCOUNT, password, "127.0.0.1")
    assert info.value.code == ErrorCode.ACCOUNT_NOT_EXISTS

    issue_email_code(cache, ACCOUNT)
    register(db, cache, ACCOUNT, _code(cache), "Nick", password=password)
    with pytest.raises(ManageError) as info:
        login(db, ACCOUNT, "secret", "127.0.0.1")
    assert info.value.code == ErrorCode.PASSWORD_INCORRECT


def test_reset_password(db, cache, clock):
    password = "password"
    issue_email_code(cache, ACCOUNT)
    register(db, cache, ACCOUNT, _code(cache), "Nick", password=password)
    clock.now += EMAIL_SEND_INTERVAL + 1
    issue_email_code(cache, ACCOUNT)
    new_code = _code(cache)
    password = "secret"
    reset_password(db, cache, ACCOUNT, new_code, password=password)
    assert cache.get(EMAIL_CODE_PREFIX + ACCOUNT) is None
    assert login(db, ACCOUNT, password, "127.0.0.1").account == ACCOUNT
    with pytest.raises(ManageError) as info:
        login(db, ACCOUNT, "password", "127.0.0.1")
    assert info.value.code == ErrorCode.PASSWORD_INCORRECT


def test_reset_password_unknown_account(db, cache):
    other = "nobody@example.com"
    issue_email_code(cache, other)
    password = "secret"
    with pytest.raises(ManageError) as info:
        reset_password(db, cache, other, _code(cache, other), password=password)
    assert info.value.code == ErrorCode.ACCOUNT_EXISTS


def test_find_users(db):
    repo = UserRepository(db)
    repo.insert(User(id=11, account="alice@example.com", nickname="Alice"))
    repo.insert(User(id=12, account="bob@example.com", nickname="Bobby"))
    assert find_users(db, "") == []
    found = find_users(db, "bob")
    assert [u.account for u in found] == ["bob@example.com"]
    assert find_users_by_id(db, []) == []
    assert {u.user_id for u in find_users_by_id(db, [11, 12, 11])} == {11, 12}


def test_is_manager():
    assert is_manager(3, "") is False
    assert is_manager(3, "1,3") is True
    assert is_manager(2, "1,3") is False


def test_user_ids_collects_without_repeats():
    assert user_ids(5, "1,2,5", [7, 1], b"9", 0, "") == [5, 1, 2, 7, 9]
    assert user_ids() == []


def test_users_from_map_keeps_order():
    a, b = UserBase(user_id=1, account="a@example.com"), UserBase(user_id=2, account="b@example.com")
    assert users_from_map({1: a, 2: b}, [2, 3, 1]) == [b, a]


def test_expire_time_permanent_is_zero():
    assert expire_time(0, ExpireType.PERMANENT, now=1_700_000_000) == 0


def test_expire_time_month_overflow_rolls_forward():
    now = int(datetime(2024, 1, 31, 12).timestamp())
    assert expire_time(0, ExpireType.ONE_MONTH, now=now) == int(datetime(2024, 3, 2, 12).timestamp())


def test_expire_time_counts_from_future_expiry():
    now = int(datetime(2029, 6, 1).timestamp())
    expire_at = int(datetime(2030, 1, 15, 8).timestamp())
    assert expire_time(expire_at, ExpireType.THREE_MONTHS, now=now) == int(
        datetime(2030, 4, 15, 8).timestamp()
    )
    assert expire_time(expire_at, ExpireType.YEAR, now=now) == int(
        datetime(2031, 1, 15, 8).timestamp()
    )