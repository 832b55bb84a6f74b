import pytest

from horm_manage.catalog_repo import DBRepository
from horm_manage.models import (
    Database,
    DBInfo,
    ErrorCode,
    ManageError,
    MemberStatus,
    ProductMember,
    ProductRole,
    Status,
    User,
)
from horm_manage.products import (
    ProductSummary,
    add_product,
    maintain_product_manager,
    product_detail,
    product_list,
    update_product,
    update_product_status,
)


def _user(store, uid, name):
    store.insert("tbl_user", User(id=uid, account=f"{name}@example.com", nickname=name))


@pytest.fixture
def env():
    store = Database()
    _user(store, 1, "alice")
    _user(store, 2, "bob")
    _user(store, 3, "carol")
    product_id = add_product(store, 1, "shop", "intro")
    return store, product_id


def test_creator_is_manager(env):
    store, product_id = env
    detail = product_detail(store, 1, product_id)
    assert detail.role == ProductRole.MANAGER
    assert detail.status == MemberStatus.JOINED
    assert detail.creator.user_id == 1
    assert [u.user_id for u in detail.manager] == [1]
    assert detail.info.name == "shop"


def test_duplicate_name(env):
    store, _ = env
    with pytest.raises(ManageError) as err:
        add_product(store, 2, "shop", "")
    assert err.value.code == ErrorCode.DUPLICATE_PRODUCT_NAME


def test_missing_product(env):
    store, _ = env
    with pytest.raises(ManageError) as err:
        product_detail(store, 1, 999)
    assert err.value.code == ErrorCode.NOT_FIND_PRODUCT


def test_outsider_detail(env):
    store, product_id = env
    detail = product_detail(store, 3, product_id)
    assert detail.role == ProductRole.NOT_JOIN
    assert detail.status == MemberStatus.NOT_APPLY


def test_update_requires_manager(env):
    store, product_id = env
    with pytest.raises(ManageError) as err:
        update_product(store, 3, product_id, "x", "y")
    assert err.value.code == ErrorCode.IS_NOT_MEMBER
    store.insert(
        "tbl_product_member",
        ProductMember(
            product_id=product_id, userid=2, role=ProductRole.DEVELOPER, status=MemberStatus.JOINED
        ),
    )
    with pytest.raises(ManageError) as err:
        update_product(store, 2, product_id, "x", "y")
    assert err.value.code == ErrorCode.MEMBER_NOT_MANAGER


def test_update_product(env):
    store, product_id = env
    update_product(store, 1, product_id, "market", "new intro")
    info = product_detail(store, 1, product_id).info
    assert (info.name, info.intro) == ("market", "new intro")


def test_maintain_manager(env):
    store, product_id = env
    with pytest.raises(ManageError) as err:
        maintain_product_manager(store, 1, product_id, [1, 3])
    assert err.value.code == ErrorCode.IS_NOT_MEMBER
    store.insert(
        "tbl_product_member",
        ProductMember(
            product_id=product_id, userid=2, role=ProductRole.OPERATOR, status=MemberStatus.JOINED
        ),
    )
    maintain_product_manager(store, 1, product_id, [2, 1, 2])
    assert [u.user_id for u in product_detail(store, 1, product_id).manager] == [2, 1]
    assert product_detail(store, 2, product_id).role == ProductRole.MANAGER


def test_list_filters_status(env):
    store, product_id = env
    other = add_product(store, 2, "other", "")
    update_product_status(store, 1, product_id, Status.OFFLINE)
    info, products = product_list(store, Status.ONLINE, 1, 10)
    assert [p.id for p in products] == [other]
    assert info.total == 1
    _, everything = product_list(store, 0, 1, 10)
    assert [p.id for p in everything] == [other, product_id]


def test_detail_lists_dbs(env):
    store, product_id = env
    db_id = DBRepository(store).add(DBInfo(name="main", product_id=product_id))
    detail = product_detail(store, 1, product_id)
    assert [d.id for d in detail.dbs] == [db_id]
    assert detail.dbs[0].name == "main"


def test_summary_from_product(env):
    store, product_id = env
    summary = product_detail(store, 1, product_id).info
    assert isinstance(summary, ProductSummary)
    assert summary.status == Status.ONLINE
    assert summary.created_at > 0