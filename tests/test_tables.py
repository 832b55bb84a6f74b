import pytest

from horm_manage.databases import NetworkSettings, add_db
from horm_manage.catalog_repo import TableRepository
from horm_manage.models import (
    Database,
    ErrorCode,
    ManageError,
    MemberStatus,
    Product,
    ProductMember,
    ProductRole,
    Status,
    User,
)
from horm_manage.products_repo import ProductMemberRepository, ProductRepository
from horm_manage.tables import (
    add_table,
    find_table,
    require_table_manager,
    table_advance_config,
    table_and_db,
    table_detail,
    table_summary,
    update_table_advance,
    update_table_base,
    update_table_status,
)
from horm_manage.users_repo import UserRepository

OWNER = 7
OUTSIDER = 9


@pytest.fixture
def store(tmp_path):
    db = Database(str(tmp_path / "manage.db"))
    yield db
    db.close()


@pytest.fixture
def db_id(store):
    UserRepository(store).insert(User(id=OWNER, account="ann@example.com", nickname="ann"))
    product_id = ProductRepository(store).add(
        Product(name="shop", intro="", creator=OWNER, manager=str(OWNER), status=Status.ONLINE)
    )
    ProductMemberRepository(store).insert(
        ProductMember(
            product_id=product_id,
            userid=OWNER,
            role=ProductRole.DEVELOPER,
            status=MemberStatus.JOINED,
        )
    )
    return add_db(store, OWNER, product_id, "main", "intro", "desc", NetworkSettings())


def test_add_table_round_trip(store, db_id):
    table_id = add_table(store, OWNER, db_id, "orders", "all orders", "long text", "orders_*")
    info = TableRepository(store).get_by_id(table_id)
    assert info.name == "orders"
    assert info.db == db_id
    assert info.creator == OWNER
    assert info.status == Status.ONLINE


def test_add_table_requires_membership(store, db_id):
    with pytest.raises(ManageError) as caught:
        add_table(store, OUTSIDER, db_id, "orders", "", "")
    assert caught.value.code == ErrorCode.IS_NOT_MEMBER


def test_update_table_base_and_status(store, db_id):
    table_id = add_table(store, OWNER, db_id, "orders", "a", "b")
    update_table_base(store, OWNER, table_id, "new intro", "new desc")
    update_table_status(store, OWNER, table_id, Status.OFFLINE)
    info = TableRepository(store).get_by_id(table_id)
    assert (info.intro, info.desc, info.status) == ("new intro", "new desc", Status.OFFLINE)


def test_advance_config_reflects_update(store, db_id):
    table_id = add_table(store, OWNER, db_id, "orders", "", "")
    update_table_advance(store, OWNER, table_id, "orders_*")
    _, verify = table_advance_config(store, OWNER, table_id)
    assert verify == "orders_*"


def test_require_table_manager_returns_db(store, db_id):
    table_id = add_table(store, OWNER, db_id, "orders", "", "")
    info, db = require_table_manager(store, OWNER, table_id)
    assert info.id == table_id
    assert db.id == db_id


def test_table_detail_for_manager(store, db_id):
    table_id = add_table(store, OWNER, db_id, "orders", "", "")
    detail = table_detail(store, OWNER, table_id)
    assert detail.is_manager is True
    assert detail.info.name == "orders"
    assert detail.db_info.id == db_id
    assert detail.creator.nickname == "ann"
    assert [u.user_id for u in detail.db_manager] == [OWNER]
    assert detail.product_info.name == "shop"


def test_table_detail_for_outsider(store, db_id):
    table_id = add_table(store, OWNER, db_id, "orders", "", "")
    assert table_detail(store, OUTSIDER, table_id).is_manager is False


def test_missing_table_raises(store, db_id):
    with pytest.raises(ManageError) as caught:
        table_detail(store, OWNER, 12345)
    assert caught.value.code == ErrorCode.NOT_FIND_TABLE


def test_table_and_db(store, db_id):
    table_id = add_table(store, OWNER, db_id, "orders", "", "")
    info, db = table_and_db(store, table_id)
    assert (info.id, db.id) == (table_id, db_id)
    with pytest.raises(ManageError):
        table_and_db(store, 12345)


def test_summary_and_find(store, db_id):
    table_id = add_table(store, OWNER, db_id, "orders", "x", "y")
    info = TableRepository(store).get_by_id(table_id)
    assert table_summary(None) is None
    assert table_summary(info).name == "orders"
    assert find_table([info], table_id) is info
    assert find_table([info], table_id + 1) is None