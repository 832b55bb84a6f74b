import pytest

from horm_manage.databases import (
    NetworkSettings,
    add_db,
    db_and_managers,
    db_base,
    db_network_detail,
    db_summary,
    find_db,
    maintain_db_manager,
    require_db_manager,
    update_db_base,
    update_db_network,
    update_db_status,
)
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
from horm_manage.products import add_product


def _user(store, uid, name):
    store.insert("tbl_user", User(id=uid, account=f"{name}@example.com", nickname=name))


@pytest.fixture
def env():
    store = Database()
    _user(store, 1, "alice")
    _user(store, 2, "bob")
    _user(store, 3, "carol")
    product_id = add_product(store, 1, "shop", "intro")
    store.insert(
        "tbl_product_member",
        ProductMember(
            product_id=product_id, userid=2, role=ProductRole.OPERATOR, status=MemberStatus.JOINED
        ),
    )
    network = NetworkSettings(type=1, version="8.0", network="tcp", address="localhost:3306")
    db_id = add_db(store, 1, product_id, "main", "intro", "desc", network)
    return store, product_id, db_id


def test_add_db_sets_creator_as_manager(env):
    store, product_id, db_id = env
    db, managers = db_and_managers(store, db_id)
    assert managers == [1]
    assert db.product_id == product_id
    assert db.status == Status.ONLINE
    assert db.address == "localhost:3306"


def test_operator_cannot_create_db(env):
    store, product_id, _ = env
    with pytest.raises(ManageError) as err:
        add_db(store, 2, product_id, "x", "", "", NetworkSettings())
    assert err.value.code == ErrorCode.CANT_CREATE_DB


def test_non_member_is_refused(env):
    store, _, db_id = env
    with pytest.raises(ManageError) as err:
        require_db_manager(store, 3, db_id)
    assert err.value.code == ErrorCode.IS_NOT_MEMBER


def test_member_not_db_manager(env):
    store, _, db_id = env
    with pytest.raises(ManageError) as err:
        require_db_manager(store, 2, db_id)
    assert err.value.code == ErrorCode.NOT_DB_MANAGER


def test_missing_db(env):
    store, _, _ = env
    with pytest.raises(ManageError) as err:
        db_and_managers(store, 999)
    assert err.value.code == ErrorCode.NOT_FIND_DB


def test_maintain_db_manager(env):
    store, _, db_id = env
    maintain_db_manager(store, 1, db_id, [2, 2])
    assert db_and_managers(store, db_id)[1] == [2]
    assert require_db_manager(store, 2, db_id).id == db_id


def test_maintain_db_manager_rejects_outsider(env):
    store, _, db_id = env
    with pytest.raises(ManageError) as err:
        maintain_db_manager(store, 1, db_id, [3])
    assert err.value.code == ErrorCode.IS_NOT_MEMBER


def test_network_round_trip(env):
    store, _, db_id = env
    settings = NetworkSettings(
        type=2,
        version="7",
        network="tcp",
        address="localhost:6379",
        bak_address="localhost:6380",
        write_timeout=100,
        read_timeout=50,
        warn_timeout=20,
        omit_error=True,
        debug=True,
    )
    update_db_network(store, 1, db_id, settings)
    assert db_network_detail(store, 1, db_id) == settings


def test_update_base_and_status(env):
    store, _, db_id = env
    update_db_base(store, 1, db_id, "renamed", "i", "d")
    update_db_status(store, 1, db_id, Status.OFFLINE)
    db = DBRepository(store).get_by_id(db_id)
    assert (db.name, db.intro, db.desc, db.status) == ("renamed", "i", "d", Status.OFFLINE)


def test_db_base_overview(env):
    store, product_id, db_id = env
    overview = db_base(store, 1, db_id)
    assert overview.is_manager is True
    assert overview.info.id == db_id
    assert overview.creator.user_id == 1
    assert [u.user_id for u in overview.manager] == [1]
    assert overview.product_info.id == product_id
    assert overview.product_info.name == "shop"
    assert [u.user_id for u in overview.product_manager] == [1]
    assert overview.tables == []
    assert db_base(store, 2, db_id).is_manager is False


def test_summary_and_find():
    assert db_summary(None) is None
    info = DBInfo(id=5, name="n", product_id=3)
    summary = db_summary(info)
    assert (summary.id, summary.name, summary.product_id) == (5, "n", 3)
    assert find_db([DBInfo(id=1), info], 5) is info
    assert find_db([info], 6) is None