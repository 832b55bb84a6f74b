import pytest

from horm_manage.models import Database, SearchKeyword
from horm_manage.search_repo import SearchKeywordRepository

TABLE = "tbl_search_keyword"


@pytest.fixture
def db():
    with Database() as database:
        yield database


def _keyword(field, content, skey=""):
    return SearchKeyword(type=1, sid=5, sname="shop", field=field, skey=skey, scontent=content)


def _rows(db):
    _, rows = db.find_all(TABLE, None, ["id"])
    return rows


def test_add_writes_keyword(db):
    repo = SearchKeywordRepository(db, delay=0)
    repo.add(_keyword("name", "shop")).join()
    rows = _rows(db)
    assert [(r["field"], r["scontent"]) for r in rows] == [("name", "shop")]


def test_add_many_and_replace_on_same_key(db):
    repo = SearchKeywordRepository(db, delay=0)
    repo.add_many([_keyword("name", "shop"), _keyword("intro", "a shop")]).join()
    repo.add(_keyword("intro", "another shop")).join()
    contents = {r["field"]: r["scontent"] for r in _rows(db)}
    assert contents == {"name": "shop", "intro": "another shop"}


def test_delete_matches_all_fields(db):
    repo = SearchKeywordRepository(db, delay=0)
    repo.add_many([_keyword("manager", "ann", "7"), _keyword("manager", "bob", "8")]).join()
    repo.delete(1, 5, "manager", "7").join()
    assert [r["skey"] for r in _rows(db)] == ["8"]


def test_failed_write_is_dropped(db):
    repo = SearchKeywordRepository(db, retries=2, delay=0)
    db.close()
    thread = repo.add(_keyword("name", "shop"))
    thread.join(timeout=5)
    assert not thread.is_alive()


def test_retries_must_be_positive(db):
    with pytest.raises(ValueError):
        SearchKeywordRepository(db, retries=0)