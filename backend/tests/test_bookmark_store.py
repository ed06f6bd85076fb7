import pytest
from sqlalchemy.exc import OperationalError

from models import Bookmark, User
from services.bookmark_store import (
    AuthenticationRequiredError,
    BookmarkStore,
)


@pytest.fixture
def store(db_session):
    return BookmarkStore(db_session)


@pytest.fixture
def user_id(store):
    return store.sync_user("user_2abcDEF", "홍길동")


def test_sync_user_creates_local_user(store, db_session):
    user_id = store.sync_user("user_new", "김여행")

    user = db_session.query(User).filter(User.clerk_id == "user_new").one()
    assert user.id == user_id
    assert user.name == "김여행"
    assert user_id != "user_new"


def test_sync_user_is_idempotent(store, db_session):
    first = store.sync_user("user_new", "김여행")
    second = store.sync_user("user_new", "김여행2")

    assert first == second
    assert db_session.query(User).count() == 1
    assert db_session.query(User).one().name == "김여행2"


def test_sync_user_requires_identity(store):
    with pytest.raises(AuthenticationRequiredError):
        store.sync_user("")


def test_resolve_user_id(store, user_id):
    assert store.resolve_user_id("user_2abcDEF") == user_id
    assert store.resolve_user_id("user_unknown") is None
    assert store.resolve_user_id(None) is None


def test_add_and_check_bookmark(store, user_id):
    assert not store.is_bookmarked("user_2abcDEF", "126508")

    assert store.add_bookmark("user_2abcDEF", "126508") is True

    assert store.is_bookmarked("user_2abcDEF", "126508")


def test_bookmark_is_stored_under_local_id(store, user_id, db_session):
    store.add_bookmark("user_2abcDEF", "126508")

    bookmark = db_session.query(Bookmark).one()
    assert bookmark.user_id == user_id
    assert bookmark.content_id == "126508"


def test_add_bookmark_twice_keeps_one_row(store, user_id, db_session):
    assert store.add_bookmark("user_2abcDEF", "126508") is True
    assert store.add_bookmark("user_2abcDEF", "126508") is True

    assert db_session.query(Bookmark).count() == 1
    assert store.is_bookmarked("user_2abcDEF", "126508")


def test_add_bookmark_without_identity(store):
    with pytest.raises(AuthenticationRequiredError) as exc_info:
        store.add_bookmark(None, "126508")
    assert exc_info.value.message == "로그인이 필요합니다"


def test_add_bookmark_for_unknown_user(store, db_session):
    assert store.add_bookmark("user_unknown", "126508") is False
    assert db_session.query(Bookmark).count() == 0


def test_remove_bookmark_for_unknown_user(store):
    assert store.remove_bookmark("user_unknown", "126508") is False


def test_add_bookmark_database_error_returns_false(store, user_id, monkeypatch):
    def broken_commit():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(store.db, "commit", broken_commit)

    assert store.add_bookmark("user_2abcDEF", "126508") is False


def test_remove_bookmark(store, user_id):
    store.add_bookmark("user_2abcDEF", "126508")

    assert store.remove_bookmark("user_2abcDEF", "126508") is True

    assert not store.is_bookmarked("user_2abcDEF", "126508")


def test_remove_missing_bookmark_succeeds(store, user_id):
    assert store.remove_bookmark("user_2abcDEF", "999999") is True


def test_remove_bookmark_without_identity(store):
    with pytest.raises(AuthenticationRequiredError):
        store.remove_bookmark("", "126508")


def test_bookmarks_are_scoped_per_user(store, user_id):
    store.sync_user("user_other")
    store.add_bookmark("user_2abcDEF", "126508")

    assert not store.is_bookmarked("user_other", "126508")
    assert store.list_bookmarks("user_other") == []


def test_is_bookmarked_for_anonymous_or_unknown(store, user_id):
    store.add_bookmark("user_2abcDEF", "126508")

    assert store.is_bookmarked(None, "126508") is False
    assert store.is_bookmarked("user_unknown", "126508") is False


def test_list_bookmarks_newest_first(store, user_id):
    for content_id in ("126508", "264337", "2748312"):
        store.add_bookmark("user_2abcDEF", content_id)

    assert store.list_bookmarks("user_2abcDEF") == ["2748312", "264337", "126508"]


def test_list_bookmarks_for_anonymous_is_empty(store):
    assert store.list_bookmarks(None) == []
