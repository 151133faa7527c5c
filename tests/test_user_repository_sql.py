import pytest
from sqlmodel import Session

from user_admin.application.ports.user_repo import UserFilters
from user_admin.db.models import UserStatus, utcnow
from user_admin.infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository


def add_user(repo, first_name="John", last_name="Doe", email=None, phone=None, status="active"):
    return repo.create({
        "first_name": first_name,
        "last_name": last_name,
        "email": email or f"{first_name.lower()}@example.com",
        "phone": phone,
        "status": status,
        "password": "hashed",
    })


@pytest.fixture
def repo(session):
    return SqlUserRepository(session, fulltext_search=True)


def test_create_and_find(repo):
    user = add_user(repo, phone="+12345678900")
    found = repo.find_by_id(user.id)
    assert found.email == "john@example.com"
    assert found.status is UserStatus.ACTIVE
    assert found.password_hash == "hashed"
    assert found.deleted_at is None


def test_create_ignores_unknown_fields(repo):
    user = repo.create({
        "first_name": "Ann",
        "last_name": "Lee",
        "email": "ann@example.com",
        "status": "inactive",
        "password": "hashed",
        "is_admin": True,
    })
    assert repo.find_by_id(user.id).status is UserStatus.INACTIVE


def test_paginate_newest_first_with_counts(repo):
    for i in range(25):
        add_user(repo, first_name=f"User{i}")

    page = repo.paginate(UserFilters(page=2, per_page=10))

    assert page.total == 25
    assert page.last_page == 3
    assert [u.first_name for u in page.items][:2] == ["User14", "User13"]
    assert (page.first_item, page.last_item) == (11, 20)


def test_paginate_past_last_page_is_empty(repo):
    add_user(repo)
    page = repo.paginate(UserFilters(page=5, per_page=10))
    assert page.items == []
    assert page.total == 1
    assert page.first_item is None


def test_search_is_case_insensitive_substring_across_fields(repo):
    add_user(repo, first_name="John", last_name="Smith")
    add_user(repo, first_name="Mary", last_name="Johnson", email="mary@example.com")
    add_user(repo, first_name="Bob", last_name="Stone", phone="+15550001111")

    assert {u.first_name for u in repo.paginate(UserFilters(search="JOHN")).items} == {"John", "Mary"}
    assert [u.first_name for u in repo.paginate(UserFilters(search="5550001")).items] == ["Bob"]
    assert [u.first_name for u in repo.paginate(UserFilters(search="mary@")).items] == ["Mary"]


def test_search_treats_wildcards_literally(repo):
    add_user(repo, first_name="John")
    add_user(repo, first_name="Per%cent", email="percent@example.com")
    assert [u.first_name for u in repo.paginate(UserFilters(search="%")).items] == ["Per%cent"]
    assert repo.paginate(UserFilters(search="_")).total == 0


def test_status_filter(repo):
    add_user(repo, first_name="Active")
    add_user(repo, first_name="Dormant", status="inactive")
    page = repo.paginate(UserFilters(status=UserStatus.INACTIVE))
    assert [u.first_name for u in page.items] == ["Dormant"]


def test_soft_deleted_hidden_unless_with_trashed(repo):
    kept = add_user(repo, first_name="Kept")
    gone = add_user(repo, first_name="Gone")
    assert repo.soft_delete(gone.id) is True

    assert [u.id for u in repo.paginate(UserFilters()).items] == [kept.id]
    assert [u.id for u in repo.paginate(UserFilters(with_trashed=True)).items] == [gone.id, kept.id]
    assert repo.find_by_id(gone.id) is None
    assert repo.find_by_id(gone.id, include_deleted=True).is_deleted


def test_soft_delete_missing_or_already_deleted(repo):
    user = add_user(repo)
    assert repo.soft_delete(999) is False
    repo.soft_delete(user.id)
    assert repo.soft_delete(user.id) is False


def test_restore_only_affects_deleted_rows(repo):
    user = add_user(repo)
    assert repo.restore(user.id) is False
    repo.soft_delete(user.id)
    assert repo.restore(user.id) is True
    assert repo.find_by_id(user.id).deleted_at is None


def test_email_taken_scopes_to_live_rows(repo):
    user = add_user(repo, email="John@Example.com")
    assert repo.email_taken("john@example.com") is True
    assert repo.email_taken("john@example.com", ignore_id=user.id) is False

    repo.soft_delete(user.id)
    assert repo.email_taken("john@example.com") is False


def test_update_sets_fields_and_touches_updated_at(repo):
    user = add_user(repo)
    assert repo.update(user.id, {"first_name": "Johnny", "id": 500}) is True
    updated = repo.find_by_id(user.id)
    assert updated.first_name == "Johnny"
    assert updated.id == user.id
    assert updated.updated_at >= user.updated_at
    assert repo.update(999, {"first_name": "x"}) is False


def test_force_delete_removes_row(repo):
    user = add_user(repo)
    repo.soft_delete(user.id)
    assert repo.force_delete(user.id) is True
    assert repo.find_by_id(user.id, include_deleted=True) is None
    assert repo.force_delete(user.id) is False


def test_transaction_rolls_back_on_error(repo):
    with pytest.raises(RuntimeError):
        with repo.transaction():
            add_user(repo)
            raise RuntimeError("boom")
    assert repo.paginate(UserFilters()).total == 0


def test_transaction_commits(repo, engine):
    with repo.transaction():
        user = add_user(repo)
        repo.update(user.id, {"last_name": "Roe"})

    with Session(engine) as other:
        assert SqlUserRepository(other).find_by_id(user.id).last_name == "Roe"


def test_insert_sets_timestamps_through_model(repo):
    user = add_user(repo)
    assert user.created_at is not None
    assert user.updated_at is not None
    assert utcnow().tzinfo is not None

    repo.soft_delete(user.id)
    assert repo.find_by_id(user.id, include_deleted=True).deleted_at is not None
