"""Tests for the variant stores (SQL and in-memory run the same tests)."""
import pytest
from sqlalchemy.exc import IntegrityError
from content_variants.exceptions import AssignmentConflictError, IntegrityViolationError
from content_variants.schemas import ContentUpdate, VariantCreate
from content_variants.store.sql import SqlVariantStore
from conftest import TickingClock, force_default_flags, make_content_data


def defaults_of(store, content_id):
    return [v.id for v in store.list_variants(content_id) if v.is_default]


def test_create_content_makes_first_variant_default(store):
    content = store.create_content(make_content_data(variant_count=3))

    assert content.variant_count == 3
    assert [v.is_default for v in content.variants] == [True, False, False]
    assert store.get_default_variant(content.id).id == content.variants[0].id


def test_create_content_keeps_flagged_default(store):
    content = store.create_content(make_content_data(default_index=1))

    assert defaults_of(store, content.id) == [content.variants[1].id]


def test_create_content_rejects_two_defaults(store):
    data = make_content_data()
    for v in data.variants:
        v.is_default = True

    with pytest.raises(ValueError):
        store.create_content(data)
    assert store.list_contents() == []


def test_list_and_update_content(store):
    first = store.create_content(make_content_data(language="en"))
    store.create_content(make_content_data(language="tr"))

    assert [c.language for c in store.list_contents()] == ["en", "tr"]
    assert len(store.list_contents("tr")) == 1

    updated = store.update_content(first.id, ContentUpdate(
        title="Renamed banner",
        description="Banner shown on top of the homepage",
        language="tr",
    ))
    assert updated.title == "Renamed banner"
    assert updated.updated_at is not None
    # editing the content never touches default flags
    assert defaults_of(store, first.id) == [first.variants[0].id]
    assert len(store.list_contents("tr")) == 2
    assert store.update_content(9999, ContentUpdate(
        title="Nothing here",
        description="No such content exists at all",
        language="en",
    )) is None


def test_set_default_variant_switches_single_default(store, sample_content):
    v1, v2 = sample_content.variants

    assert store.set_default_variant(sample_content.id, v2.id) is True
    assert defaults_of(store, sample_content.id) == [v2.id]

    # setting it again is a no-op
    assert store.set_default_variant(sample_content.id, v2.id) is True
    assert defaults_of(store, sample_content.id) == [v2.id]


def test_set_default_variant_rejects_foreign_variant(store, sample_content):
    other = store.create_content(make_content_data())

    assert store.set_default_variant(sample_content.id, other.variants[1].id) is False
    assert store.set_default_variant(sample_content.id, 9999) is False
    assert defaults_of(store, sample_content.id) == [sample_content.variants[0].id]
    assert defaults_of(store, other.id) == [other.variants[0].id]


def test_add_default_variant_demotes_previous(store, sample_content):
    added = store.add_variant(sample_content.id, VariantCreate(data="brand new default copy", is_default=True))

    assert added.is_default is True
    assert defaults_of(store, sample_content.id) == [added.id]


def test_add_plain_variant_keeps_default(store, sample_content):
    added = store.add_variant(sample_content.id, VariantCreate(data="yet another variant copy"))

    assert added.is_default is False
    assert defaults_of(store, sample_content.id) == [sample_content.variants[0].id]
    assert len(store.list_variants(sample_content.id)) == 3


def test_add_variant_adopts_default_when_missing(store, sample_content):
    force_default_flags(store, sample_content.id, [])

    added = store.add_variant(sample_content.id, VariantCreate(data="rescue default variant"))

    assert defaults_of(store, sample_content.id) == [added.id]


def test_add_variant_unknown_content(store):
    assert store.add_variant(9999, VariantCreate(data="orphan variant payload")) is None


def test_get_default_variant_detects_two_defaults(store, sample_content):
    force_default_flags(store, sample_content.id, [v.id for v in sample_content.variants])

    with pytest.raises(IntegrityViolationError):
        store.get_default_variant(sample_content.id)


def test_create_assignment_is_unique_per_user_and_content(store, sample_content):
    v1, v2 = sample_content.variants
    created = store.create_assignment("u1", sample_content.id, v1.id)

    assert created.view_count == 1
    assert created.first_viewed_at == created.last_accessed_at

    with pytest.raises(AssignmentConflictError):
        store.create_assignment("u1", sample_content.id, v2.id)

    # store still usable after the conflict, and the original row won
    assignment = store.get_assignment("u1", sample_content.id)
    assert assignment.variant_id == v1.id
    assert assignment.view_count == 1


def test_sql_create_assignment_only_reports_real_conflicts(db):
    store = SqlVariantStore(db, clock=TickingClock())
    content = store.create_content(make_content_data())

    # NOT NULL failure, nobody holds the (user, content) pair
    with pytest.raises(IntegrityError):
        store.create_assignment("u1", content.id, None)

    assert store.get_assignment("u1", content.id) is None
    created = store.create_assignment("u1", content.id, content.variants[0].id)
    assert created.view_count == 1


def test_touch_assignment(store, sample_content):
    v1 = sample_content.variants[0]
    assert store.touch_assignment("u1", sample_content.id) is None

    created = store.create_assignment("u1", sample_content.id, v1.id)
    touched = store.touch_assignment("u1", sample_content.id)

    assert touched.view_count == 2
    assert touched.variant_id == v1.id
    assert touched.first_viewed_at == created.first_viewed_at
    assert touched.last_accessed_at > created.last_accessed_at


def test_upsert_assignment_never_changes_variant(store, sample_content):
    v1, v2 = sample_content.variants

    first = store.upsert_assignment("u1", sample_content.id, v1.id)
    second = store.upsert_assignment("u1", sample_content.id, v2.id)

    assert first.view_count == 1
    assert second.view_count == 2
    assert second.variant_id == v1.id


def test_user_history_most_recent_first(store, sample_content):
    other = store.create_content(make_content_data())
    store.create_assignment("u1", sample_content.id, sample_content.variants[0].id)
    store.create_assignment("u1", other.id, other.variants[0].id)
    store.create_assignment("u2", other.id, other.variants[0].id)

    store.touch_assignment("u1", sample_content.id)
    history = store.get_user_history("u1")

    assert [h.content_id for h in history] == [sample_content.id, other.id]
    assert history[0].content_title == sample_content.title
    assert history[0].variant_data == sample_content.variants[0].data
    assert store.get_user_history("nobody") == []


def test_delete_content_cascades(store, sample_content):
    store.create_assignment("u1", sample_content.id, sample_content.variants[0].id)

    assert store.delete_content(sample_content.id) is True
    assert store.get_content(sample_content.id) is None
    assert store.list_variants(sample_content.id) == []
    assert store.get_variant(sample_content.variants[0].id) is None
    assert store.get_assignment("u1", sample_content.id) is None
    assert store.delete_content(sample_content.id) is False


def test_delete_user_history(store, sample_content):
    store.create_assignment("u1", sample_content.id, sample_content.variants[0].id)
    store.create_assignment("u2", sample_content.id, sample_content.variants[0].id)

    assert store.delete_user_history("u1") == 1
    assert store.get_assignment("u1", sample_content.id) is None
    assert store.get_assignment("u2", sample_content.id) is not None
