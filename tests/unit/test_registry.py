from __future__ import annotations

from datetime import date

import pytest

from officeholder_import.models import ENDED_REASON_REPLACED, JurisdictionRef, JurisdictionType
from officeholder_import.services.registry import InMemoryRegistry, RegistryError

CEBU = JurisdictionRef(type=JurisdictionType.PROVINCE, id="prov-cebu", name="Cebu")


def test_create_and_get_current(registry: InMemoryRegistry):
    p = registry.create_politician("Juan Dela Cruz")
    a = registry.create_assignment(p.id, "pos-governor", CEBU, date(2022, 6, 30), party_id="party-lp")
    assert registry.get_current("pos-governor", CEBU) == a
    assert registry.get_current("pos-governor", JurisdictionRef(JurisdictionType.PROVINCE, "prov-bohol")) is None
    assert registry.list_current() == [a]


def test_second_current_holder_is_rejected(registry: InMemoryRegistry):
    a = registry.create_politician("A")
    b = registry.create_politician("B")
    registry.create_assignment(a.id, "pos-governor", CEBU, date(2022, 6, 30))
    with pytest.raises(RegistryError, match="already has a current holder"):
        registry.create_assignment(b.id, "pos-governor", CEBU, date(2023, 1, 1))


def test_close_assignment(registry: InMemoryRegistry):
    p = registry.create_politician("A")
    a = registry.create_assignment(p.id, "pos-governor", CEBU, date(2022, 6, 30))
    registry.close_assignment(a.id, date(2023, 1, 1), ENDED_REASON_REPLACED)
    assert registry.get_current("pos-governor", CEBU) is None
    (closed,) = registry.history("pos-governor", CEBU)
    assert not closed.is_current
    assert closed.term_end == date(2023, 1, 1)
    assert closed.ended_reason == "replaced"
    with pytest.raises(RegistryError, match="already closed"):
        registry.close_assignment(a.id, date(2023, 1, 1), ENDED_REASON_REPLACED)


def test_atomic_rolls_back_on_error(registry: InMemoryRegistry):
    p = registry.create_politician("A")
    a = registry.create_assignment(p.id, "pos-governor", CEBU, date(2022, 6, 30))
    with pytest.raises(RegistryError):
        with registry.atomic():
            registry.close_assignment(a.id, date(2023, 1, 1), ENDED_REASON_REPLACED)
            registry.create_assignment("missing-politician", "pos-governor", CEBU, date(2023, 1, 2))
    assert registry.get_current("pos-governor", CEBU) == a


def test_nested_atomic_inner_rollback_keeps_outer(registry: InMemoryRegistry):
    with registry.atomic():
        outer = registry.create_politician("Outer")
        with pytest.raises(ValueError):
            with registry.atomic():
                registry.create_politician("Inner")
                raise ValueError("boom")
    assert registry.get_politician(outer.id) is not None
    assert registry.find_politician("Inner", None) is None


def test_find_politician_identity_rule(registry: InMemoryRegistry):
    undated = registry.create_politician("Maria  Santos")
    dated = registry.create_politician("Maria Santos", birth_date=date(1970, 1, 1))
    assert registry.find_politician("maria santos", date(1970, 1, 1)) == dated
    # 生年月日不明なら同名の誰とでも一致
    assert registry.find_politician("MARIA SANTOS", None) in (undated, dated)
    assert registry.find_politician("Maria Santos", date(1980, 5, 5)) == undated
    assert registry.find_politician("Mario Santos", None) is None


def test_update_unknown_records(registry: InMemoryRegistry):
    with pytest.raises(RegistryError):
        registry.update_politician("nope", birth_date=None, photo_url=None, short_bio=None)
    with pytest.raises(RegistryError):
        registry.update_assignment("nope", term_start=date(2020, 1, 1), term_end=None, party_id=None)


def test_seeded_copy_holds_current_assignments_only(registry: InMemoryRegistry):
    old = registry.create_politician("A", birth_date=date(1960, 1, 1))
    new = registry.create_politician("B")
    registry.create_politician("Never Served")
    first = registry.create_assignment(old.id, "pos-governor", CEBU, date(2016, 6, 30))
    registry.close_assignment(first.id, date(2019, 6, 29), ENDED_REASON_REPLACED)
    current = registry.create_assignment(new.id, "pos-governor", CEBU, date(2019, 6, 30))

    copy = InMemoryRegistry.seeded_from(registry)
    assert copy.list_current() == [current]
    assert copy.get_politician(new.id) == new
    assert copy.get_politician(old.id) is None
    assert copy.find_politician("Never Served", None) is None

    copy.close_assignment(current.id, date(2022, 6, 29), ENDED_REASON_REPLACED)
    assert registry.get_current("pos-governor", CEBU) == current
