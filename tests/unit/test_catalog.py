from __future__ import annotations

from pathlib import Path

import pytest

from officeholder_import.models import JurisdictionRef, JurisdictionType
from officeholder_import.services.catalog import (
    CatalogError,
    InMemoryJurisdictionDirectory,
    JurisdictionNotFound,
    ReferenceCatalog,
    load_catalog_from_yaml,
)


def test_find_position_and_party_case_insensitive(catalog: ReferenceCatalog):
    assert catalog.find_position("  city mayor ").id == "pos-mayor"
    assert catalog.find_party("liberal party").id == "party-lp"
    assert catalog.find_position("Mayor") is None
    assert catalog.find_party("") is None


def test_lookup_by_id(catalog: ReferenceCatalog):
    assert catalog.position_by_id("pos-governor").name == "Governor"
    assert catalog.party_by_id("party-nup").abbreviation == "NUP"
    assert catalog.party_by_id(None) is None


def test_national_lookup_does_not_hit_directory():
    class ExplodingDirectory:
        def lookup(self, jurisdiction_type, name):
            raise AssertionError("directory must not be called for national")

    catalog = ReferenceCatalog([], [], ExplodingDirectory())
    assert catalog.lookup_jurisdiction(JurisdictionType.NATIONAL, "") == JurisdictionRef.national()


def test_jurisdiction_lookup_and_not_found(catalog: ReferenceCatalog):
    ref = catalog.lookup_jurisdiction(JurisdictionType.CITY, "makati city")
    assert ref.id == "city-makati"
    assert ref.name == "Makati City"
    with pytest.raises(JurisdictionNotFound) as exc:
        catalog.lookup_jurisdiction(JurisdictionType.CITY, "Cebu")  # province 名であって city ではない
    assert isinstance(exc.value, LookupError)


def test_directory_keeps_first_duplicate():
    directory = InMemoryJurisdictionDirectory({JurisdictionType.REGION: [("r1", "NCR"), ("r2", "ncr")]})
    assert directory.lookup(JurisdictionType.REGION, "NCR").id == "r1"
    assert directory.names(JurisdictionType.REGION) == ["NCR"]


def test_duplicate_position_names_keep_first():
    from officeholder_import.models import Position

    dup = ReferenceCatalog([Position("a", "Mayor"), Position("b", "MAYOR")], [], InMemoryJurisdictionDirectory())
    assert dup.find_position("mayor").id == "a"
    assert dup.position_names() == ["Mayor", "MAYOR"]


def test_load_catalog_from_yaml(tmp_path: Path, reference_yaml: str):
    path = tmp_path / "reference.yml"
    path.write_text(reference_yaml, encoding="utf-8")
    catalog = load_catalog_from_yaml(path)
    assert catalog.find_position("Vice Governor").level == "provincial"
    assert catalog.find_party("PDP-LABAN").abbreviation == "PDP"
    assert catalog.lookup_jurisdiction(JurisdictionType.PROVINCE, "Bohol").id == "prov-bohol"


def test_load_catalog_missing_file(tmp_path: Path):
    with pytest.raises(CatalogError, match="not found"):
        load_catalog_from_yaml(tmp_path / "nope.yml")


def test_load_catalog_unknown_jurisdiction_type(tmp_path: Path):
    path = tmp_path / "bad.yml"
    path.write_text("jurisdictions:\n  county:\n    - {id: c1, name: Orange}\n", encoding="utf-8")
    with pytest.raises(CatalogError, match="county"):
        load_catalog_from_yaml(path)


def test_load_catalog_malformed_entry(tmp_path: Path):
    path = tmp_path / "bad.yml"
    path.write_text("positions:\n  - {name: Governor}\n", encoding="utf-8")
    with pytest.raises(CatalogError, match="malformed"):
        load_catalog_from_yaml(path)
