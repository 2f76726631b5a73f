"""Tests for filter expression tokenizing and resolution."""

import pytest

from drivemap.errors import DirectoryError
from drivemap.filters.resolver import FilterResolver, OfflineDirectory, tokenize
from drivemap.models.drive_map import FilterGroup, FilterOrgUnit, OrgUnitRef, PrincipalRef


def test_tokenize_empty():
    assert tokenize("") == []
    assert tokenize(None) == []


def test_tokenize_principal():
    assert tokenize("CORP\\Finance-Users") == [PrincipalRef(domain="CORP", name="Finance-Users")]


def test_tokenize_org_unit():
    tokens = tokenize("OU=Sales,DC=corp,DC=local")
    assert tokens == [OrgUnitRef(distinguished_name="OU=Sales,DC=corp,DC=local")]


def test_tokenize_nested_org_unit_with_spaces():
    tokens = tokenize("OU=North Region,OU=Sales Team,DC=corp,DC=local")
    assert tokens == [
        OrgUnitRef(distinguished_name="OU=North Region,OU=Sales Team,DC=corp,DC=local")
    ]


def test_tokenize_mixed_principals_first():
    expression = "OU=Sales,DC=corp,DC=local; CORP\\Finance-Users CORP\\HR"
    tokens = tokenize(expression)
    assert tokens == [
        PrincipalRef(domain="CORP", name="Finance-Users"),
        PrincipalRef(domain="CORP", name="HR"),
        OrgUnitRef(distinguished_name="OU=Sales,DC=corp,DC=local"),
    ]


def test_tokenize_ignores_free_text():
    assert tokenize("everyone in finance") == []


def test_resolve_principal(directory):
    resolver = FilterResolver(directory)
    principals, org_units = resolver.resolve("CORP\\Finance-Users")
    assert org_units == []
    assert len(principals) == 1
    group = principals[0]
    assert isinstance(group, FilterGroup)
    assert group.name == "CORP\\Finance-Users"
    assert group.sid == "S-1-5-21-1004336348-1177238915-682003330-1105"
    assert group.bool_op == "OR"
    assert group.negate is False
    assert group.user_context is True
    assert group.primary_group is False
    assert group.local_group is False


def test_resolve_org_unit(directory):
    resolver = FilterResolver(directory)
    principals, org_units = resolver.resolve("OU=Sales,DC=corp,DC=local")
    assert principals == []
    assert len(org_units) == 1
    ou = org_units[0]
    assert isinstance(ou, FilterOrgUnit)
    assert ou.name == "OU=Sales,DC=corp,DC=local"
    assert ou.bool_op == "OR"
    assert ou.negate is False
    assert ou.user_context is True
    assert ou.direct_member is False


def test_unresolved_tokens_are_dropped(directory):
    resolver = FilterResolver(directory)
    principals, org_units = resolver.resolve("CORP\\Nobody OU=Ghost,DC=corp,DC=local")
    assert principals == []
    assert org_units == []


def test_outcomes_report_unresolved(directory):
    resolver = FilterResolver(directory)
    principals, org_units, outcomes = resolver.resolve_with_outcomes(
        "CORP\\Finance-Users CORP\\Nobody OU=Sales,DC=corp,DC=local"
    )
    assert len(principals) == 1
    assert len(org_units) == 1
    assert [o.resolved for o in outcomes] == [True, False, True]
    assert outcomes[1].token == PrincipalRef(domain="CORP", name="Nobody")
    assert outcomes[1].detail == "principal not found"


def test_offline_directory_resolves_nothing():
    resolver = FilterResolver(OfflineDirectory())
    principals, org_units, outcomes = resolver.resolve_with_outcomes("CORP\\HR OU=Sales,DC=corp,DC=local")
    assert principals == []
    assert org_units == []
    assert len(outcomes) == 2
    assert not any(o.resolved for o in outcomes)


def test_directory_failure_propagates(directory):
    def unreachable(distinguished_name):
        raise DirectoryError("Directory search under OU=Sales,DC=corp,DC=local failed")

    directory.find_org_unit = unreachable
    with pytest.raises(DirectoryError):
        FilterResolver(directory).resolve("CORP\\Finance-Users OU=Sales,DC=corp,DC=local")
