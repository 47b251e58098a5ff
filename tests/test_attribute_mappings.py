"""
Tests for the schema catalog and the attribute-to-column rule table.

Pure functions only: no database, no text generator.
"""

import pytest

from matchsql.catalog import (
    ATTRIBUTE_MAPPINGS,
    ROOT_ALIAS,
    SCHEMA_METADATA,
    JoinSpec,
    SqlDialect,
    ValueTransform,
    create_table_ddl,
    default_context_tables,
    get_mapping,
    get_table,
    get_table_by_alias,
    normalize_attribute,
    render_predicate,
)
from matchsql.catalog.attribute_mappings import join_for, parse_numeric_range, stated_numbers


# =============================================================================
# CATALOG
# =============================================================================

class TestSchemaCatalog:
    """Catalog lookups and DDL."""

    def test_root_table_is_first(self):
        assert SCHEMA_METADATA[0].table_name == "profiles"
        assert SCHEMA_METADATA[0].alias == ROOT_ALIAS

    def test_aliases_are_unique(self):
        aliases = [t.alias for t in SCHEMA_METADATA]
        assert len(aliases) == len(set(aliases))

    def test_lookup_by_name_and_alias(self):
        assert get_table("CAREER_DETAILS").alias == "c"
        assert get_table_by_alias("pl").table_name == "profile_locations"
        assert get_table("no_such_table") is None

    def test_default_context_is_first_k(self):
        tables = default_context_tables(3)
        assert [t.table_name for t in tables] == [t.table_name for t in SCHEMA_METADATA[:3]]

    def test_ddl_maps_serial_to_integer_primary_key(self):
        ddl = create_table_ddl(get_table("profiles"))
        assert ddl.startswith("CREATE TABLE IF NOT EXISTS profiles (")
        assert "profile_id INTEGER PRIMARY KEY" in ddl
        assert "SERIAL" not in ddl


# =============================================================================
# MAPPING INVARIANTS
# =============================================================================

class TestMappingTable:
    """Every mapping points at real catalog columns and joins on key pairs only."""

    @pytest.mark.parametrize("attribute", sorted(ATTRIBUTE_MAPPINGS))
    def test_columns_exist_in_catalog(self, attribute):
        mapping = ATTRIBUTE_MAPPINGS[attribute]
        for column in mapping.columns:
            alias, name = column.split(".", 1)
            table = get_table_by_alias(alias)
            assert table is not None, f"{attribute}: unknown alias {alias}"
            assert table.has_column(name), f"{attribute}: {table.table_name} has no {name}"

    @pytest.mark.parametrize("attribute", sorted(ATTRIBUTE_MAPPINGS))
    def test_join_is_key_pair_from_root(self, attribute):
        mapping = ATTRIBUTE_MAPPINGS[attribute]
        if mapping.table_alias == ROOT_ALIAS:
            assert mapping.join_requirement is None
            return
        join = mapping.join_requirement
        assert join.on[0] == "p.profile_id"
        assert join.on[1] == f"{mapping.table_alias}.profile_id"
        assert mapping.column_expression not in join.on

    def test_join_spec_rejects_reversed_keys(self):
        with pytest.raises(ValueError):
            JoinSpec(table="career_details", alias="c", on=("c.profile_id", "p.profile_id"))

    @pytest.mark.parametrize("alias", ["u", "us"])
    def test_user_keyed_tables_are_context_only(self, alias):
        assert all(alias not in {c.split(".", 1)[0] for c in m.columns} for m in ATTRIBUTE_MAPPINGS.values())
        with pytest.raises(ValueError):
            join_for(alias)

    def test_join_renders_left_join(self):
        join = get_mapping("profession").join_requirement
        assert join.render() == "LEFT JOIN career_details c ON p.profile_id = c.profile_id"

    def test_origin_and_residence_are_distinct_columns(self):
        assert get_mapping("native_place").table_alias == "f"
        assert get_mapping("city").table_alias == "pl"


class TestNormalizeAttribute:

    @pytest.mark.parametrize("raw,expected", [
        ("location.city", "city"),
        ("income.value", "income"),
        ("Mother Tongue", "mother_tongue"),
        ("occupation", "profession"),
        ("Surname", "last_name"),
        ("hometown", "native_place"),
        ("favourite_colour", "favourite_colour"),
    ])
    def test_normalization(self, raw, expected):
        assert normalize_attribute(raw) == expected

    def test_unknown_attribute_has_no_mapping(self):
        assert get_mapping("favourite_colour") is None


# =============================================================================
# PREDICATE RENDERING
# =============================================================================

class TestRenderPredicate:
    """Value transforms produce the documented predicate shapes."""

    def test_exact_uses_canonical_value(self):
        assert render_predicate(get_mapping("gender"), "women") == "(LOWER(p.gender) = LOWER('female'))"

    def test_exact_name_ors_over_surname(self):
        assert render_predicate(get_mapping("first_name"), "Neha") == (
            "(LOWER(p.first_name) = LOWER('Neha') OR LOWER(p.last_name) = LOWER('Neha'))"
        )

    def test_substring_ors_alternates_inside_one_group(self):
        assert render_predicate(get_mapping("city"), "Pune") == (
            "(LOWER(pl.city) LIKE LOWER('%Pune%') OR LOWER(pl.state) LIKE LOWER('%Pune%'))"
        )

    def test_quotes_are_escaped(self):
        assert "LOWER('D''Souza')" in render_predicate(get_mapping("last_name"), "D'Souza")

    @pytest.mark.parametrize("value", ["15 LPA", "more than 15 LPA", "15 lakh"])
    def test_income_in_lakhs(self, value):
        assert render_predicate(get_mapping("income"), value) == "(c.annual_income >= 1500000)"

    def test_height_in_feet_becomes_cm(self):
        assert render_predicate(get_mapping("height"), "5'8") == "(p.height_cm >= 173)"

    def test_weight_range(self):
        assert render_predicate(get_mapping("weight"), "55-65") == "(p.weight_kg BETWEEN 55 AND 65)"

    def test_age_range_postgres(self):
        assert render_predicate(get_mapping("age"), "25-30", SqlDialect.POSTGRESQL) == (
            "(EXTRACT(YEAR FROM AGE(CURRENT_DATE, p.date_of_birth)) BETWEEN 25 AND 30)"
        )

    def test_age_range_sqlite(self):
        predicate = render_predicate(get_mapping("age"), "between 25 and 30", SqlDialect.SQLITE)
        assert "strftime('%Y', p.date_of_birth)" in predicate
        assert predicate.endswith("BETWEEN 25 AND 30)")

    def test_age_minimum(self):
        assert render_predicate(get_mapping("age"), "40+").endswith(">= 40)")

    @pytest.mark.parametrize("value,flag", [("verified", "TRUE"), ("not verified", "FALSE"), ("unverified", "FALSE")])
    def test_boolean_flag(self, value, flag):
        assert render_predicate(get_mapping("verified"), value) == f"(pc.is_mobile_verified = {flag})"

    def test_transforms_declared(self):
        assert get_mapping("age").value_transform == ValueTransform.DATE_AGE_BETWEEN
        assert get_mapping("income").value_transform == ValueTransform.NUMERIC_GE

    def test_empty_value_rejected(self):
        with pytest.raises(ValueError):
            render_predicate(get_mapping("city"), "  ")

    def test_non_numeric_value_rejected(self):
        with pytest.raises(ValueError):
            render_predicate(get_mapping("income"), "a lot")


class TestParseNumericRange:

    @pytest.mark.parametrize("value,expected", [
        ("25-30", ("range", 25, 30)),
        ("30 to 25", ("range", 25, 30)),
        ("under 30", ("max", None, 30)),
        ("at least 21", ("min", 21, None)),
        ("28", ("single", 28, 28)),
    ])
    def test_kinds(self, value, expected):
        assert parse_numeric_range(value) == expected

    def test_crore(self):
        assert parse_numeric_range("1 crore", "inr") == ("single", 10_000_000, 10_000_000)


class TestStatedNumbers:

    @pytest.mark.parametrize("text,unit,expected", [
        ("earning more than 15 lakhs", "inr", [1_500_000]),
        ("between 12 LPA and 1.5 crore", "inr", [1_200_000, 15_000_000]),
        ("earning 20lacs", "inr", [2_000_000]),
        ("taller than 5'6\"", "cm", [168]),
        ("between 25 and 30", None, [25, 30]),
        ("earning more than 15", "inr", [15]),
    ])
    def test_converted_to_column_unit(self, text, unit, expected):
        assert stated_numbers(text, unit) == expected

    def test_no_numbers(self):
        assert stated_numbers("doctors in Pune", "inr") == []
