"""Tests for the query validator / auto-fixer."""

import pytest

from matchsql.catalog import SqlDialect
from matchsql.models import ErrorKind, ExtractedIntent
from matchsql.orchestrator import AutoFixCounter, JoinIncomplete, SqlValidator, ValidationRejected
from matchsql.orchestrator.sql_validator import dissect, inject_condition, rejection_for, where_clause


@pytest.fixture
def counter():
    return AutoFixCounter()


@pytest.fixture
def validator(counter):
    return SqlValidator(SqlDialect.SQLITE, counter)


def intent_of(*pairs):
    return ExtractedIntent.from_pairs(pairs)


# =============================================================================
# ROOT NORMALIZATION
# =============================================================================

class TestRootNormalization:

    def test_unaliased_root_gets_canonical_alias(self, validator):
        sql = "SELECT profiles.profile_id, profiles.first_name FROM profiles WHERE profiles.gender = 'female' LIMIT 50"
        result = validator.validate(sql)

        assert result.valid
        assert result.fixed
        assert result.fixes == ["root_normalization"]
        assert result.query == (
            "SELECT p.profile_id, p.first_name FROM profiles p WHERE p.gender = 'female' LIMIT 50"
        )

    def test_other_root_alias_is_requalified(self, validator):
        result = validator.validate("SELECT pr.first_name FROM profiles pr WHERE pr.gender = 'male'")
        assert result.valid
        assert result.query == "SELECT p.first_name FROM profiles p WHERE p.gender = 'male'"

    def test_wrong_base_table_becomes_join(self, validator):
        sql = "SELECT c.profession FROM career_details c WHERE c.profession LIKE '%Doctor%'"
        result = validator.validate(sql)

        assert result.valid
        assert result.query == (
            "SELECT c.profession FROM profiles p LEFT JOIN career_details c ON p.profile_id = c.profile_id "
            "WHERE c.profession LIKE '%Doctor%'"
        )

    def test_wrong_base_with_root_join_drops_duplicate(self, validator):
        sql = (
            "SELECT pr.first_name, c.profession FROM career_details c "
            "JOIN profiles pr ON c.profile_id = pr.profile_id WHERE c.profession LIKE '%Lawyer%'"
        )
        result = validator.validate(sql)

        assert result.valid
        assert "FROM profiles p LEFT JOIN career_details c ON p.profile_id = c.profile_id" in result.query
        assert "JOIN profiles" not in result.query
        assert "p.first_name" in result.query

    def test_literals_are_not_requalified(self, validator):
        result = validator.validate("SELECT profiles.first_name FROM profiles WHERE profiles.last_name = 'profiles.x'")
        assert result.query.endswith("= 'profiles.x'")

    def test_lookup_table_base_is_rejected(self, validator):
        result = validator.validate("SELECT mr.name FROM master_religions mr")
        assert not result.valid
        assert result.error == ErrorKind.MISSING_BASE_ENTITY

    def test_no_from_is_rejected(self, validator):
        result = validator.validate("SELECT 1 AS one")
        assert result.error == ErrorKind.MISSING_BASE_ENTITY

    def test_empty_query(self, validator):
        result = validator.validate("   ")
        assert result.error == ErrorKind.EMPTY_QUERY


# =============================================================================
# PLACEHOLDERS AND SYNTAX
# =============================================================================

class TestPlaceholders:

    def test_substituted_in_intent_order(self, validator):
        sql = (
            "SELECT p.profile_id FROM profiles p "
            "LEFT JOIN career_details c ON p.profile_id = c.profile_id "
            "LEFT JOIN profile_locations pl ON p.profile_id = pl.profile_id "
            "WHERE LOWER(c.profession) LIKE LOWER('%value%') AND LOWER(pl.city) LIKE LOWER('%value%') LIMIT 50"
        )
        result = validator.validate(sql, intent_of(("profession", "doctor"), ("city", "Pune")))

        assert result.valid
        assert result.fixes == ["placeholder_substitution"]
        assert "LIKE LOWER('%doctor%') AND LOWER(pl.city) LIKE LOWER('%Pune%')" in result.query

    def test_bare_value_token(self, validator):
        result = validator.validate(
            "SELECT p.profile_id FROM profiles p WHERE LOWER(p.first_name) = LOWER('value')",
            intent_of(("first_name", "Neha")),
        )
        assert "LOWER('Neha')" in result.query

    def test_no_intent_values_is_hard_fail(self, validator):
        result = validator.validate("SELECT p.profile_id FROM profiles p WHERE p.gender = '<value>'")
        assert not result.valid
        assert result.error == ErrorKind.UNRESOLVED_PLACEHOLDER

    def test_leftover_placeholder_fails(self, validator):
        result = validator.validate(
            "SELECT p.profile_id FROM profiles p WHERE p.gender = '{value}' AND p.mother_tongue = '{value}'",
            intent_of(("gender", "female")),
        )
        assert not result.valid
        assert result.error == ErrorKind.UNRESOLVED_PLACEHOLDER
        # The first placeholder was filled before the residue check
        assert "p.gender = 'female'" in result.query
        assert result.fixed


class TestSyntaxRepair:

    def test_surplus_paren_before_limit(self, validator):
        result = validator.validate("SELECT p.profile_id FROM profiles p WHERE (p.gender = 'female')) LIMIT 50")
        assert result.valid
        assert result.fixes == ["syntax_repair"]
        assert result.query == "SELECT p.profile_id FROM profiles p WHERE (p.gender = 'female') LIMIT 50"

    def test_balanced_paren_kept(self, validator):
        sql = "SELECT p.profile_id FROM profiles p WHERE (p.gender = 'female') LIMIT 50"
        assert validator.validate(sql).query == sql

    def test_semicolon_before_limit(self, validator):
        result = validator.validate("SELECT p.profile_id FROM profiles p WHERE p.gender = 'male'; LIMIT 50")
        assert result.query == "SELECT p.profile_id FROM profiles p WHERE p.gender = 'male' LIMIT 50"


# =============================================================================
# INTENT CONFORMANCE
# =============================================================================

class TestNameAndAgeInjection:

    def test_name_filter_injected(self, validator, counter):
        result = validator.validate(
            "SELECT p.profile_id, p.first_name FROM profiles p LIMIT 50",
            intent_of(("first_name", "Neha")),
        )
        assert result.valid
        assert result.fixes == ["name_injection"]
        assert result.query == (
            "SELECT p.profile_id, p.first_name FROM profiles p WHERE "
            "(LOWER(p.first_name) = LOWER('Neha') OR LOWER(p.last_name) = LOWER('Neha')) LIMIT 50"
        )
        assert counter.snapshot()["injections_by_attribute"] == {"first_name": 1}

    def test_existing_name_filter_kept(self, validator):
        sql = "SELECT p.profile_id FROM profiles p WHERE LOWER(p.first_name) = 'neha'"
        result = validator.validate(sql, intent_of(("first_name", "Neha")))
        assert not result.fixed

    def test_age_filter_anded_into_where(self, validator):
        result = validator.validate(
            "SELECT p.profile_id FROM profiles p WHERE p.gender = 'female' LIMIT 50",
            intent_of(("gender", "female"), ("age", "25-30")),
        )
        assert result.valid
        assert result.fixes == ["age_injection"]
        assert "BETWEEN 25 AND 30) AND (p.gender = 'female') LIMIT 50" in result.query

    def test_age_filter_present(self, validator):
        sql = "SELECT p.profile_id FROM profiles p WHERE p.date_of_birth <= '1999-01-01'"
        assert not validator.validate(sql, intent_of(("age", "25-30"))).fixed

    def test_unparseable_age_is_not_injected(self, validator, counter):
        result = validator.validate("SELECT p.profile_id FROM profiles p", intent_of(("age", "young")))
        assert result.valid
        assert not result.fixed
        assert counter.snapshot()["injections_by_attribute"] == {}

    def test_injected_age_filters_rows(self, validator, gateway):
        result = validator.validate(
            "SELECT p.profile_id FROM profiles p ORDER BY p.profile_id", intent_of(("age", "25-30"))
        )
        assert [r["profile_id"] for r in gateway.run(result.query)] == [2, 3]


# =============================================================================
# JOIN COMPLETENESS
# =============================================================================

class TestJoinCompleteness:

    def test_missing_join_rejected(self, validator):
        sql = "SELECT p.profile_id, c.profession FROM profiles p WHERE c.profession LIKE '%Doctor%' LIMIT 50"
        result = validator.validate(sql)

        assert not result.valid
        assert result.error == ErrorKind.JOIN_INCOMPLETE
        assert not result.fixed
        assert "LEFT JOIN career_details c ON p.profile_id = c.profile_id" in result.message

        rejection = rejection_for(result)
        assert isinstance(rejection, JoinIncomplete)
        assert isinstance(rejection, ValidationRejected)
        assert rejection.alias == "c"

    def test_wrong_key_pair_rejected(self, validator):
        sql = "SELECT p.profile_id FROM profiles p LEFT JOIN career_details c ON p.user_id = c.profile_id"
        rejection = rejection_for(validator.validate(sql))
        assert isinstance(rejection, JoinIncomplete)
        assert rejection.alias == "c"

    def test_reversed_key_pair_accepted(self, validator):
        sql = ("SELECT p.profile_id, pl.city FROM profiles p "
               "LEFT JOIN profile_locations pl ON pl.profile_id = p.profile_id")
        assert validator.validate(sql).valid

    @pytest.mark.parametrize("sql,expected", [
        ("SELECT p.profile_id FROM profiles p WHERE p.profile_id IN "
         "(SELECT c.profile_id FROM career_details c WHERE LOWER(c.profession) LIKE LOWER('%doctor%')) "
         "ORDER BY p.profile_id LIMIT 50", [1, 4, 8]),
        ("SELECT p.profile_id FROM profiles p WHERE EXISTS "
         "(SELECT 1 FROM social_background sb WHERE sb.profile_id = p.profile_id "
         "AND LOWER(sb.religion) = LOWER('Christian')) LIMIT 50", [5]),
        ("SELECT p.profile_id FROM profiles p WHERE p.profile_id IN "
         "(SELECT c.profile_id FROM career_details c JOIN profile_locations pl ON c.profile_id = pl.profile_id "
         "WHERE pl.city = 'Pune' AND c.profession = 'Doctor') LIMIT 50", [1]),
    ])
    def test_subquery_aliases_are_declared(self, validator, gateway, sql, expected):
        result = validator.validate(sql)

        assert result.valid
        assert not result.fixed
        assert [r["profile_id"] for r in gateway.run(result.query)] == expected

    def test_subquery_does_not_declare_outer_aliases(self, validator):
        sql = ("SELECT p.profile_id FROM profiles p WHERE pl.city = 'Pune' AND p.profile_id IN "
               "(SELECT c.profile_id FROM career_details c) LIMIT 50")
        result = validator.validate(sql)

        assert result.error == ErrorKind.JOIN_INCOMPLETE
        assert rejection_for(result).alias == "pl"

    def test_join_is_never_auto_fixed(self, validator, counter):
        validator.validate("SELECT p.profile_id FROM profiles p WHERE sb.religion = 'Hindu'")
        snapshot = counter.snapshot()
        assert snapshot["fixes_by_rule"] == {}
        assert snapshot["rejections_by_kind"] == {"join_incomplete": 1}


# =============================================================================
# IDEMPOTENCE AND HELPERS
# =============================================================================

class TestIdempotence:

    @pytest.mark.parametrize("sql,pairs", [
        ("SELECT profiles.first_name FROM profiles WHERE profiles.gender = 'female' LIMIT 50", ()),
        ("SELECT c.profession FROM career_details c WHERE c.profession LIKE '%value%'", (("profession", "doctor"),)),
        ("SELECT p.profile_id FROM profiles p WHERE (p.gender = 'male')) LIMIT 50", (("age", "30-35"),)),
        ("SELECT p.profile_id FROM profiles p", (("first_name", "Neha"), ("age", "25-30"))),
    ])
    def test_second_pass_reports_no_fix(self, validator, sql, pairs):
        intent = intent_of(*pairs)
        first = validator.validate(sql, intent)
        assert first.valid and first.fixed

        second = validator.validate(first.query, intent)
        assert second.valid
        assert not second.fixed
        assert second.query == first.query


class TestHelpers:

    def test_where_clause(self):
        assert where_clause("SELECT p.a FROM profiles p WHERE p.b = 1 LIMIT 5") == "p.b = 1"
        assert where_clause("SELECT p.a FROM profiles p") is None

    def test_inject_without_where(self):
        assert inject_condition("SELECT p.a FROM profiles p ORDER BY p.a", "(x = 1)") == (
            "SELECT p.a FROM profiles p WHERE (x = 1) ORDER BY p.a"
        )

    def test_inject_at_end_keeps_terminator(self):
        assert inject_condition("SELECT p.a FROM profiles p;", "(x = 1)") == "SELECT p.a FROM profiles p WHERE (x = 1);"

    def test_dissect(self):
        anatomy = dissect(
            "SELECT p.profile_id, c.profession FROM profiles p "
            "LEFT JOIN career_details c ON p.profile_id = c.profile_id WHERE c.profession = 'x.y'"
        )
        assert anatomy.base_table == "profiles"
        assert anatomy.base_alias == "p"
        assert anatomy.joins[0].on == ("p.profile_id", "c.profile_id")
        assert anatomy.referenced_aliases == {"p", "c"}
