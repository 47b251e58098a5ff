"""
Static schema catalog for the matrimonial profile database.

PURPOSE:
========
Every other component consults this table: the deterministic builder for
aliases and join keys, the validator for join-completeness, the schema
context provider for embedding text, and the synthesizer prompts for the
table/column descriptions. It is read-only and shared between requests.

CONVENTIONS:
============
- `profiles p` is the root entity; its primary key is `profile_id`.
- Every auxiliary table has one canonical alias and one required join
  key pair `(root side, joined side)`, e.g. `("p.profile_id", "pl.profile_id")`.
- Lookup tables (master_*) have no join to the root and are listed for
  context only.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ColumnMeta:
    """A column with its SQL type and an optional filter/display hint."""
    name: str
    data_type: str
    hint: str = ""


@dataclass(frozen=True)
class TableMeta:
    """A catalog entity: table, canonical alias, join keys and columns."""
    table_name: str
    alias: str
    module_name: str
    description: str
    columns: Tuple[ColumnMeta, ...]
    join_on: Optional[Tuple[str, str]] = None
    intent_keywords: str = ""

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def has_column(self, name: str) -> bool:
        return name.lower() in (c.name.lower() for c in self.columns)


def _cols(*specs) -> Tuple[ColumnMeta, ...]:
    return tuple(ColumnMeta(*spec) for spec in specs)


ROOT_TABLE = "profiles"
ROOT_ALIAS = "p"
ROOT_KEY = "profile_id"


# ============================================================
# CATALOG
# ============================================================
# Ordered by how often the tables answer profile questions; the first
# entries double as the default schema context.

SCHEMA_METADATA: Tuple[TableMeta, ...] = (
    TableMeta(
        table_name="profiles",
        alias="p",
        module_name="Core",
        description=(
            "Primary table for matrimonial profiles. Always the base of a query "
            "(FROM profiles p). Primary key is profile_id; there is no column named id. "
            "Mother tongue lives here, not in profile_languages."
        ),
        intent_keywords=(
            "first name, last name, name, gender, male, female, height, weight, age, "
            "date of birth, marital status, never married, divorced, widowed, mother tongue"
        ),
        columns=_cols(
            ("profile_id", "SERIAL", "Primary key. Join ON p.profile_id = <alias>.profile_id."),
            ("user_id", "INTEGER", "FK to users; only for account questions."),
            ("first_name", "VARCHAR(100)", "Filter/display: LOWER(p.first_name) = LOWER('value')."),
            ("last_name", "VARCHAR(100)", "Filter/display: surname."),
            ("gender", "VARCHAR(10)", "Filter/display: male, female."),
            ("date_of_birth", "DATE", "Filter/display: derive age from this, never compare raw."),
            ("height_cm", "INTEGER", "Filter/display: height in cm."),
            ("weight_kg", "INTEGER", "Filter/display: weight in kg."),
            ("marital_status", "VARCHAR(50)", "Filter/display: Never Married, Divorced, Widowed."),
            ("mother_tongue", "VARCHAR(100)", "Filter/display: first language."),
        ),
    ),
    TableMeta(
        table_name="profile_locations",
        alias="pl",
        module_name="Core",
        description=(
            "Current residence per profile: city, state, country. Use for 'in Pune', "
            "'lives in Mumbai', 'based in'. Not for native place or origin."
        ),
        intent_keywords="city, location, state, country, Mumbai, Pune, Delhi, Bangalore, lives in, current residence",
        join_on=("p.profile_id", "pl.profile_id"),
        columns=_cols(
            ("loc_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("country", "VARCHAR(100)", "Filter/display: country name."),
            ("state", "VARCHAR(100)", "Filter/display: state name."),
            ("city", "VARCHAR(100)", "Filter/display: city name."),
            ("zip_code", "VARCHAR(20)", "Display: postal code."),
            ("residency_status", "VARCHAR(50)", "Filter/display: Citizen, Work Permit."),
        ),
    ),
    TableMeta(
        table_name="career_details",
        alias="c",
        module_name="Core",
        description=(
            "Job and career per profile: profession, company, annual income, work location. "
            "Use for doctor, engineer, lawyer, salary, LPA questions."
        ),
        intent_keywords="profession, job, occupation, engineer, doctor, lawyer, teacher, salary, income, LPA, earning, company",
        join_on=("p.profile_id", "c.profile_id"),
        columns=_cols(
            ("career_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("profession", "VARCHAR(255)", "Filter/display: substring match on job title."),
            ("company_name", "VARCHAR(255)", "Filter/display: employer."),
            ("annual_income", "NUMERIC(15,2)", "Filter/display: rupees per year (10 LPA = 1000000)."),
            ("currency", "VARCHAR(10)", "Display: INR, USD."),
            ("work_location", "VARCHAR(255)", "Filter/display: where they work."),
        ),
    ),
    TableMeta(
        table_name="education_details",
        alias="ed",
        module_name="Core",
        description="Education per profile: degree type, specialization, college, passing year.",
        intent_keywords="education, degree, qualification, MBA, B.Tech, MBBS, college, university, specialization",
        join_on=("p.profile_id", "ed.profile_id"),
        columns=_cols(
            ("edu_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("degree_type", "VARCHAR(255)", "Filter/display: UG, PG, MBA, MBBS."),
            ("specialization", "VARCHAR(255)", "Filter/display: field of study."),
            ("college_university", "VARCHAR(255)", "Filter/display: institution."),
            ("passing_year", "INTEGER", "Filter/display: year passed."),
        ),
    ),
    TableMeta(
        table_name="social_background",
        alias="sb",
        module_name="Core",
        description="Religion and caste per profile: religion, caste, sub_caste, gothra, sect.",
        intent_keywords="religion, caste, community, sub caste, Brahmin, Rajput, Hindu, Muslim, Christian, Sikh, Jain, gothra",
        join_on=("p.profile_id", "sb.profile_id"),
        columns=_cols(
            ("social_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("religion", "VARCHAR(100)", "Filter/display: religion name."),
            ("caste", "VARCHAR(100)", "Filter/display: caste."),
            ("sub_caste", "VARCHAR(100)", "Filter/display: sub-caste."),
            ("gothra", "VARCHAR(100)", "Display: gothra."),
            ("sect", "VARCHAR(100)", "Filter/display: sect."),
        ),
    ),
    TableMeta(
        table_name="lifestyle_habits",
        alias="lh",
        module_name="Core",
        description="Lifestyle per profile: diet, smoking, drinking. Not in career_details.",
        intent_keywords="diet, vegetarian, non veg, vegan, eggetarian, smoking, drinking, lifestyle",
        join_on=("p.profile_id", "lh.profile_id"),
        columns=_cols(
            ("life_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("diet", "VARCHAR(50)", "Filter/display: Vegetarian, Non-Vegetarian, Vegan."),
            ("smoking", "VARCHAR(50)", "Filter/display: Yes, No, Occasionally."),
            ("drinking", "VARCHAR(50)", "Filter/display: Yes, No, Occasionally."),
        ),
    ),
    TableMeta(
        table_name="family_origin",
        alias="f",
        module_name="Core",
        description=(
            "Native place and ancestral origin per profile. Use for 'originally from', "
            "'hails from', 'native of'. Not for current residence."
        ),
        intent_keywords="originally from, native place, hails from, ancestral origin, hometown",
        join_on=("p.profile_id", "f.profile_id"),
        columns=_cols(
            ("origin_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("native_place", "VARCHAR(255)", "Filter/display: native town or city."),
            ("ancestral_origin", "VARCHAR(255)", "Filter/display: ancestral region."),
        ),
    ),
    TableMeta(
        table_name="user_horoscopes",
        alias="uh",
        module_name="Astrology",
        description="Astrology per profile: place and time of birth, rashi, nakshatra, manglik status.",
        intent_keywords="manglik, non manglik, horoscope, rashi, nakshatra, place of birth, born in",
        join_on=("p.profile_id", "uh.profile_id"),
        columns=_cols(
            ("horo_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("place_of_birth", "VARCHAR(255)", "Filter/display: birth place."),
            ("time_of_birth", "TIME"),
            ("rashi", "VARCHAR(100)", "Filter/display: moon sign."),
            ("nakshatra", "VARCHAR(100)", "Filter/display: birth star."),
            ("manglik_status", "VARCHAR(50)", "Filter/display: Manglik, Non-Manglik, Anshik."),
            ("horoscope_url", "TEXT"),
        ),
    ),
    TableMeta(
        table_name="profile_contacts",
        alias="pc",
        module_name="Core",
        description="Contact details per profile: mobile, WhatsApp, and whether the mobile is verified.",
        intent_keywords="phone, contact, mobile, whatsapp, verified, verification",
        join_on=("p.profile_id", "pc.profile_id"),
        columns=_cols(
            ("contact_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("mobile_number", "VARCHAR(20)", "Display: phone number."),
            ("alternate_number", "VARCHAR(20)"),
            ("whatsapp_number", "VARCHAR(20)"),
            ("is_mobile_verified", "BOOLEAN", "Filter: verified profiles."),
        ),
    ),
    TableMeta(
        table_name="physical_details",
        alias="pd",
        module_name="Core",
        description="Physical attributes per profile: body type, complexion, blood group, disability.",
        intent_keywords="body type, complexion, fair, wheatish, athletic, slim, blood group, disability",
        join_on=("p.profile_id", "pd.profile_id"),
        columns=_cols(
            ("detail_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("body_type", "VARCHAR(50)", "Filter/display: Slim, Athletic, Average."),
            ("complexion", "VARCHAR(50)", "Filter/display: Fair, Wheatish, Dark."),
            ("blood_group", "VARCHAR(5)", "Filter/display: A+, O-."),
            ("disability", "VARCHAR(255)", "Filter/display: description or None."),
        ),
    ),
    TableMeta(
        table_name="family_details",
        alias="fd",
        module_name="Core",
        description="Family per profile: parents' occupations, siblings, family type, values and status.",
        intent_keywords="family type, joint family, nuclear family, family values, family status, siblings",
        join_on=("p.profile_id", "fd.profile_id"),
        columns=_cols(
            ("family_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("father_occupation", "VARCHAR(255)", "Display: father's job."),
            ("mother_occupation", "VARCHAR(255)", "Display: mother's job."),
            ("number_of_brothers", "INTEGER"),
            ("number_of_sisters", "INTEGER"),
            ("family_type", "VARCHAR(50)", "Filter/display: Joint, Nuclear."),
            ("family_values", "VARCHAR(50)", "Filter/display: Traditional, Moderate, Liberal."),
            ("family_status", "VARCHAR(50)", "Filter/display: Middle Class, Upper Middle."),
        ),
    ),
    TableMeta(
        table_name="profile_languages",
        alias="plang",
        module_name="Core",
        description=(
            "Additional languages spoken per profile (column language_name, not lang_name). "
            "For mother tongue use profiles.mother_tongue. Alias plang, not pl."
        ),
        intent_keywords="languages spoken, speaks, fluent in, proficiency",
        join_on=("p.profile_id", "plang.profile_id"),
        columns=_cols(
            ("lang_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("language_name", "VARCHAR(100)", "Filter/display: language."),
            ("proficiency_level", "VARCHAR(50)", "Display: Native, Fluent, Basic."),
        ),
    ),
    TableMeta(
        table_name="hobbies",
        alias="h",
        module_name="Core",
        description="Hobbies per profile, one row per hobby.",
        intent_keywords="hobby, hobbies, interests, reading, travel, music, cricket",
        join_on=("p.profile_id", "h.profile_id"),
        columns=_cols(
            ("hobby_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("hobby_name", "VARCHAR(100)", "Filter/display: hobby."),
        ),
    ),
    TableMeta(
        table_name="partner_preferences",
        alias="pp",
        module_name="Core",
        description="What each profile seeks in a partner: age and height bounds, religions, castes, minimum income.",
        intent_keywords="looking for, partner preference, expects, prefers, seeking",
        join_on=("p.profile_id", "pp.profile_id"),
        columns=_cols(
            ("pref_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("min_age", "INTEGER"),
            ("max_age", "INTEGER"),
            ("min_height", "INTEGER"),
            ("max_height", "INTEGER"),
            ("preferred_religions", "TEXT"),
            ("preferred_castes", "TEXT"),
            ("preferred_income_min", "NUMERIC(15,2)"),
        ),
    ),
    TableMeta(
        table_name="religious_values",
        alias="rv",
        module_name="Core",
        description="Religious observance per profile: observance level, hijab and halal preferences.",
        intent_keywords="religious, observance, practicing, hijab, halal",
        join_on=("p.profile_id", "rv.profile_id"),
        columns=_cols(
            ("val_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("observance_level", "VARCHAR(50)", "Filter/display: Very Religious, Moderate."),
            ("hijab_preference", "VARCHAR(50)"),
            ("halal_preference", "BOOLEAN"),
        ),
    ),
    TableMeta(
        table_name="profile_photos",
        alias="ph",
        module_name="Core",
        description="Photos per profile: URL, whether it is the profile picture, approval state.",
        intent_keywords="photo, picture, profile picture, with photo",
        join_on=("p.profile_id", "ph.profile_id"),
        columns=_cols(
            ("photo_id", "SERIAL"),
            ("profile_id", "INTEGER", "FK to profiles; join only."),
            ("photo_url", "TEXT"),
            ("is_profile_picture", "BOOLEAN"),
            ("is_approved", "BOOLEAN"),
            ("uploaded_at", "TIMESTAMP"),
        ),
    ),
    TableMeta(
        table_name="profile_views",
        alias="pv",
        module_name="Core",
        description=(
            "View tracking: viewer_id, viewed_id, viewed_at. For 'most viewed' aggregate "
            "COUNT(*) per viewed_id and order by the count."
        ),
        intent_keywords="most viewed, top viewed, view count, popular profiles",
        join_on=("p.profile_id", "pv.viewed_id"),
        columns=_cols(
            ("id", "SERIAL"),
            ("viewer_id", "INTEGER"),
            ("viewed_id", "INTEGER", "FK to profiles; join only."),
            ("viewed_at", "TIMESTAMP"),
        ),
    ),
    TableMeta(
        table_name="users",
        alias="u",
        module_name="Core",
        description=(
            "User accounts: created_at (registration), is_verified. Reached through "
            "p.user_id = u.user_id; profiles has no created_at."
        ),
        intent_keywords="registered, joined, signup, account, verified account",
        # Context only: keyed on user_id, so no attribute maps to u and join_for rejects it
        join_on=("p.user_id", "u.user_id"),
        columns=_cols(
            ("user_id", "SERIAL"),
            ("email", "VARCHAR(255)"),
            ("created_at", "TIMESTAMP", "Filter: registered since."),
            ("last_login", "TIMESTAMP"),
            ("is_active", "BOOLEAN"),
            ("is_verified", "BOOLEAN"),
        ),
    ),
    TableMeta(
        table_name="user_subscriptions",
        alias="us",
        module_name="Finance",
        description=(
            "Subscription per user: plan_name (Basic, Gold, Platinum), dates, is_active. "
            "Join users u first, then us ON u.user_id = us.user_id."
        ),
        intent_keywords="platinum, gold, premium, subscription, plan, membership",
        # Context only: chained through users, never a JoinSpec from the root
        join_on=("u.user_id", "us.user_id"),
        columns=_cols(
            ("sub_id", "SERIAL"),
            ("user_id", "INTEGER"),
            ("plan_name", "VARCHAR(100)", "Filter/display: Basic, Gold, Platinum."),
            ("start_date", "DATE"),
            ("end_date", "DATE"),
            ("is_active", "BOOLEAN"),
        ),
    ),
    TableMeta(
        table_name="master_religions",
        alias="mr",
        module_name="Lookup",
        description="Lookup of religion names. For a profile's religion use social_background.religion.",
        columns=_cols(("id", "SERIAL"), ("name", "VARCHAR(100)")),
    ),
    TableMeta(
        table_name="master_professions",
        alias="mp",
        module_name="Lookup",
        description="Lookup of profession titles. To filter profiles by profession use career_details.profession.",
        columns=_cols(("id", "SERIAL"), ("category", "VARCHAR(100)"), ("title", "VARCHAR(100)")),
    ),
    TableMeta(
        table_name="master_cities",
        alias="mci",
        module_name="Lookup",
        description="Lookup of cities. To filter profiles by city use profile_locations.city.",
        columns=_cols(
            ("id", "SERIAL"),
            ("city_name", "VARCHAR(100)"),
            ("state_name", "VARCHAR(100)"),
            ("country_name", "VARCHAR(100)"),
        ),
    ),
)


_BY_NAME: Dict[str, TableMeta] = {t.table_name: t for t in SCHEMA_METADATA}
_BY_ALIAS: Dict[str, TableMeta] = {t.alias: t for t in SCHEMA_METADATA}


# ============================================================
# LOOKUPS
# ============================================================

def get_table(table_name: str) -> Optional[TableMeta]:
    """Get catalog entry by table name (case-insensitive)."""
    return _BY_NAME.get(table_name.lower())


def get_table_by_alias(alias: str) -> Optional[TableMeta]:
    """Get catalog entry by canonical alias (case-insensitive)."""
    return _BY_ALIAS.get(alias.lower())


def default_context_tables(k: int = 5) -> List[TableMeta]:
    """The fixed first-K tables used when retrieval yields nothing."""
    return list(SCHEMA_METADATA[:k])


# ============================================================
# RENDERING
# ============================================================

def embedding_text(table: TableMeta) -> str:
    """Text indexed for semantic table retrieval."""
    columns = "; ".join(
        f"{c.name} ({c.data_type})" + (f" - {c.hint}" if c.hint else "")
        for c in table.columns
    )
    parts = [f"{table.table_name} {table.module_name}: {table.description}"]
    if table.intent_keywords:
        parts.append(f"Keywords: {table.intent_keywords}")
    parts.append(f"Columns: {columns}")
    return " ".join(parts)


def render_table_context(table: TableMeta) -> str:
    """Prompt-facing description of one table."""
    lines = [f"TABLE {table.table_name} (alias {table.alias}): {table.description}"]
    for col in table.columns:
        hint = f" -- {col.hint}" if col.hint else ""
        lines.append(f"  - {table.alias}.{col.name} {col.data_type}{hint}")
    if table.join_on:
        lines.append(
            f"  JOIN: LEFT JOIN {table.table_name} {table.alias} "
            f"ON {table.join_on[0]} = {table.join_on[1]}"
        )
    return "\n".join(lines)


def create_table_ddl(table: TableMeta) -> str:
    """
    Render a CREATE TABLE statement for a catalog entry.

    SERIAL columns become INTEGER PRIMARY KEY so the DDL runs on SQLite
    as well as PostgreSQL.
    """
    col_defs = []
    for col in table.columns:
        if col.data_type == "SERIAL":
            col_defs.append(f"{col.name} INTEGER PRIMARY KEY")
        else:
            col_defs.append(f"{col.name} {col.data_type}")
    return f"CREATE TABLE IF NOT EXISTS {table.table_name} ({', '.join(col_defs)})"
