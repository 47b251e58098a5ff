"""
Conftest for MatchSQL tests.

Provides:
- a seeded SQLite fixture database built from the catalog DDL
- scripted fake text generators (no network, no API key)
- gateway / schema-provider / orchestrator fixtures wired to both
"""

import os
import re
import sqlite3
import sys
import zlib
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

# Add project root to sys.path
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Set environment BEFORE any package imports
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("GEMINI_API_KEY", "test-key-for-ci")
# litellm fetches its model cost map over the network on import; use the bundled copy
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from matchsql.adapters import DatabaseType, ExecutionGateway, create_adapter
from matchsql.catalog import SCHEMA_METADATA, SqlDialect, create_table_ddl
from matchsql.models import TokenUsage
from matchsql.orchestrator import CorrectionOrchestrator
from matchsql.orchestrator.llm_client import LLMResponse, TextGenerator
from matchsql.tools import SchemaContextProvider
from matchsql.utils import SchemaVectorStore


# =============================================================================
# FIXTURE DATA
# =============================================================================

def birth_date_for_age(age: int, today: Optional[date] = None) -> str:
    """A birth date whose derived age today is exactly `age`."""
    base = (today or date.today()) - timedelta(days=30)
    try:
        born = base.replace(year=base.year - age)
    except ValueError:
        # Feb 29 in a non-leap target year
        born = base.replace(year=base.year - age, day=28)
    return born.isoformat()


# (first, last, gender, age, profession, city, state, religion, caste, mother_tongue, income LPA, native_place)
PROFILE_ROWS = [
    ("Neha", "Kulkarni", "female", 24, "Doctor", "Pune", "Maharashtra", "Hindu", "Brahmin", "Marathi", 18, "Nagpur"),
    ("Ananya", "Iyer", "female", 25, "Software Engineer", "Chennai", "Tamil Nadu", "Hindu", "Brahmin", "Tamil", 22, "Madurai"),
    ("Priya", "Sharma", "female", 30, "Teacher", "Delhi", "Delhi", "Hindu", "Rajput", "Hindi", 8, "Jaipur"),
    ("Sneha", "Patil", "female", 31, "Doctor", "Mumbai", "Maharashtra", "Hindu", "Maratha", "Marathi", 25, "Pune"),
    ("Kavya", "Nair", "female", 35, "Lawyer", "Kochi", "Kerala", "Christian", "Syrian", "Malayalam", 12, "Kochi"),
    ("Meera", "Joshi", "female", 40, "Architect", "Pune", "Maharashtra", "Hindu", "Brahmin", "Marathi", 30, "Nashik"),
    ("Rahul", "Deshpande", "male", 22, "Civil Engineer", "Pune", "Maharashtra", "Hindu", "Brahmin", "Marathi", 15, "Nagpur"),
    ("Arjun", "Reddy", "male", 33, "Doctor", "Hyderabad", "Telangana", "Hindu", "Reddy", "Telugu", 40, "Warangal"),
    ("Vikram", "Singh", "male", 45, "Banker", "Delhi", "Delhi", "Sikh", "Jat", "Punjabi", 20, "Amritsar"),
    ("Rohan", "Gupta", "male", 38, "Designer", "Bangalore", "Karnataka", "Jain", "Agarwal", "Hindi", 10, "Indore"),
]

FEMALE_COUNT = 6


def _insert(conn: sqlite3.Connection, table: str, row: Dict[str, Any]) -> None:
    columns = ", ".join(row)
    placeholders = ", ".join("?" for _ in row)
    conn.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", list(row.values()))


def seed_fixture_db(path: Path) -> Path:
    conn = sqlite3.connect(path)
    try:
        for table in SCHEMA_METADATA:
            conn.execute(create_table_ddl(table))

        for profile_id, row in enumerate(PROFILE_ROWS, 1):
            (first, last, gender, age, profession, city, state,
             religion, caste, tongue, income_lpa, native) = row
            _insert(conn, "profiles", {
                "profile_id": profile_id, "user_id": profile_id,
                "first_name": first, "last_name": last, "gender": gender,
                "date_of_birth": birth_date_for_age(age),
                "height_cm": 150 + profile_id * 3, "weight_kg": 50 + profile_id * 2,
                "marital_status": "Never Married", "mother_tongue": tongue,
            })
            _insert(conn, "profile_locations", {
                "profile_id": profile_id, "country": "India", "state": state, "city": city,
            })
            _insert(conn, "career_details", {
                "profile_id": profile_id, "profession": profession,
                "annual_income": income_lpa * 100_000, "currency": "INR", "work_location": city,
            })
            _insert(conn, "social_background", {
                "profile_id": profile_id, "religion": religion, "caste": caste,
            })
            _insert(conn, "family_origin", {"profile_id": profile_id, "native_place": native})
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture(scope="session")
def fixture_db_path(tmp_path_factory) -> Path:
    return seed_fixture_db(tmp_path_factory.mktemp("db") / "matrimony.db")


@pytest.fixture
def gateway(fixture_db_path) -> ExecutionGateway:
    return ExecutionGateway(lambda: create_adapter(DatabaseType.SQLITE, file_path=str(fixture_db_path)))


# =============================================================================
# FAKE TEXT GENERATORS
# =============================================================================

def keyword_embedding(text: str, dims: int = 64) -> List[float]:
    """Deterministic bag-of-words vector (crc32 hashed)."""
    vector = [0.0] * dims
    for token in re.findall(r"[a-z]+", text.lower()):
        vector[zlib.crc32(token.encode()) % dims] += 1.0
    return vector


INTENT_PROMPT_PREFIX = "You extract search criteria"
CORRECTION_PROMPT_PREFIX = "The SQL below failed"


class ScriptedGenerator(TextGenerator):
    """
    Returns scripted responses by prompt kind.

    Each script entry is a response text or an exception instance to raise.
    """

    provider = "fake"
    model = "fake-model"

    def __init__(
        self,
        intent: Any = "[]",
        synthesis: Sequence[Any] = (),
        corrections: Sequence[Any] = (),
        usage: Optional[TokenUsage] = None,
    ):
        self.intent = intent
        self.synthesis = list(synthesis)
        self.corrections = list(corrections)
        self.usage = usage or TokenUsage(input=10, output=5, total=15)
        self.prompts: List[str] = []
        self.embed_calls = 0

    def _next(self, prompt: str) -> Any:
        if prompt.startswith(INTENT_PROMPT_PREFIX):
            return self.intent
        if prompt.startswith(CORRECTION_PROMPT_PREFIX):
            return self.corrections.pop(0)
        return self.synthesis.pop(0)

    def generate(self, prompt: str) -> LLMResponse:
        self.prompts.append(prompt)
        script = self._next(prompt)
        if isinstance(script, Exception):
            raise script
        return LLMResponse(text=script, provider=self.provider, model=self.model, usage=self.usage)

    def embed(self, text: str) -> List[float]:
        self.embed_calls += 1
        return keyword_embedding(text)

    def get_stats(self) -> Dict[str, Any]:
        return {"provider": self.provider, "model": self.model, "generate_calls": len(self.prompts)}

    def prompts_of_kind(self, prefix: str) -> List[str]:
        return [p for p in self.prompts if p.startswith(prefix)]


@pytest.fixture
def schema_provider() -> SchemaContextProvider:
    return SchemaContextProvider(SchemaVectorStore(keyword_embedding, "keyword-hash"), top_k=5)


@pytest.fixture
def make_orchestrator(gateway, schema_provider):
    """Factory: make_orchestrator(llm) -> CorrectionOrchestrator on the fixture DB."""
    def _make(llm: Optional[TextGenerator], **kwargs) -> CorrectionOrchestrator:
        return CorrectionOrchestrator(llm, gateway, schema_provider, dialect=SqlDialect.SQLITE, **kwargs)
    return _make
