#!/usr/bin/env python3
"""
Build a local SQLite demo database from the schema catalog.

Creates every catalog table with create_table_ddl() and fills the core
tables with generated profiles so the pipeline can be tried without a
PostgreSQL instance.

USAGE:
======
    python scripts/seed_demo_db.py                    # data/matrimony.db, 500 profiles
    python scripts/seed_demo_db.py --profiles 50 --path /tmp/demo.db --force
"""
import argparse
import random
import sqlite3
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from configs import DATABASE_PATH
from matchsql.catalog import SCHEMA_METADATA, create_table_ddl


FEMALE_NAMES = ["Neha", "Ananya", "Priya", "Sneha", "Aishwarya", "Kavya", "Pooja", "Ritu", "Meera", "Shruti"]
MALE_NAMES = ["Rahul", "Arjun", "Vikram", "Rohan", "Aditya", "Siddharth", "Karan", "Nikhil", "Amit", "Varun"]
SURNAMES = ["Kulkarni", "Deshpande", "Sharma", "Iyer", "Patil", "Reddy", "Nair", "Joshi", "Gupta", "Singh"]
CITIES = [("Pune", "Maharashtra"), ("Mumbai", "Maharashtra"), ("Nagpur", "Maharashtra"),
          ("Bangalore", "Karnataka"), ("Chennai", "Tamil Nadu"), ("Delhi", "Delhi"),
          ("Hyderabad", "Telangana"), ("Kochi", "Kerala")]
LANGUAGES = ["Marathi", "Hindi", "Tamil", "Telugu", "Kannada", "Malayalam", "Gujarati", "Bengali"]
PROFESSIONS = ["Doctor", "Software Engineer", "Lawyer", "Teacher", "Chartered Accountant",
               "Architect", "Civil Engineer", "Banker", "Designer", "Professor"]
COMPANIES = ["Infosys", "TCS", "Wipro", "Apollo Hospitals", "HDFC Bank", "Self-employed", "Google"]
RELIGIONS = [("Hindu", ["Brahmin", "Maratha", "Kayastha", "Reddy", "Nair"]),
             ("Muslim", ["Sunni", "Shia"]), ("Christian", ["Catholic", "Protestant"]),
             ("Sikh", ["Jat", "Khatri"]), ("Jain", ["Digambar", "Shwetambar"])]
DEGREES = [("B.Tech", "Computer Science"), ("MBBS", "Medicine"), ("MBA", "Finance"),
           ("LLB", "Law"), ("M.Sc", "Physics"), ("B.Arch", "Architecture"), ("CA", "Accounting")]
HOBBIES = ["Trekking", "Reading", "Cooking", "Photography", "Music", "Travel", "Cricket", "Dance"]


def create_schema(conn: sqlite3.Connection) -> None:
    for table in SCHEMA_METADATA:
        conn.execute(create_table_ddl(table))


def insert_row(conn: sqlite3.Connection, table: str, row: Dict[str, Any]) -> None:
    columns = ", ".join(row)
    placeholders = ", ".join("?" for _ in row)
    conn.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", list(row.values()))


def _birth_date(rng: random.Random, today: date) -> str:
    age_days = rng.randint(22 * 365, 40 * 365)
    return (today - timedelta(days=age_days)).isoformat()


def generate_profiles(count: int, seed: int = 42) -> List[Dict[str, Dict[str, Any]]]:
    """One dict per profile, keyed by table name."""
    rng = random.Random(seed)
    today = date.today()
    profiles = []

    for profile_id in range(1, count + 1):
        gender = rng.choice(["female", "male"])
        first = rng.choice(FEMALE_NAMES if gender == "female" else MALE_NAMES)
        city, state = rng.choice(CITIES)
        native, _ = rng.choice(CITIES)
        religion, castes = rng.choice(RELIGIONS)
        degree, specialization = rng.choice(DEGREES)

        profiles.append({
            "profiles": {
                "profile_id": profile_id,
                "user_id": profile_id,
                "first_name": first,
                "last_name": rng.choice(SURNAMES),
                "gender": gender,
                "date_of_birth": _birth_date(rng, today),
                "height_cm": rng.randint(150, 190),
                "weight_kg": rng.randint(45, 95),
                "marital_status": rng.choice(["Never Married"] * 8 + ["Divorced", "Widowed"]),
                "mother_tongue": rng.choice(LANGUAGES),
            },
            "profile_locations": {
                "profile_id": profile_id, "country": "India", "state": state, "city": city,
                "zip_code": str(rng.randint(110001, 699999)), "residency_status": "Citizen",
            },
            "career_details": {
                "profile_id": profile_id,
                "profession": rng.choice(PROFESSIONS),
                "company_name": rng.choice(COMPANIES),
                "annual_income": rng.randint(3, 60) * 100_000,
                "currency": "INR",
                "work_location": rng.choice(CITIES)[0],
            },
            "education_details": {
                "profile_id": profile_id, "degree_type": degree, "specialization": specialization,
                "college_university": f"University of {rng.choice(CITIES)[0]}",
                "passing_year": today.year - rng.randint(1, 15),
            },
            "social_background": {
                "profile_id": profile_id, "religion": religion, "caste": rng.choice(castes),
                "sub_caste": None, "gothra": None, "sect": None,
            },
            "lifestyle_habits": {
                "profile_id": profile_id,
                "diet": rng.choice(["Vegetarian", "Non-Vegetarian", "Eggetarian", "Vegan"]),
                "smoking": rng.choice(["No"] * 6 + ["Occasionally", "Yes"]),
                "drinking": rng.choice(["No"] * 4 + ["Occasionally", "Yes"]),
            },
            "family_origin": {"profile_id": profile_id, "native_place": native, "ancestral_origin": None},
            "family_details": {
                "profile_id": profile_id, "family_type": rng.choice(["Joint", "Nuclear"]),
                "family_values": rng.choice(["Traditional", "Moderate", "Liberal"]),
            },
            "profile_contacts": {
                "profile_id": profile_id,
                "mobile_number": f"9{rng.randint(100000000, 999999999)}",
                "is_mobile_verified": rng.random() < 0.7,
            },
            "hobbies": {"profile_id": profile_id, "hobby_name": rng.choice(HOBBIES)},
            "profile_languages": {
                "profile_id": profile_id, "language_name": rng.choice(LANGUAGES + ["English"]),
                "proficiency_level": rng.choice(["Native", "Fluent", "Basic"]),
            },
        })
    return profiles


def seed(path: Path, count: int, force: bool = False) -> int:
    if path.exists():
        if not force:
            print(f"[OK] Database already exists at {path} (use --force to rebuild)")
            return 0
        path.unlink()

    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    try:
        create_schema(conn)
        for profile in generate_profiles(count):
            for table, row in profile.items():
                insert_row(conn, table, row)
        conn.commit()
    finally:
        conn.close()

    print(f"[OK] Seeded {count} profiles into {path}")
    return count


def main():
    parser = argparse.ArgumentParser(description="Build the SQLite demo database")
    parser.add_argument("--path", default=DATABASE_PATH, help="SQLite file to create")
    parser.add_argument("--profiles", type=int, default=500, help="Number of profiles to generate")
    parser.add_argument("--force", action="store_true", help="Replace an existing database")
    args = parser.parse_args()

    seed(Path(args.path), args.profiles, force=args.force)


if __name__ == "__main__":
    main()
