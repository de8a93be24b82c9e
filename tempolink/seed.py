#!/usr/bin/env python3
"""
Seed the instrument and language catalogs.

Safe to run repeatedly: rows that already exist are left untouched.

    python -m tempolink.seed
"""

import sys

from .database import Base, SessionLocal, engine
from .models import Instrument, Language

INSTRUMENTS = [
    "Accordion",
    "Bassoon",
    "Cello",
    "Clarinet",
    "Flute",
    "Guitar",
    "Harp",
    "Oboe",
    "Piano",
    "Saxophone",
    "Trombone",
    "Trumpet",
    "Tuba",
    "Viola",
    "Violin",
    "Voice",
]

# (name, ISO code)
LANGUAGES = [
    ("English", "en"),
    ("Spanish", "es"),
    ("Mandarin", "zh"),
    ("French", "fr"),
    ("German", "de"),
    ("Italian", "it"),
    ("Russian", "ru"),
    ("Cantonese", "yue"),
    ("Japanese", "ja"),
    ("Korean", "ko"),
    ("Hindi", "hi"),
]


def seed_instruments(db) -> int:
    existing = {name for (name,) in db.query(Instrument.name).all()}
    added = 0
    for name in INSTRUMENTS:
        if name in existing:
            continue
        db.add(Instrument(name=name, image_path=f"/images/instruments/{name.lower()}.png"))
        added += 1
    db.commit()
    return added


def seed_languages(db) -> int:
    existing = {code for (code,) in db.query(Language.code).all()}
    added = 0
    for name, code in LANGUAGES:
        if code in existing:
            continue
        db.add(Language(name=name, code=code))
        added += 1
    db.commit()
    return added


def seed_all() -> None:
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    try:
        print("🎻 Seeding instruments...")
        print(f"   - Added: {seed_instruments(db)}")
        print("🌐 Seeding languages...")
        print(f"   - Added: {seed_languages(db)}")
        print("✅ Seed completed")
    except Exception as e:
        print(f"❌ Error seeding database: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    try:
        seed_all()
    except Exception:
        sys.exit(1)
