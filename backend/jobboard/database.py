import sqlite3
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from jobboard.config import settings


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


SCHEMA_SQL = """\
-- ============================================================
-- ACCOUNTS
-- ============================================================
CREATE TABLE IF NOT EXISTS users (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    username      TEXT NOT NULL,
    account       TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    icon          INTEGER NOT NULL DEFAULT 1 CHECK(icon BETWEEN 1 AND 9),
    is_active     INTEGER NOT NULL DEFAULT 1,
    created_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS admins (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    admin_username    TEXT NOT NULL UNIQUE,
    password_hash     TEXT NOT NULL,
    admin_permissions TEXT NOT NULL DEFAULT 'all',
    is_active         INTEGER NOT NULL DEFAULT 1,
    created_at        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS auth_throttle (
    key             TEXT PRIMARY KEY,
    failed_attempts INTEGER NOT NULL,
    last_failed_at  REAL NOT NULL
);

-- ============================================================
-- MEMBERSHIP
-- ============================================================
CREATE TABLE IF NOT EXISTS user_info (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id               INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
    membership_type       TEXT NOT NULL DEFAULT 'common_user'
                          CHECK(membership_type IN ('common_user','temp_user','official_user')),
    membership_code       TEXT,
    membership_start_date TEXT,
    membership_end_date   TEXT,
    created_at            TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at            TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS activation_codes (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    code          TEXT NOT NULL UNIQUE,
    is_active     INTEGER NOT NULL DEFAULT 1,
    is_used       INTEGER NOT NULL DEFAULT 0,
    validity_days INTEGER NOT NULL CHECK(validity_days > 0),
    user_id       INTEGER REFERENCES users(id) ON DELETE SET NULL,
    created_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    used_at       TEXT
);

CREATE INDEX IF NOT EXISTS idx_codes_unused ON activation_codes(is_active, is_used);

-- ============================================================
-- CATALOGUE
-- ============================================================
CREATE TABLE IF NOT EXISTS job_categories (
    id               INTEGER PRIMARY KEY,
    category         TEXT NOT NULL,
    category_number  INTEGER NOT NULL,
    active_job_count INTEGER NOT NULL DEFAULT 0,
    is_active        INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS tags (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    tag_name   TEXT NOT NULL,
    tag_type   TEXT NOT NULL DEFAULT 'general',
    is_active  INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS job_recruitments (
    id                        INTEGER PRIMARY KEY AUTOINCREMENT,
    job_title                 TEXT NOT NULL,
    company                   TEXT NOT NULL,
    description               TEXT,
    category_id               TEXT NOT NULL DEFAULT '[]',
    post_time                 TEXT NOT NULL,
    deadline                  TEXT NOT NULL,
    job_location              TEXT NOT NULL,
    job_position              TEXT NOT NULL,
    job_major                 TEXT,
    job_graduation_year       TEXT NOT NULL,
    job_education_requirement TEXT NOT NULL,
    application_link          TEXT,
    views_count               INTEGER NOT NULL DEFAULT 0,
    favorites_count           INTEGER NOT NULL DEFAULT 0,
    applications_count        INTEGER NOT NULL DEFAULT 0,
    is_active                 INTEGER NOT NULL DEFAULT 1,
    is_pregraduation          INTEGER NOT NULL DEFAULT 0,
    created_at                TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at                TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    last_update               TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_jobs_active_post ON job_recruitments(is_active, post_time);
CREATE INDEX IF NOT EXISTS idx_jobs_company ON job_recruitments(company);

CREATE TABLE IF NOT EXISTS job_tags (
    job_id        INTEGER PRIMARY KEY REFERENCES job_recruitments(id) ON DELETE CASCADE,
    time_tag_id   INTEGER REFERENCES tags(id) ON DELETE SET NULL,
    action_tag_id INTEGER REFERENCES tags(id) ON DELETE SET NULL
);

-- ============================================================
-- USER ACTIONS
-- ============================================================
CREATE TABLE IF NOT EXISTS user_actions (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id             INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
    favorite_job_ids    TEXT NOT NULL DEFAULT '[]',
    application_job_ids TEXT NOT NULL DEFAULT '[]',
    job_state           TEXT NOT NULL DEFAULT '[]',
    created_at          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

-- ============================================================
-- REPORTING
-- ============================================================
CREATE TABLE IF NOT EXISTS statistics (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    stat_date          TEXT NOT NULL UNIQUE,
    total_users        INTEGER NOT NULL DEFAULT 0,
    active_users       INTEGER NOT NULL DEFAULT 0,
    total_jobs         INTEGER NOT NULL DEFAULT 0,
    active_jobs        INTEGER NOT NULL DEFAULT 0,
    total_applications INTEGER NOT NULL DEFAULT 0,
    total_favorites    INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS messages (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    content    TEXT NOT NULL,
    user_id    INTEGER REFERENCES users(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);
"""

# (id, name); ids 1-3 are company-nature categories, 4-18 the rest
DEFAULT_CATEGORIES = [
    (1, "State-owned enterprise"),
    (2, "Foreign enterprise"),
    (3, "Public institution"),
    (4, "Banking/Finance"),
    (5, "Internet"),
    (6, "Manufacturing"),
    (7, "Gaming"),
    (8, "FMCG/Brands"),
    (9, "Biomedicine"),
    (10, "Automotive/New energy"),
    (11, "Technology"),
    (12, "Cosmetics"),
    (13, "Media"),
    (14, "Big tech"),
    (15, "Small and boutique"),
    (16, "Education"),
    (17, "Real estate/Construction"),
    (18, "Other"),
]


MIGRATIONS = [
    # v0.2: remember when a code was redeemed
    "ALTER TABLE activation_codes ADD COLUMN used_at TEXT",
]


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA_SQL)
    conn.executemany(
        "INSERT OR IGNORE INTO job_categories (id, category, category_number) VALUES (?, ?, ?)",
        [(cid, name, cid) for cid, name in DEFAULT_CATEGORIES],
    )
    conn.commit()
    # Run migrations idempotently (ALTER TABLE fails if the column exists)
    for migration in MIGRATIONS:
        try:
            conn.execute(migration)
            conn.commit()
        except sqlite3.OperationalError:
            pass  # already applied
    conn.close()
