"""Database schema definitions for the mothtrap bug tracker.

Contains the canonical SQL schema and the current schema version constant.
"""

from __future__ import annotations

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS users (
    id          TEXT PRIMARY KEY,
    username    TEXT NOT NULL UNIQUE,
    email       TEXT NOT NULL UNIQUE,
    first_name  TEXT NOT NULL,
    last_name   TEXT NOT NULL,
    role        TEXT NOT NULL DEFAULT 'reporter',
    avatar      TEXT DEFAULT '',
    is_active   BOOLEAN NOT NULL DEFAULT 1,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    CHECK (role IN ('reporter', 'developer', 'admin'))
);

CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);

CREATE TABLE IF NOT EXISTS api_tokens (
    token_hash  TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    label       TEXT DEFAULT '',
    created_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_api_tokens_user ON api_tokens(user_id);

CREATE TABLE IF NOT EXISTS bugs (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    description     TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'open',
    priority        TEXT NOT NULL DEFAULT 'medium',
    severity        TEXT NOT NULL DEFAULT 'major',
    category        TEXT NOT NULL DEFAULT 'bug',
    environment     TEXT NOT NULL DEFAULT 'development',
    reporter        TEXT NOT NULL REFERENCES users(id),
    assignee        TEXT REFERENCES users(id),
    expected_result TEXT DEFAULT '',
    actual_result   TEXT DEFAULT '',
    due_date        TEXT,
    estimated_time  REAL,
    actual_time     REAL,
    resolved_at     TEXT,
    closed_at       TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,

    CHECK (status IN ('open', 'in-progress', 'testing', 'resolved', 'closed')),
    CHECK (priority IN ('low', 'medium', 'high', 'critical')),
    CHECK (estimated_time IS NULL OR estimated_time >= 0),
    CHECK (actual_time IS NULL OR actual_time >= 0)
);

CREATE INDEX IF NOT EXISTS idx_bugs_status ON bugs(status);
CREATE INDEX IF NOT EXISTS idx_bugs_priority ON bugs(priority);
CREATE INDEX IF NOT EXISTS idx_bugs_assignee ON bugs(assignee);
CREATE INDEX IF NOT EXISTS idx_bugs_reporter ON bugs(reporter);
CREATE INDEX IF NOT EXISTS idx_bugs_category ON bugs(category);
CREATE INDEX IF NOT EXISTS idx_bugs_created ON bugs(created_at DESC);

CREATE TABLE IF NOT EXISTS bug_steps (
    bug_id    TEXT NOT NULL REFERENCES bugs(id) ON DELETE CASCADE,
    position  INTEGER NOT NULL,
    step      TEXT NOT NULL,
    step_order INTEGER NOT NULL,
    PRIMARY KEY (bug_id, position)
);

CREATE TABLE IF NOT EXISTS bug_tags (
    bug_id    TEXT NOT NULL REFERENCES bugs(id) ON DELETE CASCADE,
    position  INTEGER NOT NULL,
    tag       TEXT NOT NULL,
    PRIMARY KEY (bug_id, tag)
);

CREATE TABLE IF NOT EXISTS comments (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    bug_id     TEXT NOT NULL REFERENCES bugs(id) ON DELETE CASCADE,
    author     TEXT NOT NULL REFERENCES users(id),
    content    TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_comments_bug ON comments(bug_id, id);

CREATE TABLE IF NOT EXISTS watchers (
    bug_id     TEXT NOT NULL REFERENCES bugs(id) ON DELETE CASCADE,
    user_id    TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    PRIMARY KEY (bug_id, user_id)
);

CREATE TABLE IF NOT EXISTS events (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    bug_id     TEXT NOT NULL REFERENCES bugs(id) ON DELETE CASCADE,
    event_type TEXT NOT NULL,
    actor      TEXT DEFAULT '',
    old_value  TEXT,
    new_value  TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_bug ON events(bug_id, id DESC);

-- FTS5 full-text search with sync triggers
CREATE VIRTUAL TABLE IF NOT EXISTS bugs_fts USING fts5(
    title, description, content='bugs', content_rowid='rowid'
);

CREATE TRIGGER IF NOT EXISTS bugs_fts_insert AFTER INSERT ON bugs BEGIN
    INSERT INTO bugs_fts(rowid, title, description) VALUES (new.rowid, new.title, new.description);
END;
CREATE TRIGGER IF NOT EXISTS bugs_fts_update AFTER UPDATE OF title, description ON bugs BEGIN
    INSERT INTO bugs_fts(bugs_fts, rowid, title, description)
        VALUES('delete', old.rowid, old.title, old.description);
    INSERT INTO bugs_fts(rowid, title, description) VALUES (new.rowid, new.title, new.description);
END;
CREATE TRIGGER IF NOT EXISTS bugs_fts_delete AFTER DELETE ON bugs BEGIN
    INSERT INTO bugs_fts(bugs_fts, rowid, title, description)
        VALUES('delete', old.rowid, old.title, old.description);
END;
"""

CURRENT_SCHEMA_VERSION = 1
