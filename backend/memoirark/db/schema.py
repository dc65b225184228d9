"""Database schema DDL. All tables use CREATE IF NOT EXISTS for idempotency."""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS event_log (
    sequence_num INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT UNIQUE NOT NULL,
    aggregate_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    device_id TEXT NOT NULL DEFAULT 'local',
    user_id TEXT,
    event_type TEXT NOT NULL,
    payload TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_event_log_aggregate_id ON event_log(aggregate_id);
CREATE INDEX IF NOT EXISTS idx_event_log_event_type ON event_log(event_type);

CREATE TABLE IF NOT EXISTS people (
    person_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    identity_key TEXT NOT NULL UNIQUE,
    role TEXT,
    relationship_type TEXT,
    notes TEXT,
    source_system TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS artifacts (
    artifact_id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    source_system TEXT NOT NULL,
    short_description TEXT,
    transcribed_text TEXT,
    source_path_or_url TEXT,
    imported_from TEXT,
    import_id TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_artifacts_import_id ON artifacts(import_id);
CREATE INDEX IF NOT EXISTS idx_artifacts_imported_from ON artifacts(imported_from);

CREATE TABLE IF NOT EXISTS life_events (
    event_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    date TEXT NOT NULL,
    summary TEXT,
    notes TEXT,
    imported_from TEXT,
    import_id TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_life_events_date ON life_events(date);
CREATE INDEX IF NOT EXISTS idx_life_events_import_id ON life_events(import_id);

CREATE TABLE IF NOT EXISTS event_people (
    event_id TEXT NOT NULL,
    person_id TEXT NOT NULL,
    PRIMARY KEY (event_id, person_id),
    FOREIGN KEY (event_id) REFERENCES life_events(event_id),
    FOREIGN KEY (person_id) REFERENCES people(person_id)
);

CREATE TABLE IF NOT EXISTS event_artifacts (
    event_id TEXT NOT NULL,
    artifact_id TEXT NOT NULL,
    PRIMARY KEY (event_id, artifact_id),
    FOREIGN KEY (event_id) REFERENCES life_events(event_id),
    FOREIGN KEY (artifact_id) REFERENCES artifacts(artifact_id)
);

CREATE TABLE IF NOT EXISTS artifact_people (
    artifact_id TEXT NOT NULL,
    person_id TEXT NOT NULL,
    PRIMARY KEY (artifact_id, person_id),
    FOREIGN KEY (artifact_id) REFERENCES artifacts(artifact_id),
    FOREIGN KEY (person_id) REFERENCES people(person_id)
);

CREATE VIRTUAL TABLE IF NOT EXISTS artifacts_fts USING fts5(
    short_description,
    transcribed_text,
    content='artifacts',
    content_rowid='rowid'
);

CREATE TRIGGER IF NOT EXISTS artifacts_fts_insert AFTER INSERT ON artifacts BEGIN
    INSERT INTO artifacts_fts(rowid, short_description, transcribed_text)
    VALUES (new.rowid, new.short_description, new.transcribed_text);
END;

CREATE TRIGGER IF NOT EXISTS artifacts_fts_delete AFTER DELETE ON artifacts BEGIN
    INSERT INTO artifacts_fts(artifacts_fts, rowid, short_description, transcribed_text)
    VALUES ('delete', old.rowid, old.short_description, old.transcribed_text);
END;
"""
