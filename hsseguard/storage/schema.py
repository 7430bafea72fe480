"""
Database schema for the HSSEGuard audit store.

History tables are append-only: the library exposes no UPDATE or DELETE
against them. Rule ids are plain nullable columns so a rule can be
deleted or deactivated without touching the history that mentions it.
"""

# Current schema version - increment when making schema changes
SCHEMA_VERSION = 1

SCHEMA_VERSION_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    version INTEGER NOT NULL UNIQUE,
    applied_at TEXT NOT NULL DEFAULT (datetime('now')),
    description TEXT
);
"""

# One row per dispatch attempt, success or failure
ESCALATION_HISTORY_SQL = """
CREATE TABLE IF NOT EXISTS escalation_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id TEXT NOT NULL UNIQUE,
    incident_id TEXT NOT NULL,
    rule_id TEXT,  -- nullable back-reference
    rule_name TEXT NOT NULL,  -- snapshot at execution time
    action_index INTEGER NOT NULL DEFAULT 0,
    action_type TEXT NOT NULL,
    action_target TEXT NOT NULL,
    trigger_event TEXT,
    dedup_key TEXT,
    attempt INTEGER NOT NULL DEFAULT 1,
    success INTEGER NOT NULL,
    error_message TEXT,
    executed_at TEXT NOT NULL,
    executed_by TEXT NOT NULL,
    metadata TEXT  -- JSON metadata
);

CREATE INDEX IF NOT EXISTS idx_escalation_history_incident ON escalation_history(incident_id);
CREATE INDEX IF NOT EXISTS idx_escalation_history_rule ON escalation_history(rule_id);
CREATE INDEX IF NOT EXISTS idx_escalation_history_dedup ON escalation_history(dedup_key);
"""

# One row per notification; its status lives in notification_status_log
NOTIFICATION_HISTORY_SQL = """
CREATE TABLE IF NOT EXISTS notification_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    notification_id TEXT NOT NULL UNIQUE,
    incident_id TEXT NOT NULL,
    rule_id TEXT,
    dedup_key TEXT,
    recipient_id TEXT NOT NULL,
    recipient_type TEXT NOT NULL,
    template_id TEXT,
    channel TEXT NOT NULL,
    priority TEXT NOT NULL,
    subject TEXT,
    content TEXT,
    created_at TEXT NOT NULL,
    metadata TEXT  -- JSON metadata
);

CREATE INDEX IF NOT EXISTS idx_notification_history_incident ON notification_history(incident_id);
CREATE INDEX IF NOT EXISTS idx_notification_history_recipient ON notification_history(recipient_id);
"""

NOTIFICATION_STATUS_LOG_SQL = """
CREATE TABLE IF NOT EXISTS notification_status_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    notification_id TEXT NOT NULL,
    status TEXT NOT NULL,  -- PENDING, SENT, DELIVERED, READ, FAILED
    error_message TEXT,
    changed_at TEXT NOT NULL,
    FOREIGN KEY (notification_id) REFERENCES notification_history(notification_id)
);

CREATE INDEX IF NOT EXISTS idx_notification_status_notification ON notification_status_log(notification_id);
"""

# Dedup claims; the primary key makes a claim a single atomic insert
DISPATCH_CLAIMS_SQL = """
CREATE TABLE IF NOT EXISTS dispatch_claims (
    dedup_key TEXT PRIMARY KEY,
    incident_id TEXT NOT NULL,
    rule_id TEXT,
    action_index INTEGER NOT NULL,
    status TEXT NOT NULL,  -- IN_FLIGHT, SUCCEEDED, FAILED
    attempts INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    claimed_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_dispatch_claims_status ON dispatch_claims(status);
CREATE INDEX IF NOT EXISTS idx_dispatch_claims_incident ON dispatch_claims(incident_id);
"""

SCHEMA_SQL = f"""
-- HSSEGuard Audit Schema v{SCHEMA_VERSION}

{SCHEMA_VERSION_SQL}

{ESCALATION_HISTORY_SQL}

{NOTIFICATION_HISTORY_SQL}

{NOTIFICATION_STATUS_LOG_SQL}

{DISPATCH_CLAIMS_SQL}

INSERT OR IGNORE INTO schema_version (version, description)
VALUES ({SCHEMA_VERSION}, 'Initial audit schema');
"""

HISTORY_TABLES = [
    "escalation_history",
    "notification_history",
    "notification_status_log",
    "dispatch_claims",
]

TABLES = ["schema_version", *HISTORY_TABLES]
