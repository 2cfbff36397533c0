SCHEMA_VERSION = 2

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied_at REAL NOT NULL
);

-- Events: every committed host event, keyed by tx hash + log index
CREATE TABLE IF NOT EXISTS events (
    id           TEXT PRIMARY KEY,
    sequence     INTEGER NOT NULL,
    event        TEXT NOT NULL,
    address      TEXT NOT NULL,
    args_json    TEXT NOT NULL DEFAULT '{}',
    tx_hash      TEXT NOT NULL,
    log_index    INTEGER NOT NULL,
    block_number INTEGER NOT NULL,
    timestamp    INTEGER NOT NULL
);

-- Nodes: NodeRegistered projection
CREATE TABLE IF NOT EXISTS nodes (
    id        TEXT PRIMARY KEY,
    node_id   INTEGER NOT NULL,
    owner     TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    sequence  INTEGER NOT NULL
);

-- Uptimes: UptimeRecorded projection
CREATE TABLE IF NOT EXISTS uptimes (
    id         TEXT PRIMARY KEY,
    node_id    INTEGER NOT NULL,
    minutes_up TEXT NOT NULL,
    timestamp  INTEGER NOT NULL,
    sequence   INTEGER NOT NULL
);

-- Stakes: StakeUpdated projection (wei as decimal text)
CREATE TABLE IF NOT EXISTS stakes (
    id        TEXT PRIMARY KEY,
    node_id   INTEGER NOT NULL,
    staker    TEXT NOT NULL,
    amount    TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    sequence  INTEGER NOT NULL
);

-- Rewards: RewardClaimed projection
CREATE TABLE IF NOT EXISTS rewards (
    id        TEXT PRIMARY KEY,
    node_id   INTEGER NOT NULL,
    owner     TEXT NOT NULL,
    amount    TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    sequence  INTEGER NOT NULL
);

-- Indexer cursors (last ingested event sequence per source and the host run it came from)
CREATE TABLE IF NOT EXISTS indexer_state (
    name       TEXT PRIMARY KEY,
    cursor     INTEGER NOT NULL DEFAULT 0,
    host_id    TEXT NOT NULL DEFAULT '',
    updated_at REAL NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_events_name ON events(event, sequence);
CREATE INDEX IF NOT EXISTS idx_events_sequence ON events(sequence);
CREATE INDEX IF NOT EXISTS idx_nodes_ts ON nodes(timestamp, sequence);
CREATE INDEX IF NOT EXISTS idx_uptimes_node_ts ON uptimes(node_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_stakes_node_ts ON stakes(node_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_rewards_node_ts ON rewards(node_id, timestamp);
"""
