"""
sql_queries.py
--------------

SQL statements for the indexer store (DuckDB).

All statements are constants imported by the storage and processor modules.
Record inserts read from Arrow tables registered under the `incoming_*` names.
"""

# =====================================================================
# SCHEMA
# =====================================================================

CREATE_SCHEMA_MIGRATIONS = """
CREATE TABLE IF NOT EXISTS schema_migrations (
  version     INTEGER PRIMARY KEY,
  description VARCHAR NOT NULL,
  applied_at  TIMESTAMP NOT NULL DEFAULT current_timestamp
);
"""

CREATE_PROGRESS_TABLE = """
CREATE TABLE IF NOT EXISTS indexer_progress (
  pipeline_name VARCHAR PRIMARY KEY,
  last_height   BIGINT NOT NULL,
  cursor        VARCHAR,
  updated_at    TIMESTAMP NOT NULL DEFAULT current_timestamp
);
"""

CREATE_BLOCKS_TABLE = """
CREATE TABLE IF NOT EXISTS blocks (
  height            BIGINT PRIMARY KEY,
  first_version     BIGINT,
  last_version      BIGINT,
  transaction_count INTEGER NOT NULL,
  block_timestamp   BIGINT
);
"""

CREATE_TRANSACTIONS_TABLE = """
CREATE TABLE IF NOT EXISTS transactions (
  version      BIGINT PRIMARY KEY,
  block_height BIGINT NOT NULL,
  hash         VARCHAR NOT NULL,
  tx_type      VARCHAR NOT NULL,
  tx_timestamp BIGINT NOT NULL,
  success      BOOLEAN NOT NULL,
  vm_status    VARCHAR NOT NULL,
  gas_used     BIGINT NOT NULL,
  epoch        BIGINT NOT NULL,
  event_count  INTEGER NOT NULL
);
"""

CREATE_EVENTS_TABLE = """
CREATE TABLE IF NOT EXISTS events (
  transaction_version BIGINT NOT NULL,
  event_index         INTEGER NOT NULL,
  block_height        BIGINT NOT NULL,
  account_address     VARCHAR NOT NULL,
  creation_number     BIGINT NOT NULL,
  sequence_number     BIGINT NOT NULL,
  event_type          VARCHAR NOT NULL,
  data                VARCHAR NOT NULL,
  PRIMARY KEY (transaction_version, event_index)
);
"""

CREATE_PROCESSOR_STATUS_TABLE = """
CREATE TABLE IF NOT EXISTS processor_status (
  pipeline_name VARCHAR NOT NULL,
  block_height  BIGINT NOT NULL,
  success       BOOLEAN NOT NULL,
  details       VARCHAR,
  updated_at    TIMESTAMP NOT NULL DEFAULT current_timestamp,
  PRIMARY KEY (pipeline_name, block_height)
);
"""


# =====================================================================
# MIGRATION BOOKKEEPING
# =====================================================================

SELECT_APPLIED_MIGRATIONS = "SELECT version FROM schema_migrations ORDER BY version;"

INSERT_MIGRATION = "INSERT INTO schema_migrations (version, description) VALUES (?, ?);"


# =====================================================================
# PROGRESS MARKER
# =====================================================================

SELECT_PROGRESS = """
SELECT pipeline_name, last_height, cursor, updated_at
FROM indexer_progress
WHERE pipeline_name = ?;
"""

UPSERT_PROGRESS = """
INSERT INTO indexer_progress (pipeline_name, last_height, cursor, updated_at)
VALUES (?, ?, ?, current_timestamp)
ON CONFLICT (pipeline_name) DO UPDATE SET
  last_height = excluded.last_height,
  cursor      = excluded.cursor,
  updated_at  = excluded.updated_at;
"""

SELECT_ALL_PROGRESS = """
SELECT pipeline_name, last_height, cursor, updated_at
FROM indexer_progress
ORDER BY pipeline_name;
"""


# =====================================================================
# BLOCK PROCESSING STATUS
# =====================================================================

UPSERT_PROCESSOR_STATUS = """
INSERT INTO processor_status (pipeline_name, block_height, success, details, updated_at)
VALUES (?, ?, ?, ?, current_timestamp)
ON CONFLICT (pipeline_name, block_height) DO UPDATE SET
  success    = excluded.success,
  details    = excluded.details,
  updated_at = excluded.updated_at;
"""

SELECT_BLOCK_STATUS = """
SELECT success, details
FROM processor_status
WHERE pipeline_name = ? AND block_height = ?;
"""

SELECT_LAST_FAILURES = """
SELECT pipeline_name, block_height, details, updated_at
FROM processor_status
WHERE NOT success
QUALIFY row_number() OVER (PARTITION BY pipeline_name ORDER BY updated_at DESC, block_height DESC) = 1
ORDER BY pipeline_name;
"""


# =====================================================================
# BLOCK OUTPUT RECORDS (idempotent upserts)
# =====================================================================

UPSERT_BLOCKS = """
INSERT OR REPLACE INTO blocks
SELECT height, first_version, last_version, transaction_count, block_timestamp
FROM incoming_blocks;
"""

UPSERT_TRANSACTIONS = """
INSERT OR REPLACE INTO transactions
SELECT version, block_height, hash, tx_type, tx_timestamp, success, vm_status, gas_used, epoch, event_count
FROM incoming_transactions;
"""

UPSERT_EVENTS = """
INSERT OR REPLACE INTO events
SELECT transaction_version, event_index, block_height, account_address,
       creation_number, sequence_number, event_type, data
FROM incoming_events;
"""


# =====================================================================
# INSPECTION
# =====================================================================

SELECT_BLOCKS_RANGE = """
SELECT height, first_version, last_version, transaction_count, block_timestamp
FROM blocks
WHERE height >= ? AND height < ?
ORDER BY height;
"""

SELECT_TABLE_COUNTS = """
SELECT
  (SELECT count(*) FROM blocks)       AS blocks,
  (SELECT count(*) FROM transactions) AS transactions,
  (SELECT count(*) FROM events)       AS events;
"""
