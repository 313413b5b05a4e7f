SCHEMA_VERSION = 1

# Money and quantity columns are TEXT so Decimal values round-trip exactly;
# NUMERIC affinity would coerce them to REAL.
SCHEMA_SQL = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS schema_version (
  version INTEGER PRIMARY KEY,
  applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tokens (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  chain_id TEXT NOT NULL,
  pool_address TEXT NOT NULL,
  user_id TEXT NOT NULL,
  symbol TEXT NULL,
  quote_symbol TEXT NULL,
  token_url TEXT NULL,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  UNIQUE(chain_id, pool_address)
);

CREATE TABLE IF NOT EXISTS ticker_snapshots (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  token_id INTEGER NOT NULL REFERENCES tokens(id) ON DELETE CASCADE,
  chain_id TEXT NULL,
  dex_id TEXT NULL,
  url TEXT NULL,
  price_usd TEXT NULL,
  price_native TEXT NULL,
  liquidity_usd TEXT NULL,
  volume_24h TEXT NULL,
  price_change_24h TEXT NULL,
  fdv TEXT NULL,
  market_cap TEXT NULL,
  txns_24h_buys INTEGER NULL,
  txns_24h_sells INTEGER NULL,
  pair_created_at TEXT NULL,
  payload_json TEXT NOT NULL,
  fetched_at TEXT NOT NULL,
  created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_ticker_snapshots_token_created
ON ticker_snapshots(token_id, created_at DESC, id DESC);

CREATE TABLE IF NOT EXISTS metadata_snapshots (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  token_id INTEGER NOT NULL REFERENCES tokens(id) ON DELETE CASCADE,
  role TEXT NOT NULL CHECK (role IN ('base', 'quote')),
  address TEXT NULL,
  name TEXT NULL,
  symbol TEXT NULL,
  decimals INTEGER NULL,
  coingecko_coin_id TEXT NULL,
  image_url TEXT NULL,
  price_usd TEXT NULL,
  payload_json TEXT NOT NULL,
  fetched_at TEXT NOT NULL,
  created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_metadata_snapshots_token_role_created
ON metadata_snapshots(token_id, role, created_at DESC, id DESC);
CREATE INDEX IF NOT EXISTS idx_metadata_snapshots_token_created
ON metadata_snapshots(token_id, created_at DESC, id DESC);

CREATE TABLE IF NOT EXISTS candle_snapshots (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  token_id INTEGER NOT NULL REFERENCES tokens(id) ON DELETE CASCADE,
  timeframe TEXT NOT NULL CHECK (timeframe IN ('minute', 'hour', 'day')),
  aggregate INTEGER NOT NULL,
  candle_timestamp INTEGER NOT NULL,
  open TEXT NOT NULL,
  high TEXT NOT NULL,
  low TEXT NOT NULL,
  close TEXT NOT NULL,
  volume TEXT NOT NULL,
  fetched_at TEXT NOT NULL,
  created_at TEXT NOT NULL,
  UNIQUE(token_id, timeframe, aggregate, candle_timestamp)
);
CREATE INDEX IF NOT EXISTS idx_candle_snapshots_token_fetched
ON candle_snapshots(token_id, fetched_at DESC);

CREATE TABLE IF NOT EXISTS ledger_transactions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  token_id INTEGER NOT NULL REFERENCES tokens(id) ON DELETE CASCADE,
  user_id TEXT NOT NULL,
  transaction_type TEXT NOT NULL CHECK (transaction_type IN ('buy', 'sell')),
  amount TEXT NOT NULL,
  unit_price TEXT NOT NULL,
  tx_hash TEXT NULL,
  note TEXT NULL,
  created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_ledger_transactions_token_user_created
ON ledger_transactions(token_id, user_id, created_at, id);
"""
