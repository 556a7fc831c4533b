from __future__ import annotations

import sqlite3


def bootstrap(conn: sqlite3.Connection) -> None:
    """Create profile, enrichment, match and billing tables (idempotent)."""
    cur = conn.cursor()

    # Profiles owned by the external profile store; mirrored here for the CLI
    cur.execute(
        (
            "CREATE TABLE IF NOT EXISTS users (\n"
            "  id TEXT PRIMARY KEY,\n"
            "  first_name TEXT,\n"
            "  last_name TEXT,\n"
            "  title TEXT,\n"
            "  company TEXT,\n"
            "  bio TEXT,\n"
            "  location TEXT,\n"
            "  networking_goal TEXT,\n"
            "  industries_json TEXT,\n"
            "  skills_json TEXT,\n"
            "  profile_visible INTEGER NOT NULL DEFAULT 1,\n"
            "  ai_matching_consent INTEGER NOT NULL DEFAULT 1,\n"
            "  billing_plan TEXT,\n"
            "  profile_version INTEGER NOT NULL DEFAULT 1,\n"
            "  created_at TEXT NOT NULL DEFAULT (datetime('now')),\n"
            "  updated_at TEXT NOT NULL DEFAULT (datetime('now'))\n"
            ")"
        )
    )

    # Enrichment results keyed by the profile version they were computed from
    cur.execute(
        (
            "CREATE TABLE IF NOT EXISTS enrichment_cache (\n"
            "  user_id TEXT NOT NULL,\n"
            "  profile_version INTEGER NOT NULL,\n"
            "  kind TEXT NOT NULL,\n"
            "  payload_json TEXT NOT NULL,\n"
            "  computed_at TEXT NOT NULL DEFAULT (datetime('now')),\n"
            "  PRIMARY KEY (user_id, profile_version, kind),\n"
            "  FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE\n"
            ")"
        )
    )

    cur.execute(
        (
            "CREATE TABLE IF NOT EXISTS matches (\n"
            "  id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
            "  user_id TEXT NOT NULL,\n"
            "  matched_user_id TEXT NOT NULL,\n"
            "  match_score INTEGER NOT NULL,\n"
            "  status TEXT NOT NULL DEFAULT 'pending',\n"
            "  ai_analysis TEXT,\n"
            "  compatibility_factors_json TEXT,\n"
            "  recommended_topics_json TEXT,\n"
            "  mutual_goals_json TEXT,\n"
            "  collaboration_potential TEXT,\n"
            "  meeting_suggestions_json TEXT,\n"
            "  is_fallback INTEGER NOT NULL DEFAULT 0,\n"
            "  created_at TEXT NOT NULL DEFAULT (datetime('now')),\n"
            "  FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,\n"
            "  FOREIGN KEY(matched_user_id) REFERENCES users(id) ON DELETE CASCADE\n"
            ")"
        )
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_matches_user_id ON matches(user_id);")

    # Append-only usage ledger; rates are pinned per row
    cur.execute(
        (
            "CREATE TABLE IF NOT EXISTS token_usage (\n"
            "  id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
            "  user_id TEXT NOT NULL,\n"
            "  feature TEXT NOT NULL,\n"
            "  model TEXT NOT NULL,\n"
            "  input_tokens INTEGER NOT NULL,\n"
            "  output_tokens INTEGER NOT NULL,\n"
            "  total_tokens INTEGER NOT NULL,\n"
            "  cost_per_input_token REAL NOT NULL,\n"
            "  cost_per_output_token REAL NOT NULL,\n"
            "  input_cost REAL NOT NULL,\n"
            "  output_cost REAL NOT NULL,\n"
            "  total_cost REAL NOT NULL,\n"
            "  request_id TEXT,\n"
            "  created_at TEXT NOT NULL\n"
            ")"
        )
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_token_usage_user_created ON token_usage(user_id, created_at);")

    cur.execute(
        (
            "CREATE TABLE IF NOT EXISTS billing_accounts (\n"
            "  user_id TEXT PRIMARY KEY,\n"
            "  monthly_token_allowance INTEGER NOT NULL,\n"
            "  tokens_used_this_month INTEGER NOT NULL DEFAULT 0,\n"
            "  billing_cycle_start TEXT NOT NULL,\n"
            "  billing_cycle_end TEXT NOT NULL,\n"
            "  next_billing_date TEXT NOT NULL,\n"
            "  updated_at TEXT NOT NULL DEFAULT (datetime('now'))\n"
            ")"
        )
    )

    conn.commit()
