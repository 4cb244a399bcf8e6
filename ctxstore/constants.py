from __future__ import annotations

DB_SCHEMA = "ctxstore"

# Upper bound accepted for the `limit` argument of every read tool.
MAX_READ_LIMIT = 1000
