#!/usr/bin/env python3
"""Create the import tables (safe to run repeatedly)."""

from bulk_import.core.config import get_settings
from bulk_import.db.session import init_db

if __name__ == "__main__":
    init_db()
    print(f"Tables ready on {get_settings().database_url.rsplit('@', 1)[-1]}")
