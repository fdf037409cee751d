"""Cache service — persists the last known raw M3U playlist text in SQLite."""
from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime
from typing import Optional

from lightcatalog.database import DB_NAME, db_connect

logger = logging.getLogger(__name__)


class CacheService:
    """Reads and replaces the cached playlist text.

    The cache is one slot: every write replaces the previous text, so no
    locking beyond SQLite's own is needed.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.db_path = os.path.join(data_dir, DB_NAME)

    def get_playlist_text(self) -> str:
        conn = db_connect(self.db_path)
        try:
            row = conn.execute("SELECT raw_text FROM playlist_cache WHERE id = 1").fetchone()
            return row["raw_text"] if row else ""
        except sqlite3.Error as e:
            logger.error(f"Failed to read playlist cache: {e}")
            return ""
        finally:
            conn.close()

    def get_playlist_meta(self) -> dict:
        conn = db_connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT source_url, length(raw_text) AS size, updated_at FROM playlist_cache WHERE id = 1"
            ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to read playlist cache metadata: {e}")
            row = None
        finally:
            conn.close()
        if not row:
            return {"source_url": "", "size": 0, "updated_at": None}
        return {"source_url": row["source_url"], "size": row["size"], "updated_at": row["updated_at"]}

    def save_playlist_text(self, raw_text: str, source_url: str = "", updated_at: Optional[str] = None) -> None:
        conn = db_connect(self.db_path)
        try:
            conn.execute(
                "INSERT OR REPLACE INTO playlist_cache (id, source_url, raw_text, updated_at) VALUES (1,?,?,?)",
                (source_url, raw_text, updated_at or datetime.now().isoformat()),
            )
            conn.commit()
            logger.info(f"Playlist cache saved ({len(raw_text)} chars) from {source_url or 'unknown source'}")
        except sqlite3.Error as e:
            logger.error(f"Failed to save playlist cache: {e}")
        finally:
            conn.close()

    def clear_playlist_text(self) -> None:
        conn = db_connect(self.db_path)
        try:
            conn.execute("DELETE FROM playlist_cache")
            conn.commit()
            logger.info("Playlist cache cleared")
        except sqlite3.Error as e:
            logger.error(f"Failed to clear playlist cache: {e}")
        finally:
            conn.close()
