"""Persisted per-address alpha history.

One JSON object keyed by token address, stored under a single namespaced key.
Uses PostgreSQL when DATABASE_URL is set, falls back to a JSON file.
"""
import json
import logging
import os
from typing import Dict, List, Optional

from engine.models import HistoryRecord

logger = logging.getLogger(__name__)

STORAGE_KEY = "betaplays_seen_alphas"
STORE_PATH = os.path.join(os.path.dirname(__file__), "..", "data", f"{STORAGE_KEY}.json")
DATABASE_URL = os.environ.get("DATABASE_URL", "")


def _decode(raw: str) -> Dict[str, HistoryRecord]:
    """Parse the stored object; anything unreadable counts as an empty store."""
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        logger.warning("Corrupt alpha history, starting empty: %s", e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Alpha history is not an object, starting empty")
        return {}

    records: Dict[str, HistoryRecord] = {}
    for address, value in data.items():
        if not isinstance(value, dict):
            continue
        try:
            records[address] = HistoryRecord.from_dict({**value, "address": address})
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping unreadable history record %s: %s", address, e)
    return records


def _encode(records: Dict[str, HistoryRecord]) -> str:
    return json.dumps({address: r.to_dict() for address, r in records.items()})


class HistoryStore:
    """In-memory view over the persisted records; persist() writes it back."""

    def __init__(self, records: Optional[Dict[str, HistoryRecord]] = None):
        self._records: Dict[str, HistoryRecord] = dict(records or {})

    def get(self, address: str) -> Optional[HistoryRecord]:
        return self._records.get(address)

    def set(self, record: HistoryRecord) -> None:
        self._records[record.address] = record

    def all(self) -> List[HistoryRecord]:
        return list(self._records.values())

    def prune(self, now: float, retention_seconds: float) -> int:
        stale = [a for a, r in self._records.items() if now - r.last_seen > retention_seconds]
        for a in stale:
            del self._records[a]
        return len(stale)

    def __len__(self) -> int:
        return len(self._records)

    def persist(self) -> None:
        """No-op for the in-memory store."""


class JsonFileHistoryStore(HistoryStore):
    def __init__(self, path: str = STORE_PATH):
        self.path = path
        super().__init__(self._load())

    def _load(self) -> Dict[str, HistoryRecord]:
        try:
            with open(self.path) as f:
                return _decode(f.read())
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("Could not read alpha history %s: %s", self.path, e)
            return {}

    def persist(self) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        tmp = f"{self.path}.tmp"
        with open(tmp, "w") as f:
            f.write(_encode(self._records))
        os.replace(tmp, self.path)


class PostgresHistoryStore(HistoryStore):
    def __init__(self, database_url: str = DATABASE_URL):
        self.database_url = database_url
        self._ensure_table()
        super().__init__(self._load())

    def _get_conn(self):
        import psycopg2
        return psycopg2.connect(self.database_url)

    def _ensure_table(self):
        conn = self._get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TIMESTAMPTZ DEFAULT NOW()
                    )
                """)
            conn.commit()
        finally:
            conn.close()

    def _load(self) -> Dict[str, HistoryRecord]:
        conn = self._get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT value FROM kv_store WHERE key = %s", (STORAGE_KEY,))
                row = cur.fetchone()
        finally:
            conn.close()
        return _decode(row[0]) if row else {}

    def persist(self) -> None:
        conn = self._get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO kv_store (key, value, updated_at) VALUES (%s, %s, NOW())
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
                """, (STORAGE_KEY, _encode(self._records)))
            conn.commit()
        finally:
            conn.close()


def get_store() -> HistoryStore:
    if DATABASE_URL:
        logger.info("Alpha history: PostgreSQL")
        return PostgresHistoryStore(DATABASE_URL)
    logger.info("Alpha history: %s", STORE_PATH)
    return JsonFileHistoryStore(STORE_PATH)
