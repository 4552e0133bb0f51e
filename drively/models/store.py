import copy
import logging
import os
import pickle
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, Optional

log = logging.getLogger(__name__)

# ---- Paths ----
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_DATA_PATH = BASE_DIR / "data.pkl"

TABLES = (
    "profiles",
    "cars",
    "car_images",
    "rentals",
    "verification_documents",
    "maintenance_records",
    "car_pricing_rules",
    "reminders",
)
# tables whose rows carry an updated_at column
TIMESTAMPED = {"profiles", "cars", "rentals", "car_pricing_rules"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class Store:
    """
    In-process table store backed by a pickle file.

    Rows are plain dicts keyed by a string uuid. Reads hand out deep copies so
    callers never mutate stored rows behind the lock; every write goes through
    insert/update/delete and is persisted immediately.
    """

    _inst = None
    _inst_lock = threading.Lock()

    def __init__(self, path: str | os.PathLike | None = None):
        self.path = str(path or DEFAULT_DATA_PATH)
        self.tables: dict[str, dict[str, dict]] = {name: {} for name in TABLES}
        self._rw = threading.RLock()

        log.info("[Store] Using file: %s", self.path)
        self._load()

    # ---------- Singleton ----------
    @classmethod
    def instance(cls, path: str | os.PathLike | None = None):
        """Return the global singleton instance of Store."""
        with cls._inst_lock:
            if cls._inst is None:
                cls._inst = Store(path or DEFAULT_DATA_PATH)
        return cls._inst

    @classmethod
    def reset_instance(cls):
        """Forget the singleton so the next instance() call reopens a file."""
        with cls._inst_lock:
            cls._inst = None

    # ---------- Persistence ----------
    def _load(self):
        """Load data from the pickle file, or start empty if unavailable or invalid."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "rb") as f:
                data = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as e:
            log.warning("[Store] Load failed (%s); starting empty.", e)
            return

        if isinstance(data, dict) and all(isinstance(data.get(t, {}), dict) for t in TABLES):
            for name in TABLES:
                self.tables[name] = data.get(name) or {}
            log.info(
                "[Store] Loaded: %s",
                ", ".join(f"{name}={len(rows)}" for name, rows in self.tables.items()),
            )
        else:
            # Handle incompatible data format: backup the old file and start empty
            bak = self.path + ".bak"
            os.replace(self.path, bak)
            log.warning("[Store] Incompatible store (%s); backed up to %s. Starting empty.",
                        type(data).__name__, bak)

    def _dump(self):
        """Write the in-memory data to the pickle file safely (atomic replace)."""
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "wb") as f:
            pickle.dump(self.tables, f, protocol=pickle.HIGHEST_PROTOCOL)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

    def save(self):
        """Thread-safe save method."""
        with self._rw:
            log.debug("[Store] Saving to %s ...", self.path)
            self._dump()

    def clear(self):
        """Drop every row of every table and persist the empty state."""
        with self._rw:
            for rows in self.tables.values():
                rows.clear()
            self._dump()

    @contextmanager
    def locked(self) -> Iterator["Store"]:
        """Hold the write lock across several reads and writes."""
        with self._rw:
            yield self

    # ---------- Generic table access ----------
    def _table(self, table: str) -> dict[str, dict]:
        try:
            return self.tables[table]
        except KeyError:
            raise KeyError(f"Unknown table '{table}'") from None

    def insert(self, table: str, row: dict) -> dict:
        """Insert a row, assigning id and timestamps; return a copy of it."""
        with self._rw:
            rows = self._table(table)
            record = copy.deepcopy(row)
            rid = str(record.get("id") or uuid.uuid4())
            record["id"] = rid
            now = _now_iso()
            record.setdefault("created_at", now)
            if table in TIMESTAMPED:
                record.setdefault("updated_at", now)
            rows[rid] = record
            self._dump()
            return copy.deepcopy(record)

    def get(self, table: str, row_id: Optional[str]) -> dict | None:
        """Get a row by ID."""
        if not row_id:
            return None
        with self._rw:
            row = self._table(table).get(str(row_id))
            return copy.deepcopy(row) if row is not None else None

    def select(
            self,
            table: str,
            where: Optional[Callable[[dict], bool]] = None,
            order_by: Optional[str] = None,
            desc: bool = False,
            **equals,
    ) -> list[dict]:
        """Return copies of rows matching every `equals` column and the `where` predicate."""
        with self._rw:
            out = []
            for row in self._table(table).values():
                if any(row.get(k) != v for k, v in equals.items()):
                    continue
                if where is not None and not where(row):
                    continue
                out.append(copy.deepcopy(row))
        if order_by:
            out.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""), reverse=desc)
        return out

    def count(self, table: str, where: Optional[Callable[[dict], bool]] = None, **equals) -> int:
        return len(self.select(table, where=where, **equals))

    def update(self, table: str, row_id: str, updates: dict) -> dict | None:
        """Update an existing row by ID; return the updated copy or None."""
        with self._rw:
            rows = self._table(table)
            row = rows.get(str(row_id))
            if row is None:
                return None
            row.update(copy.deepcopy({k: v for k, v in updates.items() if k != "id"}))
            if table in TIMESTAMPED:
                row["updated_at"] = _now_iso()
            self._dump()
            return copy.deepcopy(row)

    def delete(self, table: str, row_id: str) -> bool:
        """Delete a row by ID."""
        with self._rw:
            rows = self._table(table)
            if str(row_id) in rows:
                del rows[str(row_id)]
                self._dump()
                return True
            return False

    def delete_where(self, table: str, **equals) -> int:
        """Delete every row matching the given columns; return how many went."""
        with self._rw:
            rows = self._table(table)
            doomed = [rid for rid, row in rows.items()
                      if all(row.get(k) == v for k, v in equals.items())]
            for rid in doomed:
                del rows[rid]
            if doomed:
                self._dump()
            return len(doomed)

    # ---------- Profiles ----------
    def find_profile_by_email(self, email: str) -> dict | None:
        """Find a profile by email (case-insensitive)."""
        needle = (email or "").strip().lower()
        if not needle:
            return None
        with self._rw:
            for p in self._table("profiles").values():
                if (p.get("email") or "").lower() == needle:
                    return copy.deepcopy(p)
        return None

    def email_exists(self, email: str) -> bool:
        """Return True if the given email already has a profile."""
        return self.find_profile_by_email(email) is not None
