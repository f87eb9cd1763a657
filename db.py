import sqlite3
import datetime
import json
import logging
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

from config import YamlConfig
from settings_schema import validate_settings
from exercise_catalog import EXERCISES
import ledger
from ledger import ProgressionLedger, SetRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "kv_store": (
            """CREATE TABLE kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _SETTING_DEFAULTS = {
        "user_weight": "70.0",
        "difficulty": "normal",
        "daily_goal": "50",
        "challenge_duration": "60",
        "rest_duration": "45",
        "confidence_threshold": "0.3",
        "voice_enabled": "1",
        "default_exercise": "left_curl",
    }

    def __init__(self, db_path: str = "trainer.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(
                f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
            )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        with self._connection() as conn:
            for key, value in self._SETTING_DEFAULTS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class KeyValueRepository(BaseRepository):
    """Synchronous string store; every write is a total replacement of the key."""

    def get(self, key: str) -> Optional[str]:
        rows = self.fetch_all("SELECT value FROM kv_store WHERE key = ?;", (key,))
        return rows[0][0] if rows else None

    def set(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO kv_store (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )

    def set_many(self, values: Dict[str, str]) -> None:
        """Write all ``values`` in a single transaction."""
        with self._connection() as conn:
            conn.executemany(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                list(values.items()),
            )

    def items(self, prefix: str = "") -> Dict[str, str]:
        rows = self.fetch_all("SELECT key, value FROM kv_store ORDER BY key;")
        return {k: v for k, v in rows if k.startswith(prefix)}

    def clear(self) -> None:
        self._delete_all("kv_store")


class LedgerRepository(KeyValueRepository):
    """Maps :class:`ProgressionLedger` fields onto flat store keys."""

    def _read(self, key: str, parse: Callable[[str], T], default: T) -> T:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return parse(raw)
        except (
            ValueError, TypeError, KeyError, AttributeError, OverflowError
        ) as e:
            logger.warning("Corrupt value for %s (%s); using default", key, e)
            return default

    @staticmethod
    def _parse_count(raw: str) -> int:
        value = int(float(raw))
        if value < 0:
            raise ValueError("negative counter")
        return value

    @staticmethod
    def _parse_history(raw: str) -> List[SetRecord]:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("history must be a list")
        return [SetRecord.from_dict(item) for item in data]

    @staticmethod
    def _parse_totals(raw: str) -> Dict[str, int]:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("totals must be an object")
        return {str(k): int(v) for k, v in data.items()}

    @staticmethod
    def _parse_trophies(raw: str) -> List[str]:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("trophies must be a list")
        return [str(t) for t in data]

    @staticmethod
    def _parse_calendar(raw: str) -> Dict[str, bool]:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("calendar must be an object")
        return {
            datetime.date.fromisoformat(k).isoformat(): bool(v)
            for k, v in data.items()
        }

    def load(self) -> ProgressionLedger:
        """Build the ledger from the store, defaulting missing or corrupt keys."""
        best: Dict[str, int] = {}
        history: Dict[str, List[SetRecord]] = {}
        for exercise in EXERCISES:
            value = self._read(ledger.best_key(exercise), self._parse_count, None)
            if value is not None:
                best[exercise] = value
            records = self._read(ledger.history_key(exercise), self._parse_history, None)
            if records is not None:
                history[exercise] = records
        return ProgressionLedger(
            xp=self._read(ledger.TOTAL_XP, self._parse_count, 0),
            total_reps=self._read(ledger.TOTAL_REPS, self._parse_count, 0),
            best=best,
            history=history,
            daily_total=self._read(ledger.DAILY_TOTAL, self._parse_count, 0),
            muscle_totals=self._read(ledger.MUSCLE_TOTALS, self._parse_totals, {}),
            streak=self._read(ledger.STREAK, self._parse_count, 0),
            last_workout_date=self._read(
                ledger.LAST_WORKOUT_DATE, datetime.date.fromisoformat, None
            ),
            trophies=self._read(ledger.TROPHIES, self._parse_trophies, []),
            calendar=self._read(ledger.ACTIVITY_CALENDAR, self._parse_calendar, {}),
            challenges_completed=self._read(
                ledger.CHALLENGES_COMPLETED, self._parse_count, 0
            ),
            routines_completed=self._read(
                ledger.ROUTINES_COMPLETED, self._parse_count, 0
            ),
        )

    @staticmethod
    def serialize(state: ProgressionLedger) -> Dict[str, str]:
        values = {
            ledger.TOTAL_XP: str(state.xp),
            ledger.TOTAL_REPS: str(state.total_reps),
            ledger.DAILY_TOTAL: str(state.daily_total),
            ledger.MUSCLE_TOTALS: json.dumps(state.muscle_totals, sort_keys=True),
            ledger.STREAK: str(state.streak),
            ledger.TROPHIES: json.dumps(state.trophies),
            ledger.ACTIVITY_CALENDAR: json.dumps(state.calendar, sort_keys=True),
            ledger.CHALLENGES_COMPLETED: str(state.challenges_completed),
            ledger.ROUTINES_COMPLETED: str(state.routines_completed),
        }
        if state.last_workout_date is not None:
            values[ledger.LAST_WORKOUT_DATE] = state.last_workout_date.isoformat()
        for exercise, value in state.best.items():
            values[ledger.best_key(exercise)] = str(value)
        for exercise, records in state.history.items():
            values[ledger.history_key(exercise)] = json.dumps(
                [r.to_dict() for r in records]
            )
        return values

    def save(self, state: ProgressionLedger) -> None:
        self.set_many(self.serialize(state))

    def export_document(self) -> Dict[str, str]:
        """Return every stored ledger key as a flat key -> value mapping."""
        names = set(ledger.GLOBAL_KEYS)
        for exercise in EXERCISES:
            names.add(ledger.best_key(exercise))
            names.add(ledger.history_key(exercise))
        return {k: v for k, v in self.items().items() if k in names}


class SettingsRepository(BaseRepository):
    """Repository for trainer settings synchronized with YAML."""

    _BOOL_KEYS = {"voice_enabled"}
    _TRUE = {"1", "1.0", "true", "True"}

    def __init__(
        self, db_path: str = "trainer.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str | bool] = {}
        for k, v in rows:
            if k in self._BOOL_KEYS:
                result[k] = v in self._TRUE
                continue
            try:
                result[k] = float(v)
            except ValueError:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self._BOOL_KEYS:
                    val = "1" if val in self._TRUE else "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def get_float(self, key: str, default: float) -> float:
        try:
            return float(self.get_text(key, str(default)))
        except ValueError:
            logger.warning("Setting %s is not a number; using %s", key, default)
            return default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            logger.warning("Setting %s is not a number; using %s", key, default)
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in self._TRUE

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_float(self, key: str, value: float) -> None:
        self.set_text(key, str(value))

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        return self._raw_all_settings()
