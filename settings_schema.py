import datetime
import json
import re
from typing import Annotated, Dict, List

from pydantic import (
    AfterValidator,
    BaseModel,
    Field,
    Json,
    StrictInt,
    TypeAdapter,
    ValidationError,
)

from exercise_catalog import EXERCISES, Difficulty
import ledger


class SettingsSchema(BaseModel):
    user_weight: float = Field(70.0, gt=0)
    difficulty: Difficulty = Difficulty.NORMAL
    daily_goal: int = Field(50, ge=1)
    challenge_duration: int = Field(60, ge=1)
    rest_duration: int = Field(45, ge=1)
    confidence_threshold: float = Field(0.3, ge=0, le=1)
    voice_enabled: bool = True
    default_exercise: str = "left_curl"


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
    exercise = data.get("default_exercise")
    if exercise is not None and exercise not in EXERCISES:
        raise ValueError(f"unknown exercise: {exercise}")


class LedgerImportError(ValueError):
    """Raised when an import document cannot be applied."""


def _iso_date(value: str) -> str:
    datetime.date.fromisoformat(value)
    return value


def _naive_timestamp(value: str) -> str:
    if datetime.datetime.fromisoformat(value).tzinfo is not None:
        raise ValueError("time must not carry a timezone")
    return value


# Stored dates and times are ISO strings read back with fromisoformat.
IsoDate = Annotated[str, AfterValidator(_iso_date)]
NaiveTimestamp = Annotated[str, AfterValidator(_naive_timestamp)]


class SetRecordModel(BaseModel):
    reps: int = Field(ge=1)
    time: NaiveTimestamp
    exercise: str
    mode: str = "standard"


_COUNTER = TypeAdapter(Json[StrictInt])
_MUSCLES = TypeAdapter(Json[Dict[str, int]])
_HISTORY = TypeAdapter(Json[List[SetRecordModel]])
_TROPHIES = TypeAdapter(Json[List[str]])
_CALENDAR = TypeAdapter(Json[Dict[IsoDate, bool]])
_DATE = TypeAdapter(IsoDate)

_SCOPED = re.compile(r"^(best|history)_(?P<exercise>.+)$")


def _adapter_for(key: str) -> TypeAdapter:
    if key in ledger.INT_KEYS:
        return _COUNTER
    if key == ledger.MUSCLE_TOTALS:
        return _MUSCLES
    if key == ledger.TROPHIES:
        return _TROPHIES
    if key == ledger.ACTIVITY_CALENDAR:
        return _CALENDAR
    if key == ledger.LAST_WORKOUT_DATE:
        return _DATE
    match = _SCOPED.match(key)
    if match and match.group("exercise") in EXERCISES:
        return _HISTORY if key.startswith("history_") else _COUNTER
    raise LedgerImportError(f"unknown ledger key: {key}")


def validate_ledger_document(doc) -> Dict[str, str]:
    """Check every entry of a flat import document.

    Returns the document with all values as strings. Raises
    :class:`LedgerImportError` on the first bad key or value.
    """
    if not isinstance(doc, dict):
        raise LedgerImportError("import document must be a JSON object")
    clean: Dict[str, str] = {}
    for key, value in doc.items():
        if not isinstance(key, str):
            raise LedgerImportError(f"invalid key: {key!r}")
        adapter = _adapter_for(key)
        if value is None:
            raise LedgerImportError(f"missing value for {key}")
        raw = value if isinstance(value, str) else json.dumps(value)
        try:
            parsed = adapter.validate_python(raw)
        except ValidationError as e:
            raise LedgerImportError(f"invalid value for {key}: {e}") from None
        if isinstance(parsed, int) and parsed < 0:
            raise LedgerImportError(f"{key} must not be negative")
        if isinstance(parsed, dict) and any(
            isinstance(v, int) and not isinstance(v, bool) and v < 0
            for v in parsed.values()
        ):
            raise LedgerImportError(f"{key} must not contain negative totals")
        clean[key] = raw
    return clean
