import argparse
import json
import logging
import shutil
import sys

from db import LedgerRepository
from exercise_catalog import EXERCISES
from gamification_service import GamificationService
from settings_schema import LedgerImportError
from workout_session import (
    EventQueue,
    FinishSet,
    LogNotifier,
    PoseFrame,
    SelectExercise,
    WorkoutSession,
)


def export_ledger(db_path: str, out_path: str) -> None:
    service = GamificationService(LedgerRepository(db_path))
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(service.export_document(), f, indent=2, sort_keys=True)


def import_ledger(db_path: str, in_path: str) -> list[str]:
    """Apply an exported document; raises ``LedgerImportError`` if malformed."""
    with open(in_path, "r", encoding="utf-8") as f:
        try:
            doc = json.load(f)
        except json.JSONDecodeError as e:
            raise LedgerImportError(f"not valid JSON: {e}") from None
    service = GamificationService(LedgerRepository(db_path))
    return service.import_document(doc)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def status(db_path: str) -> dict:
    service = GamificationService(LedgerRepository(db_path))
    return service.ledger.to_dict()


def replay(db_path: str, frames_path: str, exercise: str) -> dict:
    """Feed recorded keypoint frames (one JSON list per line) and save the set."""
    service = GamificationService(LedgerRepository(db_path))
    session = WorkoutSession(service, notifier=LogNotifier(), exercise=exercise)
    queue = EventQueue()
    queue.put(SelectExercise(exercise))
    with open(frames_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            queue.put(PoseFrame(tuple(json.loads(line))))
    queue.process(session)
    count = session.counter.count
    calories = session.counter.calories
    result = queue.submit(session, FinishSet())
    return {
        "reps": count,
        "calories": calories,
        "xp_gained": result.xp_gained if result else 0,
        "unlocked": [t.id for t in result.unlocked] if result else [],
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--db", default="trainer.db")
    exp.add_argument("--out", default="ledger.json")

    imp = sub.add_parser("import")
    imp.add_argument("--db", default="trainer.db")
    imp.add_argument("--in", dest="src", required=True)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="trainer.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="trainer.db")

    st = sub.add_parser("status")
    st.add_argument("--db", default="trainer.db")

    rep = sub.add_parser("replay")
    rep.add_argument("--db", default="trainer.db")
    rep.add_argument("--frames", required=True)
    rep.add_argument("--exercise", choices=sorted(EXERCISES), default="left_curl")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.cmd == "export":
        export_ledger(args.db, args.out)
    elif args.cmd == "import":
        try:
            keys = import_ledger(args.db, args.src)
        except LedgerImportError as e:
            print(f"Import failed: {e}", file=sys.stderr)
            return 1
        print(f"Imported {len(keys)} keys")
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "status":
        print(json.dumps(status(args.db), indent=2))
    elif args.cmd == "replay":
        print(json.dumps(replay(args.db, args.frames, args.exercise), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
