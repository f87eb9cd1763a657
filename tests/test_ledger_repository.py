import datetime
import json
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import KeyValueRepository, LedgerRepository
from gamification_service import GamificationService
from settings_schema import LedgerImportError


class LedgerRepositoryTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_ledger_repo.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.repo = LedgerRepository(self.db_path)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_missing_keys_default(self) -> None:
        ledger = self.repo.load()
        self.assertEqual(ledger.xp, 0)
        self.assertEqual(ledger.streak, 0)
        self.assertIsNone(ledger.last_workout_date)
        self.assertEqual(ledger.history, {})
        self.assertEqual(ledger.trophies, [])
        self.assertEqual(ledger.level, 1)

    def test_corrupt_values_default(self) -> None:
        self.repo.set("total_xp", "lots")
        self.repo.set("streak", "-4")
        self.repo.set("history_squat", "{not json")
        self.repo.set("last_workout_date", "yesterday")
        self.repo.set("muscle_totals", "[1, 2]")
        self.repo.set("trophies", '"century"')
        self.repo.set("total_reps", "inf")
        self.repo.set("challenges_completed", "1e400")
        self.repo.set("best_left_curl", "12")
        with self.assertLogs("db", level="WARNING") as logs:
            ledger = self.repo.load()
        self.assertEqual(ledger.xp, 0)
        self.assertEqual(ledger.streak, 0)
        self.assertEqual(ledger.history, {})
        self.assertIsNone(ledger.last_workout_date)
        self.assertEqual(ledger.muscle_totals, {})
        self.assertEqual(ledger.trophies, [])
        self.assertEqual(ledger.best, {"left_curl": 12})
        self.assertEqual(ledger.total_reps, 0)
        self.assertEqual(ledger.challenges_completed, 0)
        self.assertEqual(len(logs.output), 8)

    def test_overflowing_values_do_not_block_startup(self) -> None:
        self.repo.set("total_xp", "inf")
        self.repo.set("muscle_totals", '{"arms": 1e400}')
        with self.assertLogs("db", level="WARNING"):
            service = GamificationService(self.repo)
        self.assertEqual(service.ledger.xp, 0)
        self.assertEqual(service.ledger.muscle_totals, {})
        result = service.finalize_set("left_curl", 2)
        self.assertEqual(result.xp_gained, 20)
        self.assertEqual(self.repo.get("total_xp"), "20")

    def test_key_scheme(self) -> None:
        service = GamificationService(self.repo)
        service.finalize_set(
            "right_curl",
            7,
            today=datetime.date(2024, 1, 2),
            now=datetime.datetime(2024, 1, 2, 8, 30),
        )
        doc = self.repo.export_document()
        self.assertEqual(doc["total_xp"], "70")
        self.assertEqual(doc["best_right_curl"], "7")
        self.assertEqual(doc["last_workout_date"], "2024-01-02")
        self.assertEqual(
            json.loads(doc["history_right_curl"]),
            [
                {
                    "reps": 7,
                    "time": "2024-01-02T08:30:00",
                    "exercise": "right_curl",
                    "mode": "standard",
                }
            ],
        )
        self.assertEqual(json.loads(doc["activity_calendar"]), {"2024-01-02": True})

    def test_export_ignores_foreign_keys(self) -> None:
        KeyValueRepository(self.db_path).set("unrelated", "x")
        self.repo.set("total_xp", "5")
        self.assertEqual(self.repo.export_document(), {"total_xp": "5"})


class LedgerImportTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_ledger_import.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.repo = LedgerRepository(self.db_path)
        self.service = GamificationService(self.repo)
        self.service.finalize_set("squat", 10)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_import_overwrites_present_keys_only(self) -> None:
        before = self.repo.export_document()
        keys = self.service.import_document({"total_xp": "40", "best_left_curl": 9})
        self.assertEqual(keys, ["best_left_curl", "total_xp"])
        after = self.repo.export_document()
        self.assertEqual(after["total_xp"], "40")
        self.assertEqual(after["best_left_curl"], "9")
        self.assertEqual(after["history_squat"], before["history_squat"])
        self.assertEqual(self.service.ledger.xp, 40)
        self.assertEqual(self.service.ledger.best["squat"], 10)

    def test_round_trip_into_fresh_store(self) -> None:
        doc = self.service.export_document()
        other_path = "test_ledger_import_other.db"
        try:
            other = GamificationService(LedgerRepository(other_path))
            other.import_document(doc)
            self.assertEqual(other.ledger.to_dict(), self.service.ledger.to_dict())
        finally:
            if os.path.exists(other_path):
                os.remove(other_path)

    def test_malformed_document_changes_nothing(self) -> None:
        before = self.repo.export_document()
        bad_docs = [
            {"total_xp": "100", "streak": "many"},
            {"total_xp": "100", "mystery": "1"},
            {"total_xp": "-5"},
            {"history_squat": '[{"reps": "x"}]'},
            {"best_burpee": "3"},
            {"last_workout_date": "someday"},
            {"muscle_totals": '{"legs": -1}'},
            ["total_xp", "1"],
            {"history_squat": '[{"reps": 3, "time": 0, "exercise": "squat"}]'},
            {
                "history_squat": '[{"reps": 3, "time": "2024-01-02T08:30:00+02:00", '
                '"exercise": "squat"}]'
            },
            {"last_workout_date": "0"},
            {"activity_calendar": '{"0": true}'},
            {"total_xp": '"5"'},
            {"streak": True},
        ]
        for doc in bad_docs:
            with self.assertRaises(LedgerImportError, msg=str(doc)):
                self.service.import_document(doc)
            self.assertEqual(self.repo.export_document(), before)
        self.assertEqual(self.service.ledger.xp, 100)

    def test_imported_dates_survive_reload(self) -> None:
        doc = {
            "last_workout_date": "2024-05-01",
            "activity_calendar": '{"2024-05-01": true}',
            "history_left_curl": '[{"reps": 4, "time": "2024-05-01T07:00:00", '
            '"exercise": "left_curl"}]',
        }
        self.service.import_document(doc)
        ledger = LedgerRepository(self.db_path).load()
        self.assertEqual(ledger.last_workout_date, datetime.date(2024, 5, 1))
        self.assertEqual(ledger.calendar, {"2024-05-01": True})
        self.assertEqual(ledger.history_for("left_curl")[0].reps, 4)
        self.assertEqual(len(ledger.history_for("squat")), 1)


if __name__ == "__main__":
    unittest.main()
