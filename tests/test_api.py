import math
import os
import sys
import datetime
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import TrainerAPI
from exercise_catalog import get_profile


def keypoints(exercise: str, angle: float, score: float = 0.9) -> list[dict]:
    proximal, vertex, distal = get_profile(exercise).joints
    rad = math.radians(angle)
    return [
        {"name": proximal, "x": 50.0, "y": 0.0, "score": score},
        {"name": vertex, "x": 0.0, "y": 0.0, "score": score},
        {"name": distal, "x": 50.0 * math.cos(rad), "y": 50.0 * math.sin(rad), "score": score},
    ]


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_trainer.db"
        self.yaml_path = "test_trainer.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = TrainerAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def pose(self, exercise: str, angle: float, score: float = 0.9) -> dict:
        resp = self.client.post("/pose", json={"keypoints": keypoints(exercise, angle, score)})
        self.assertEqual(resp.status_code, 200)
        return resp.json()

    def test_health_and_exercises(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})
        data = self.client.get("/exercises").json()
        self.assertEqual([e["id"] for e in data], ["left_curl", "right_curl", "squat", "jumping_jack"])
        self.assertEqual(data[3]["type"], "extend")

    def test_full_workflow(self) -> None:
        resp = self.client.post("/exercise", params={"exercise": "squat"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["thresholds"], {"active": 100, "rest": 160})

        self.assertEqual(self.pose("squat", 170)["event"], None)
        self.assertEqual(self.pose("squat", 150)["event"], None)
        self.assertEqual(self.pose("squat", 90)["event"], None)
        self.assertEqual(self.pose("squat", 170), {"event": "rep", "count": 1})
        self.pose("squat", 150)
        warning = self.pose("squat", 170)
        self.assertEqual(warning["event"], "warning")
        self.assertEqual(warning["reason"], "incomplete range")

        resp = self.client.post("/finish")
        body = resp.json()
        self.assertTrue(body["saved"])
        self.assertEqual(body["result"]["record"]["reps"], 1)
        self.assertEqual(body["result"]["unlocked"], ["first_rep"])
        self.assertEqual(body["state"]["rest_remaining"], 45)

        ledger = self.client.get("/ledger").json()
        self.assertEqual(ledger["xp"], 10)
        self.assertEqual(ledger["level"], 1)
        self.assertEqual(ledger["best"], {"squat": 1})
        self.assertEqual(ledger["daily_progress"], {"total": 1, "goal": 50, "completed": False})
        self.assertEqual(ledger["muscle_totals"]["legs"], 1)

        history = self.client.get("/ledger/history/squat").json()
        self.assertEqual(len(history), 1)
        self.assertEqual(self.client.post("/rest/skip").json()["rest_remaining"], 0)

        messages = self.client.get("/notifications").json()
        self.assertIn("Set saved.", messages)
        self.assertEqual(self.client.get("/notifications").json(), [])

    def test_empty_finish_not_saved(self) -> None:
        body = self.client.post("/finish").json()
        self.assertFalse(body["saved"])
        self.assertEqual(self.client.get("/ledger").json()["xp"], 0)

    def test_low_confidence_ignored(self) -> None:
        self.client.post("/exercise", params={"exercise": "squat"})
        self.pose("squat", 90, score=0.2)
        self.assertEqual(self.client.get("/state").json()["rep_state"], "rest")

    def test_unknown_exercise_and_difficulty(self) -> None:
        self.assertEqual(self.client.post("/exercise", params={"exercise": "burpee"}).status_code, 404)
        self.assertEqual(self.client.post("/difficulty", params={"difficulty": "brutal"}).status_code, 400)
        self.assertEqual(self.client.get("/ledger/history/burpee").status_code, 404)
        self.assertEqual(self.client.get("/stats/burpee").status_code, 404)
        resp = self.client.post("/difficulty", params={"difficulty": "easy"})
        self.assertEqual(resp.json()["difficulty"], "easy")

    def test_challenge_routes(self) -> None:
        self.client.post("/exercise", params={"exercise": "jumping_jack"})
        state = self.client.post("/challenge/start").json()
        self.assertEqual(state["mode"], "challenge")
        for _ in range(3):
            self.pose("jumping_jack", 20)
            self.pose("jumping_jack", 160)
        for _ in range(59):
            self.client.post("/tick")
        body = self.client.post("/tick").json()
        self.assertEqual(body["result"]["record"]["mode"], "challenge")
        self.assertEqual(body["state"]["mode"], "game_over")
        self.assertEqual(self.client.post("/challenge/exit").json()["mode"], "standard")
        ledger = self.client.get("/ledger").json()
        self.assertEqual(ledger["challenges_completed"], 1)
        self.assertEqual(ledger["best"], {})

    def test_routine_routes(self) -> None:
        state = self.client.post("/routine/start").json()
        self.assertTrue(state["routine"]["active"])
        self.assertEqual(state["exercise"], "squat")
        state = self.client.post("/routine/stop").json()
        self.assertFalse(state["routine"]["active"])

    def test_stats_and_calendar(self) -> None:
        self.client.post("/exercise", params={"exercise": "left_curl"})
        for angle in (160, 40, 160, 40, 160):
            self.pose("left_curl", angle)
        self.client.post("/finish")
        stats = self.client.get("/stats/left_curl").json()
        self.assertEqual(stats["sets"], 1)
        self.assertEqual(stats["total_reps"], 2)
        self.assertEqual(stats["calories"], 1.0)
        self.assertEqual(stats["trend"][0]["reps"], 2)
        daily = self.client.get("/stats/daily", params={"days": 3}).json()
        self.assertEqual(len(daily), 3)
        self.assertEqual(daily[-1]["reps"], 2)
        today = datetime.date.today()
        days = self.client.get("/calendar").json()
        marked = [d["date"] for d in days if d["active"]]
        self.assertEqual(marked, [today.isoformat()])
        self.assertEqual(self.client.get("/calendar", params={"month": 13}).status_code, 400)
        trophies = self.client.get("/trophies").json()
        self.assertTrue(trophies[0]["unlocked"])

    def test_export_import(self) -> None:
        self.client.post("/exercise", params={"exercise": "squat"})
        for angle in (170, 90, 170):
            self.pose("squat", angle)
        self.client.post("/finish")
        doc = self.client.get("/export").json()
        self.assertEqual(doc["total_xp"], "10")

        resp = self.client.post("/import", json={"total_xp": "250", "streak": "oops"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.client.get("/ledger").json()["xp"], 10)

        resp = self.client.post("/import", json={"total_xp": "250"})
        self.assertEqual(resp.json(), {"imported": ["total_xp"]})
        ledger = self.client.get("/ledger").json()
        self.assertEqual(ledger["xp"], 250)
        self.assertEqual(ledger["level"], 3)
        self.assertEqual(ledger["best"], {"squat": 1})

    def test_settings_drive_session(self) -> None:
        self.api.settings.set_text("default_exercise", "right_curl")
        self.api.settings.set_text("difficulty", "hard")
        api2 = TrainerAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        state = TestClient(api2.app).get("/state").json()
        self.assertEqual(state["exercise"], "right_curl")
        self.assertEqual(state["thresholds"], {"active": 40, "rest": 150})

    def test_ticker_stops_on_shutdown(self) -> None:
        api = TrainerAPI(db_path=self.db_path, yaml_path=self.yaml_path, start_ticker=True)
        self.assertTrue(api.ticker.is_alive())
        with TestClient(api.app) as client:
            self.assertEqual(client.get("/health").status_code, 200)
        self.assertFalse(api.ticker.is_alive())
        self.assertFalse(api.ticker.running)


if __name__ == "__main__":
    unittest.main()
