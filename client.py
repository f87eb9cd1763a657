import requests
from typing import Optional


class TrainerClient:
    """Simple REST client for the trainer API."""

    def __init__(self, base_url: str = "http://localhost:8000", session=None) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = session or requests.Session()

    def _get(self, path: str, **params):
        resp = self.http.get(f"{self.base_url}{path}", params=params or None)
        resp.raise_for_status()
        return resp.json()

    def _post(self, path: str, json: Optional[dict] = None, **params):
        resp = self.http.post(
            f"{self.base_url}{path}", params=params or None, json=json
        )
        resp.raise_for_status()
        return resp.json()

    def state(self) -> dict:
        return self._get("/state")

    def select_exercise(self, exercise: str) -> dict:
        return self._post("/exercise", exercise=exercise)

    def set_difficulty(self, difficulty: str) -> dict:
        return self._post("/difficulty", difficulty=difficulty)

    def send_pose(self, keypoints: list[dict]) -> dict:
        return self._post("/pose", json={"keypoints": keypoints})

    def finish_set(self) -> dict:
        return self._post("/finish")

    def start_challenge(self) -> dict:
        return self._post("/challenge/start")

    def exit_challenge(self) -> dict:
        return self._post("/challenge/exit")

    def skip_rest(self) -> dict:
        return self._post("/rest/skip")

    def start_routine(self) -> dict:
        return self._post("/routine/start")

    def ledger(self) -> dict:
        return self._get("/ledger")

    def export_ledger(self) -> dict:
        return self._get("/export")

    def import_ledger(self, doc: dict) -> dict:
        return self._post("/import", json=doc)
