import datetime
import logging
import os
import threading
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Body, APIRouter
from pydantic import BaseModel

from config import APP_VERSION
from db import LedgerRepository, SettingsRepository
from exercise_catalog import EXERCISES
from gamification_service import GamificationService
from settings_schema import LedgerImportError
from stats_service import StatisticsService
from workout_session import (
    EventQueue,
    ExitChallenge,
    FinishSet,
    Keypoint,
    MemoryNotifier,
    Notifier,
    PoseFrame,
    SelectExercise,
    SetDifficulty,
    SkipRest,
    StartChallenge,
    StartRoutine,
    StopRoutine,
    Tick,
    WorkoutSession,
)
from rep_counter import FormWarning, RepCompleted

logger = logging.getLogger(__name__)


class KeypointModel(BaseModel):
    name: str
    x: float
    y: float
    score: float = 0.0


class PoseFrameModel(BaseModel):
    keypoints: List[KeypointModel]


class Ticker(threading.Thread):
    """Background thread pushing one tick per second while a timer runs."""

    def __init__(self, api: "TrainerAPI", interval: float = 1.0) -> None:
        super().__init__(daemon=True)
        self.api = api
        self.interval = interval
        self.running = True
        self._stop_event = threading.Event()

    def run(self) -> None:
        while self.running:
            if self.api.session.timers_active:
                self.api.queue.submit(self.api.session, Tick())
            self._stop_event.wait(self.interval)

    def stop(self, timeout: float | None = None) -> None:
        self.running = False
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)


class TrainerAPI:
    """Provides REST endpoints for the rep trainer."""

    def __init__(
        self,
        db_path: str = "trainer.db",
        yaml_path: str = "settings.yaml",
        notifier: Optional[Notifier] = None,
        start_ticker: bool = False,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.ledger_repo = LedgerRepository(db_path)
        self.gamification = GamificationService(self.ledger_repo)
        self.notifier = notifier or MemoryNotifier()
        self.session = WorkoutSession.from_settings(
            self.settings, self.gamification, self.notifier
        )
        self.statistics = StatisticsService(
            self.gamification, self.settings.get_float("user_weight", 70.0)
        )
        self.queue = EventQueue()
        self.app = FastAPI(
            title="Trainer API",
            description="REST API for pose-driven rep counting and progression",
            version=APP_VERSION,
            lifespan=self._lifespan,
        )
        self.ticker: Ticker | None = None
        if start_ticker:
            self.ticker = Ticker(self)
            self.ticker.start()
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        yield
        self.shutdown()

    def shutdown(self) -> None:
        """Stop the ticker thread if one is running."""
        if self.ticker is not None:
            self.ticker.stop(timeout=self.ticker.interval + 1)
            logger.info("Ticker stopped")

    def submit(self, event):
        return self.queue.submit(self.session, event)

    def _setup_routes(self) -> None:
        session_router = APIRouter(tags=["Session"])
        ledger_router = APIRouter(prefix="/ledger", tags=["Ledger"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.ledger_repo.get("total_xp")
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.get("/exercises")
        def list_exercises():
            return [p.to_dict() for p in EXERCISES.values()]

        @session_router.get("/state")
        def session_state():
            return self.session.to_dict()

        @session_router.post("/exercise")
        def select_exercise(exercise: str):
            if exercise not in EXERCISES:
                raise HTTPException(status_code=404, detail="exercise not found")
            self.submit(SelectExercise(exercise))
            return self.session.to_dict()

        @session_router.post("/difficulty")
        def set_difficulty(difficulty: str):
            try:
                self.submit(SetDifficulty(difficulty))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return self.session.to_dict()

        @session_router.post("/pose")
        def pose_frame(frame: PoseFrameModel):
            keypoints = tuple(
                Keypoint(k.name, k.x, k.y, k.score) for k in frame.keypoints
            )
            event = self.submit(PoseFrame(keypoints))
            result = {"event": None, "count": self.session.counter.count}
            if isinstance(event, RepCompleted):
                result["event"] = "rep"
            elif isinstance(event, FormWarning):
                result["event"] = "warning"
                result["reason"] = event.reason
            return result

        @session_router.post("/finish")
        def finish_set():
            result = self.submit(FinishSet())
            return {
                "saved": result is not None,
                "result": result.to_dict() if result else None,
                "state": self.session.to_dict(),
            }

        @session_router.post("/tick")
        def tick():
            result = self.submit(Tick())
            return {
                "result": result.to_dict() if result else None,
                "state": self.session.to_dict(),
            }

        @session_router.post("/challenge/start")
        def start_challenge():
            self.submit(StartChallenge())
            return self.session.to_dict()

        @session_router.post("/challenge/exit")
        def exit_challenge():
            self.submit(ExitChallenge())
            return self.session.to_dict()

        @session_router.post("/rest/skip")
        def skip_rest():
            self.submit(SkipRest())
            return self.session.to_dict()

        @session_router.post("/routine/start")
        def start_routine():
            self.submit(StartRoutine())
            return self.session.to_dict()

        @session_router.post("/routine/stop")
        def stop_routine():
            self.submit(StopRoutine())
            return self.session.to_dict()

        @session_router.get("/notifications")
        def notifications():
            if isinstance(self.notifier, MemoryNotifier):
                return self.notifier.drain()
            return []

        @ledger_router.get("")
        def ledger_overview():
            data = self.gamification.ledger.to_dict()
            goal = self.settings.get_int("daily_goal", 50)
            data["daily_progress"] = self.gamification.daily_progress(goal)
            data["muscle_totals"] = self.gamification.muscle_totals()
            return data

        @ledger_router.get("/history/{exercise}")
        def ledger_history(exercise: str):
            if exercise not in EXERCISES:
                raise HTTPException(status_code=404, detail="exercise not found")
            return [r.to_dict() for r in self.gamification.ledger.history_for(exercise)]

        @self.app.get("/trophies")
        def trophies():
            return self.statistics.trophy_board()

        @self.app.get("/stats/daily")
        def stats_daily(days: int = 7):
            if days < 1:
                raise HTTPException(status_code=400, detail="days must be positive")
            return self.statistics.daily_reps(days)

        @self.app.get("/stats/{exercise}")
        def stats_exercise(exercise: str):
            if exercise not in EXERCISES:
                raise HTTPException(status_code=404, detail="exercise not found")
            summary = self.statistics.exercise_summary(exercise)
            summary["trend"] = self.statistics.trend(exercise)
            return summary

        @self.app.get("/calendar")
        def calendar(year: int | None = None, month: int | None = None):
            today = datetime.date.today()
            try:
                return self.statistics.calendar(year or today.year, month or today.month)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/export")
        def export_ledger():
            return self.gamification.export_document()

        @self.app.post("/import")
        def import_ledger(doc: dict = Body(...)):
            try:
                keys = self.gamification.import_document(doc)
            except LedgerImportError as e:
                logger.warning("Import rejected: %s", e)
                raise HTTPException(status_code=400, detail=str(e))
            return {"imported": keys}

        self.app.include_router(session_router)
        self.app.include_router(ledger_router)


def create_app() -> FastAPI:
    """Factory for ``uvicorn rest_api:create_app --factory``."""
    api = TrainerAPI(
        db_path=os.environ.get("DB_PATH", "trainer.db"),
        yaml_path=os.environ.get("SETTINGS_PATH", "settings.yaml"),
        start_ticker=True,
    )
    return api.app
