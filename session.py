"""
Transient per-user assessment state.

An AssessmentSession moves through
idle -> image_selected -> assessing -> treatment_pending -> complete.
Selecting a new image from any state goes back to image_selected and drops
the previous result. An assessment that is still running when a new image
arrives is not aborted; whatever it produces afterwards is ignored.
"""
import logging
import threading
import time
import uuid
from collections import OrderedDict
from typing import List, Optional, Tuple

import config
from assessment import Diagnoser, run_assessment
from images import validate_upload
from models import (
    AssessmentResult,
    AssessmentState,
    Notification,
    SessionSnapshot,
)
from treatment import TreatmentGenerator
from views import render_result

logger = logging.getLogger(__name__)

TABS = ("diseases", "treatment")


class AssessmentSession:

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.state = AssessmentState.IDLE
        self.is_loading = False
        self.is_generating_treatment = False
        self.active_tab = "diseases"
        self.result: Optional[AssessmentResult] = None
        self.notifications: List[Notification] = []
        self.filename: Optional[str] = None
        self._image: Optional[bytes] = None
        # bumped on every image selection and assessment start
        self._generation = 0
        self._lock = threading.Lock()

    def select_image(self, image_bytes: bytes, content_type: Optional[str], filename: Optional[str] = None) -> SessionSnapshot:
        """Raises InvalidImageError and leaves the session untouched on a bad upload."""
        validate_upload(image_bytes, content_type)

        with self._lock:
            self._generation += 1
            self._image = image_bytes
            self.filename = filename
            self.result = None
            self.notifications = []
            self.is_loading = False
            self.is_generating_treatment = False
            self.active_tab = "diseases"
            self.state = AssessmentState.IMAGE_SELECTED
            logger.info(f"Session {self.session_id}: image selected ({filename}, {len(image_bytes)} bytes)")
            return self._snapshot()

    def assess(self, diagnoser: Diagnoser, generator: TreatmentGenerator) -> SessionSnapshot:
        with self._lock:
            if self._image is None:
                self._notify(
                    "No image selected",
                    "Please select an image to assess",
                    "destructive",
                )
                return self._snapshot()

            self._generation += 1
            token = self._generation
            image = self._image
            self.result = None
            self.notifications = []
            self.is_loading = True
            self.state = AssessmentState.ASSESSING

        def on_diagnosis(result: AssessmentResult) -> None:
            with self._lock:
                if token != self._generation:
                    return
                self.result = result
                self.is_generating_treatment = True
                self.state = AssessmentState.TREATMENT_PENDING

        try:
            outcome = run_assessment(image, diagnoser, generator, on_diagnosis=on_diagnosis)
        except Exception as e:
            logger.error(f"Session {self.session_id}: error assessing plant health: {e}", exc_info=True)
            with self._lock:
                if token == self._generation:
                    self.result = None
                    self.is_loading = False
                    self.is_generating_treatment = False
                    self.state = AssessmentState.IMAGE_SELECTED
                    self._notify(
                        "Assessment Failed",
                        "Failed to assess plant health. Please try again.",
                        "destructive",
                    )
                return self._snapshot()

        with self._lock:
            if token != self._generation:
                logger.info(f"Session {self.session_id}: discarding result of a superseded assessment")
                return self._snapshot()

            self.result = outcome.result
            self.is_generating_treatment = False
            self.is_loading = False
            self.state = AssessmentState.COMPLETE
            if outcome.used_fallback:
                self._notify(
                    "Treatment Plan Generation Failed",
                    "We couldn't generate a treatment plan, but you can still see the disease diagnosis.",
                    "destructive",
                )
            self._notify(
                "Assessment Complete",
                "Plant health assessment has been completed successfully",
            )
            return self._snapshot()

    def select_tab(self, tab: str) -> SessionSnapshot:
        if tab not in TABS:
            raise ValueError(f"Unknown tab: {tab}")
        with self._lock:
            self.active_tab = tab
            return self._snapshot()

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return self._snapshot()

    def _notify(self, title: str, description: str, variant: str = "default") -> None:
        self.notifications.append(Notification(title=title, description=description, variant=variant))

    def _snapshot(self) -> SessionSnapshot:
        view = None
        if self.result is not None:
            view = render_result(self.result, self.is_generating_treatment)
        return SessionSnapshot(
            session_id=self.session_id,
            state=self.state,
            is_loading=self.is_loading,
            is_generating_treatment=self.is_generating_treatment,
            active_tab=self.active_tab,
            filename=self.filename,
            result=self.result,
            view=view,
            notifications=list(self.notifications),
        )


class SessionStore:
    """
    In-memory sessions, lost on restart. Sessions idle for longer than
    `ttl` seconds are dropped, and once `max_sessions` is reached the least
    recently used one is evicted to make room.
    """

    def __init__(self, ttl: Optional[float] = None, max_sessions: Optional[int] = None, clock=time.monotonic):
        self.ttl = config.SESSION_TTL if ttl is None else ttl
        self.max_sessions = config.MAX_SESSIONS if max_sessions is None else max_sessions
        self._clock = clock
        # session_id -> (session, last access), oldest access first
        self._sessions: "OrderedDict[str, Tuple[AssessmentSession, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def create(self) -> AssessmentSession:
        session = AssessmentSession()
        with self._lock:
            now = self._clock()
            self._expire(now)
            while len(self._sessions) >= self.max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info(f"Session store full, evicted session {evicted_id}")
            self._sessions[session.session_id] = (session, now)
        return session

    def get(self, session_id: str) -> AssessmentSession:
        """Raises KeyError for unknown or expired ids."""
        with self._lock:
            now = self._clock()
            self._expire(now)
            session, _ = self._sessions[session_id]
            self._sessions[session_id] = (session, now)
            self._sessions.move_to_end(session_id)
            return session

    def delete(self, session_id: str) -> None:
        with self._lock:
            del self._sessions[session_id]

    def _expire(self, now: float) -> None:
        while self._sessions:
            session_id, (_, last_access) = next(iter(self._sessions.items()))
            if now - last_access <= self.ttl:
                break
            del self._sessions[session_id]
            logger.info(f"Session {session_id} expired after {self.ttl:.0f}s idle")

    def __len__(self) -> int:
        return len(self._sessions)
