from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, Optional

from pydantic import BaseModel

from ooda_agent.dom.views import WebAction, WebObservation
from ooda_agent.utils import now_utc_iso

MAX_OBSERVATIONS = 30
MAX_ACTIONS = 50
MAX_NOTES = 40
SUMMARY_NOTES = 5


class WorldActionLog(BaseModel):
    action: WebAction
    success: bool
    timestamp: str


class WebWorldModel:
    """Rolling per-session memory of what the agent saw and did on the web."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.goal = ''
        self.observations: Deque[WebObservation] = deque(maxlen=MAX_OBSERVATIONS)
        self.actions: Deque[WorldActionLog] = deque(maxlen=MAX_ACTIONS)
        self.notes: Deque[str] = deque(maxlen=MAX_NOTES)

    def set_goal(self, goal: str) -> None:
        self.goal = str(goal or '').strip()

    def add_observation(self, observation: WebObservation) -> None:
        self.observations.append(observation)

    def add_action(self, action: WebAction, success: bool) -> None:
        self.actions.append(WorldActionLog(action=action, success=success, timestamp=now_utc_iso()))

    def add_note(self, note: str) -> None:
        trimmed = str(note or '').strip()
        if trimmed:
            self.notes.append(trimmed)

    @property
    def latest_observation(self) -> Optional[WebObservation]:
        return self.observations[-1] if self.observations else None

    def summary(self) -> Dict[str, Any]:
        latest = self.latest_observation
        return {
            'session_id': self.session_id,
            'goal': self.goal,
            'observations': len(self.observations),
            'actions': len(self.actions),
            'notes': list(self.notes)[-SUMMARY_NOTES:],
            'latest_url': latest.url if latest else None,
        }


class WebWorldModelStore:
    def __init__(self) -> None:
        self._models: Dict[str, WebWorldModel] = {}

    def for_session(self, session_id: str) -> WebWorldModel:
        model = self._models.get(session_id)
        if model is None:
            model = WebWorldModel(session_id)
            self._models[session_id] = model
        return model

    def delete(self, session_id: str) -> None:
        self._models.pop(session_id, None)
