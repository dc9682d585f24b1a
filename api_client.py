import os
from typing import Any, Dict, Optional

import requests

from schemas import ChatContext, HabitPlan

API_BASE = os.getenv("HABITAI_API_BASE", "http://localhost:3000")


class ApiClientError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class HabitAIClient:
    """
    Thin client for the HabitAI backend.

    Raises ApiClientError with details if the API responds with 4xx/5xx
    or cannot be reached.
    """

    def __init__(self, base_url: str = API_BASE, timeout: float = 60, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, payload: Optional[dict] = None, params: Optional[dict] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, json=payload, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ApiClientError(f"API {path} request failed: {e}") from e

        if resp.status_code >= 400:
            try:
                data = resp.json()
            except ValueError:
                data = resp.text
            raise ApiClientError(
                f"API {path} failed: {resp.status_code} – {data}",
                status_code=resp.status_code,
                payload=data,
            )

        return resp.json()

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")

    def chat(
        self,
        message: str,
        context: Optional[ChatContext] = None,
        voice_mode: bool = False,
        session_id: Optional[str] = None,
    ) -> str:
        payload: Dict[str, Any] = {"message": message, "voiceMode": voice_mode}
        if context is not None:
            payload["context"] = context.model_dump(by_alias=True)
        if session_id:
            payload["sessionId"] = session_id
        return self._request("POST", "/api/chat", payload)["response"]

    def reset_chat(self, session_id: str) -> None:
        self._request("POST", "/api/chat/reset", {"sessionId": session_id})

    def create_habit_plan(self, habit_description: str) -> HabitPlan:
        data = self._request("POST", "/api/habit-plan", {"habitDescription": habit_description})
        return HabitPlan.model_validate(data["plan"])

    def analyze_missed_day(self, reason: str, context: Optional[ChatContext] = None) -> str:
        payload: Dict[str, Any] = {"reason": reason}
        if context is not None:
            payload["context"] = context.model_dump(by_alias=True)
        return self._request("POST", "/api/analyze-missed", payload)["analysis"]
