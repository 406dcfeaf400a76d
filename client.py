import requests
from typing import Optional


class PituGymClient:
    """Simple REST client for the PituGym API."""

    def __init__(
        self, base_url: str = "http://localhost:8000", api_token: Optional[str] = None
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        if api_token:
            self.session.headers["X-API-Token"] = api_token

    def _request(self, method: str, path: str, **kwargs):
        resp = self.session.request(method, f"{self.base_url}{path}", **kwargs)
        resp.raise_for_status()
        return resp.json()

    def create_plan(self, plan: dict) -> str:
        return self._request("POST", "/plans", json=plan)["id"]

    def list_plans(self) -> list[dict]:
        return self._request("GET", "/plans")

    def start_session(self, plan_id: str, day_id: str) -> dict:
        return self._request(
            "POST", "/sessions", params={"plan_id": plan_id, "day_id": day_id}
        )

    def update_set(
        self,
        session_id: str,
        exercise_index: int,
        set_index: int,
        weight: Optional[str] = None,
        reps: Optional[str] = None,
    ) -> dict:
        params = {k: v for k, v in {"weight": weight, "reps": reps}.items() if v is not None}
        return self._request(
            "PUT",
            f"/sessions/{session_id}/sets/{exercise_index}/{set_index}",
            params=params,
        )

    def toggle_set(self, session_id: str, exercise_index: int, set_index: int) -> dict:
        return self._request(
            "POST", f"/sessions/{session_id}/sets/{exercise_index}/{set_index}/toggle"
        )

    def skip_rest(self, session_id: str) -> dict:
        return self._request("POST", f"/sessions/{session_id}/rest/skip")

    def summary(self, session_id: str) -> dict:
        return self._request("POST", f"/sessions/{session_id}/summary")

    def save(self, session_id: str) -> dict:
        return self._request("POST", f"/sessions/{session_id}/save")

    def list_logs(self, **params: str) -> list[dict]:
        return self._request("GET", "/logs", params=params)
