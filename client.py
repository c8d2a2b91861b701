import requests
from typing import Optional


class ProgressionClientError(RuntimeError):
    """Structured error returned by the progression API."""

    def __init__(self, status_code: int, kind: str, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.status_code = status_code
        self.kind = kind
        self.message = message


class ProgressionClient:
    """Simple REST client for the progression API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, **params):
        clean = {k: v for k, v in params.items() if v is not None}
        resp = requests.request(
            method, f"{self.base_url}{path}", params=clean, timeout=self.timeout
        )
        if resp.status_code >= 400:
            try:
                error = resp.json()["error"]
            except (ValueError, KeyError, TypeError):
                resp.raise_for_status()
            raise ProgressionClientError(resp.status_code, error["kind"], error["message"])
        return resp.json()

    def create_rule(
        self, exercise: str, increment: float, deload_threshold: float, target_sessions: int
    ) -> dict:
        return self._request(
            "POST",
            "/progression/rules",
            exercise=exercise,
            increment=increment,
            deload_threshold=deload_threshold,
            target_sessions=target_sessions,
        )

    def get_rule(self, exercise: str) -> dict:
        return self._request("GET", f"/progression/rules/{exercise}")

    def update_rule(self, exercise: str, **changes) -> dict:
        return self._request("PUT", f"/progression/rules/{exercise}", **changes)

    def delete_rule(self, exercise: str) -> None:
        self._request("DELETE", f"/progression/rules/{exercise}")

    def suggest_weight(
        self, user: str, exercise: str, last_weight: float, last_sets: int, last_reps: int
    ) -> dict:
        return self._request(
            "GET",
            "/progression/suggest",
            user=user,
            exercise=exercise,
            last_weight=last_weight,
            last_sets=last_sets,
            last_reps=last_reps,
        )

    def record_progression(self, user: str, exercise: str, new_weight: float) -> dict:
        return self._request(
            "POST", "/progression/record", user=user, exercise=exercise, new_weight=new_weight
        )

    def update_volume(
        self,
        user: str,
        exercise: str,
        sets: int,
        reps: int,
        weight: float,
        week_start: Optional[str] = None,
    ) -> dict:
        return self._request(
            "POST",
            "/volume",
            user=user,
            exercise=exercise,
            sets=sets,
            reps=reps,
            weight=weight,
            week_start=week_start,
        )

    def get_weekly_volume(self, user: str, week_start: Optional[str] = None) -> dict:
        return self._request("GET", "/volume", user=user, week_start=week_start)

    def check_balance(self, user: str, week_start: Optional[str] = None) -> list:
        return self._request("GET", "/volume/balance", user=user, week_start=week_start)["imbalance"]

    def get_suggested_workouts(
        self, user: str, limit: Optional[int] = None, lookback_days: Optional[int] = None
    ) -> list:
        return self._request(
            "GET", "/workouts/suggested", user=user, limit=limit, lookback_days=lookback_days
        )["suggestions"]
