from __future__ import annotations

import os
from dataclasses import dataclass

import httpx


class BackendError(RuntimeError):
    """Raised when the backend is unreachable or rejects a command."""

    def __init__(
        self, message: str, status_code: int | None = None, error: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error


@dataclass(frozen=True)
class DemoInfo:
    """Catalog entry returned by the demos endpoint."""

    id: str
    name: str
    description: str
    type: str
    default_params: dict[str, object]


@dataclass(frozen=True)
class ClusteringAccepted:
    """Acknowledgement of a clustering request; results arrive as channel events."""

    k: int
    estimated_seconds: float
    raw: dict[str, object]


class PresenterClient:
    """HTTP client the presenter dashboard uses to drive one channel."""

    def __init__(
        self,
        channel: str = "main",
        base_url: str | None = None,
        timeout_seconds: float = 8.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        fallback = os.getenv("BACKEND_URL", "http://localhost:8000")
        self.channel = channel
        self._base_url: str = base_url if base_url is not None else fallback
        self._timeout = httpx.Timeout(timeout_seconds)
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=transport,
        )

    @property
    def _prefix(self) -> str:
        return f"/v1/channels/{self.channel}"

    def list_demos(self) -> list[DemoInfo]:
        data = self._request("GET", "/v1/demos")
        demos = data.get("demos", [])
        if not isinstance(demos, list):
            return []
        parsed: list[DemoInfo] = []
        for item in demos:
            if not isinstance(item, dict) or "id" not in item:
                continue
            parsed.append(
                DemoInfo(
                    id=str(item["id"]),
                    name=str(item.get("name", item["id"])),
                    description=str(item.get("description", "")),
                    type=str(item.get("type", "clustering")),
                    default_params=dict(item.get("default_params") or {}),
                )
            )
        return parsed

    def get_snapshot(self) -> dict[str, object]:
        """Return the channel status payload, including ``state`` and ``sequence``."""
        return self._request("GET", f"{self._prefix}/status")

    def start(self, script_id: str) -> dict[str, object]:
        return self._request("POST", f"{self._prefix}/start", json={"script_id": script_id})

    def add_point(self, x: float, y: float, point_id: str | None = None) -> dict[str, object]:
        payload: dict[str, object] = {"x": x, "y": y}
        if point_id is not None:
            payload["id"] = point_id
        return self._request("POST", f"{self._prefix}/points", json=payload)

    def move_point(self, point_id: str, x: float, y: float) -> dict[str, object]:
        return self._request("PATCH", f"{self._prefix}/points/{point_id}", json={"x": x, "y": y})

    def remove_point(self, point_id: str) -> dict[str, object]:
        return self._request("DELETE", f"{self._prefix}/points/{point_id}")

    def clear_points(self) -> dict[str, object]:
        return self._request("DELETE", f"{self._prefix}/points")

    def run_clustering(self, k: int | None = None) -> ClusteringAccepted:
        payload = {"k": k} if k is not None else {}
        data = self._request("POST", f"{self._prefix}/clustering", json=payload)
        estimated = data.get("estimated_seconds", 0.0)
        accepted_k = data.get("k", k)
        return ClusteringAccepted(
            k=int(accepted_k) if isinstance(accepted_k, int) else 0,
            estimated_seconds=float(estimated) if isinstance(estimated, (int, float)) else 0.0,
            raw=data,
        )

    def stop(self) -> dict[str, object]:
        return self._request("POST", f"{self._prefix}/stop")

    def ping(self) -> bool:
        try:
            self._request("GET", "/v1/health")
        except BackendError:
            return False
        return True

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    def close(self) -> None:
        self._client.close()

    def _request(
        self, method: str, path: str, json: dict[str, object] | None = None
    ) -> dict[str, object]:
        try:
            response = self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise BackendError(str(exc)) from exc
        if response.is_error:
            error, detail = self._parse_error(response)
            raise BackendError(
                f"Backend error {response.status_code}: {detail}",
                response.status_code,
                error,
            )
        try:
            payload = response.json()
        except ValueError:
            return {}
        if isinstance(payload, dict):
            return payload
        return {}

    def _parse_error(self, response: httpx.Response) -> tuple[str | None, str]:
        try:
            payload = response.json()
        except ValueError:
            return None, response.text
        if not isinstance(payload, dict):
            return None, response.text
        error = payload.get("error")
        detail = payload.get("detail", response.text)
        return (str(error) if error is not None else None), str(detail)
