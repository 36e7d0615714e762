from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the dashboard service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def upload_readings(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise typer.BadParameter(f"File {path} does not exist.")
        if not path.is_file():
            raise typer.BadParameter(f"Path {path} is not a file.")

        try:
            with path.open("rb") as handle:
                response = self._client.post(
                    "/readings",
                    files={"file": (path.name, handle, "text/csv")},
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def get_series(self, channel: str, lookback_hours: int, weekly: bool = False) -> Dict[str, Any]:
        return self._get(
            f"/channels/{channel}/series",
            params={"lookback_hours": lookback_hours, "weekly": weekly},
        )

    def get_thresholds(
        self, channel: str, lookback_hours: int, sigma: Optional[float] = None
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"lookback_hours": lookback_hours}
        if sigma is not None:
            params["sigma"] = sigma
        return self._get(f"/channels/{channel}/thresholds", params=params)

    def get_reliability(self, period_hours: float) -> Dict[str, Any]:
        return self._get("/reliability", params={"period_hours": period_hours})

    def get_longevity(self) -> Dict[str, Any]:
        return self._get("/longevity")

    def get_security_status(self) -> Dict[str, Any]:
        return self._get("/security/status")

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self._client.get(path, params=params)
            if response.status_code == 404:
                raise typer.BadParameter(f"Resource {path} was not found.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
