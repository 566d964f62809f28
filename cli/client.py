from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the relay weather service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.request_timeout)

    def close(self) -> None:
        self._client.close()

    def list_stations(self) -> List[Dict[str, Any]]:
        payload = self._get("/stations")
        if not isinstance(payload, list):
            raise typer.BadParameter("Unexpected response payload when listing stations.")
        return payload

    def get_weather(self, pubkey: str) -> Dict[str, Any]:
        return self._get(f"/stations/{pubkey}/weather")

    def get_chart(
        self, pubkey: str, grid: str, channels: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        params = {"channel": channels} if channels else None
        return self._get(f"/stations/{pubkey}/charts/{grid}", params=params)

    def refresh(self, pubkey: str, force: bool = False) -> Dict[str, Any]:
        try:
            response = self._client.post(
                f"/stations/{pubkey}/refresh",
                params={"force": "true" if force else "false"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            self._handle_transport_error(exc)
        return response.json()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self._client.get(path, params=params)
            if response.status_code == 404:
                detail = self._detail(response) or f"{path} was not found."
                raise typer.BadParameter(detail)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            self._handle_transport_error(exc)
        return response.json()

    @staticmethod
    def _detail(response: httpx.Response) -> Optional[str]:
        try:
            data = response.json()
        except ValueError:
            return response.text.strip() or None
        if isinstance(data, dict):
            detail = data.get("detail")
            return str(detail) if detail is not None else None
        return None

    def _handle_transport_error(self, exc: httpx.HTTPError) -> None:
        typer.secho(
            f"Could not reach {self._config.base_url}: {exc}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    @classmethod
    def _handle_http_error(cls, exc: httpx.HTTPStatusError) -> None:
        detail = cls._detail(exc.response)
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
