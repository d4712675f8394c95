"""Google Fit REST API adapter.

Environment variables:
    GOOGLE_FIT_ACCESS_TOKEN - OAuth2 bearer token with fitness.activity.read,
                              fitness.location.read and fitness.body.read scopes

API base: https://www.googleapis.com/fitness/v1/users/me

Endpoints used:
    /dataset:aggregate                      - Daily step and distance totals
    /dataSources/{id}/datasets/{start-end}  - Raw heart rate samples

Google Fit answers "no data for this period" with empty buckets or a 404;
both map to an empty list.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

import httpx

from solid_health.fitness.base import DataPoint, ProviderClient, parse_instant
from solid_health.fitness.errors import NetworkError, ProviderError

logger = logging.getLogger("solidhealth.fitness.google_fit")

_API_BASE = "https://www.googleapis.com/fitness/v1/users/me"
_DAY_MS = 86_400_000

STEPS_SOURCE = "derived:com.google.step_count.delta:com.google.android.gms:merge_step_deltas"
DISTANCE_SOURCE = "derived:com.google.distance.delta:com.google.android.gms:merge_distance_delta"
HEART_RATE_SOURCE = "derived:com.google.heart_rate.bpm:com.google.android.gms:merge_heart_rate_bpm"


class GoogleFitAdapter(ProviderClient):
    """Read steps, distance and heart rate from Google Fit.

    Args:
        access_token: OAuth2 bearer token (GOOGLE_FIT_ACCESS_TOKEN env var).
        http_client:  Optional pre-configured httpx client (for testing).
        timeout_s:    Per-request timeout in seconds.
    """

    SOURCE_ID = "google_fit"
    DISPLAY_NAME = "Google Fit"

    def __init__(
        self,
        access_token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._access_token = access_token or os.environ.get("GOOGLE_FIT_ACCESS_TOKEN", "")
        self._http_client = http_client
        self._timeout = httpx.Timeout(timeout_s)

    # ------------------------------------------------------------------
    # ProviderClient interface
    # ------------------------------------------------------------------

    async def daily_steps(self, start_iso: str, end_iso: str) -> list[DataPoint]:
        """Daily step totals from the merged step-delta stream."""
        data = await self._aggregate(STEPS_SOURCE, start_iso, end_iso)
        return self._daily_points(data)

    async def daily_distance(self, start_iso: str, end_iso: str) -> list[DataPoint]:
        """Daily distance totals in metres."""
        data = await self._aggregate(DISTANCE_SOURCE, start_iso, end_iso)
        return self._daily_points(data)

    async def heart_rate(self, start_iso: str, end_iso: str) -> list[DataPoint]:
        """Every merged heart-rate sample in the window, oldest first."""
        start_ns = _to_millis(start_iso) * 1_000_000
        end_ns = _to_millis(end_iso) * 1_000_000
        data = await self._request(
            "GET", f"{_API_BASE}/dataSources/{HEART_RATE_SOURCE}/datasets/{start_ns}-{end_ns}"
        )

        points: list[DataPoint] = []
        for raw in data.get("point", []):
            value = self._point_value(raw)
            if value is None or "startTimeNanos" not in raw:
                continue
            millis = int(raw["startTimeNanos"]) // 1_000_000
            points.append(DataPoint(date=_iso_from_millis(millis), value=value))

        points.sort(key=lambda p: p.date)
        logger.debug("Google Fit: %d heart rate samples %s → %s", len(points), start_iso, end_iso)
        return points

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    def _daily_points(self, data: dict) -> list[DataPoint]:
        points: list[DataPoint] = []
        for bucket in data.get("bucket", []):
            total: float | None = None
            for dataset in bucket.get("dataset", []):
                for raw in dataset.get("point", []):
                    value = self._point_value(raw)
                    if value is not None:
                        total = (total or 0.0) + value
            if total is None:
                continue
            day = datetime.fromtimestamp(int(bucket["startTimeMillis"]) / 1000, tz=timezone.utc)
            points.append(DataPoint(date=day.date().isoformat(), value=total))
        return points

    def _point_value(self, raw: dict) -> float | None:
        values = raw.get("value") or []
        if not values:
            return None
        first = values[0]
        if "intVal" in first:
            return self._safe_float(first["intVal"])
        return self._safe_float(first.get("fpVal"))

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _aggregate(self, source: str, start_iso: str, end_iso: str) -> dict:
        body = {
            "aggregateBy": [{"dataSourceId": source}],
            "bucketByTime": {"durationMillis": _DAY_MS},
            "startTimeMillis": _to_millis(start_iso),
            "endTimeMillis": _to_millis(end_iso),
        }
        return await self._request("POST", f"{_API_BASE}/dataset:aggregate", json=body)

    def _build_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _request(self, method: str, url: str, json: dict | None = None) -> dict:
        """Make an authenticated request to the Google Fit API.

        Returns:
            JSON response dict; empty when Google Fit has no data (404).

        Raises:
            NetworkError:  If the request cannot complete.
            ProviderError: On any other non-2xx response.
        """
        headers = self._build_headers()
        try:
            if self._http_client:
                response = await self._http_client.request(
                    method, url, json=json, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, url, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Google Fit {method} timed out", retryable=True) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Google Fit {method} failed: {exc}") from exc

        if response.status_code == 404:
            return {}
        if not response.is_success:
            raise ProviderError(
                f"Google Fit returned {response.status_code}: {response.text[:200]}"
            )
        return response.json()


def _to_millis(iso: str) -> int:
    return round(parse_instant(iso).timestamp() * 1000)


def _iso_from_millis(millis: int) -> str:
    dt = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{millis % 1000:03d}Z"
