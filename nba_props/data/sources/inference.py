"""
Remote probability inference client (Vertex AI prediction endpoint).

The model is a pre-trained black box: a batch of 88-field feature
instances goes in, an order-preserving batch of Over/Under probabilities
comes out. Predictions are returned raw; calibration happens downstream.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional, Sequence

from ...config.constants import Side
from ..models import Prediction
from .base import BaseDataSource, ConfigurationError, RetryConfig

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]
TOKEN_LIFETIME_SECONDS = 3600
TOKEN_REFRESH_BUFFER_SECONDS = 300


def parse_prediction(raw: Any) -> Optional[Prediction]:
    """Parse one entry of the ``predictions`` array, or None if malformed."""
    if not isinstance(raw, dict):
        return None
    try:
        prob_over = float(raw["probability_over"])
        prob_under = float(raw["probability_under"])
    except (KeyError, TypeError, ValueError):
        return None

    label = str(raw.get("prediction") or "").strip().lower()
    if label == "over":
        side = Side.OVER
    elif label == "under":
        side = Side.UNDER
    else:
        side = Side.OVER if prob_over >= prob_under else Side.UNDER

    confidence = raw.get("confidence")
    return Prediction(
        side=side,
        raw_probability_over=prob_over,
        raw_probability_under=prob_under,
        confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
    )


class InferenceClient(BaseDataSource):
    """
    Async client for a Vertex AI ``:predict`` endpoint.

    Authentication uses a static bearer token when configured, otherwise
    google-auth application default credentials. Tokens are reused until
    five minutes before their hour-long lifetime ends.
    """

    def __init__(
        self,
        project_id: Optional[str],
        endpoint_id: Optional[str],
        location: str = "us-central1",
        access_token: Optional[str] = None,
        batch_size: int = 10,
        timeout_seconds: float = 60.0,
        retry_config: RetryConfig | None = None,
    ):
        super().__init__(
            source_name="inference",
            enabled=bool(project_id and endpoint_id),
            retry_config=retry_config,
            timeout_seconds=timeout_seconds,
        )
        self.project_id = project_id
        self.endpoint_id = endpoint_id
        self.location = location
        self.batch_size = batch_size

        self._static_token = access_token
        self._token: Optional[str] = None
        self._token_expiry: float = 0.0
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings) -> "InferenceClient":
        inf = settings.inference
        return cls(
            project_id=inf.project_id,
            endpoint_id=inf.endpoint_id,
            location=inf.location,
            access_token=inf.access_token,
            batch_size=inf.batch_size,
            timeout_seconds=inf.timeout_seconds,
        )

    @property
    def endpoint_url(self) -> str:
        return (
            f"https://{self.location}-aiplatform.googleapis.com/v1/projects/"
            f"{self.project_id}/locations/{self.location}/endpoints/"
            f"{self.endpoint_id}:predict"
        )

    def _refresh_default_credentials(self) -> str:
        import google.auth
        from google.auth.transport.requests import Request

        credentials, _ = google.auth.default(scopes=SCOPES)
        credentials.refresh(Request())
        if not credentials.token:
            raise ConfigurationError(self.source_name, "google-auth returned no access token")
        return credentials.token

    async def get_access_token(self) -> str:
        """Bearer token for the endpoint, refreshed when near expiry."""
        if self._static_token:
            return self._static_token

        async with self._token_lock:
            now = time.time()
            if self._token and now < self._token_expiry - TOKEN_REFRESH_BUFFER_SECONDS:
                return self._token

            self.logger.info("Fetching new access token")
            loop = asyncio.get_running_loop()
            try:
                token = await loop.run_in_executor(None, self._refresh_default_credentials)
            except ConfigurationError:
                raise
            except Exception as e:
                raise ConfigurationError(
                    self.source_name, f"Vertex AI authentication failed: {e}"
                ) from e
            self._token = token
            self._token_expiry = now + TOKEN_LIFETIME_SECONDS
            return token

    async def _predict_batch(self, instances: list[dict[str, Any]]) -> list[Optional[Prediction]]:
        token = await self.get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        data = await self.fetch(
            lambda: self._request_json(
                "POST", self.endpoint_url, headers=headers, json_body={"instances": instances}
            ),
            "predict",
        )
        predictions = (data or {}).get("predictions") or []
        parsed = [parse_prediction(p) for p in predictions[: len(instances)]]
        # Pad so positions always line up with the request
        parsed.extend([None] * (len(instances) - len(parsed)))
        return parsed

    async def predict(self, instances: Sequence[dict[str, Any]]) -> list[Optional[Prediction]]:
        """
        Predict in fixed-size batches, preserving order.

        A batch that fails after retries degrades to ``None`` entries; the
        rest of the run continues.
        """
        self._require_enabled()
        results: list[Optional[Prediction]] = []
        for start in range(0, len(instances), self.batch_size):
            batch = list(instances[start:start + self.batch_size])
            try:
                results.extend(await self._predict_batch(batch))
            except ConfigurationError:
                raise
            except Exception as e:
                self.logger.warning(
                    f"Inference batch {start // self.batch_size + 1} failed "
                    f"({len(batch)} instances): {e}"
                )
                results.extend([None] * len(batch))
        return results
