"""Tests for prediction parsing and batched inference."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from nba_props.config.constants import Side
from nba_props.data.sources.base import ConfigurationError, RetryConfig
from nba_props.data.sources.inference import InferenceClient, parse_prediction


class TestParsePrediction:
    def test_explicit_side(self):
        prediction = parse_prediction(
            {"prediction": "Under", "probability_over": 0.3, "probability_under": 0.7, "confidence": 0.4}
        )

        assert prediction.side is Side.UNDER
        assert prediction.raw_probability_under == 0.7
        assert prediction.confidence == 0.4

    def test_side_inferred_from_probabilities(self):
        prediction = parse_prediction({"probability_over": "0.62", "probability_under": "0.38"})

        assert prediction.side is Side.OVER
        assert prediction.confidence is None

    @pytest.mark.parametrize("raw", [None, "Over", {"probability_over": 0.6}, {"probability_over": "x", "probability_under": 0.4}])
    def test_malformed(self, raw):
        assert parse_prediction(raw) is None


def _client(batch_size: int = 2) -> InferenceClient:
    return InferenceClient(
        project_id="proj",
        endpoint_id="123",
        access_token="token",
        batch_size=batch_size,
        retry_config=RetryConfig(max_retries=0),
    )


def _echo(method, url, headers=None, json_body=None, **kwargs):
    """Predict Over for every instance, with the line as the probability."""
    return {
        "predictions": [
            {"prediction": "Over", "probability_over": inst["line"], "probability_under": 1 - inst["line"]}
            for inst in json_body["instances"]
        ]
    }


class TestInferenceClient:
    def test_batches_preserve_order(self):
        client = _client(batch_size=2)
        client._request_json = AsyncMock(side_effect=_echo)

        predictions = asyncio.run(client.predict([{"line": p} for p in (0.1, 0.2, 0.3, 0.4, 0.5)]))

        assert client._request_json.await_count == 3
        assert [p.raw_probability_over for p in predictions] == [0.1, 0.2, 0.3, 0.4, 0.5]

    def test_failed_batch_degrades_to_none(self):
        client = _client(batch_size=2)
        client._request_json = AsyncMock(side_effect=[_echo("POST", "", json_body={"instances": [{"line": 0.1}, {"line": 0.2}]}), RuntimeError("500")])

        predictions = asyncio.run(client.predict([{"line": 0.1}, {"line": 0.2}, {"line": 0.3}]))

        assert predictions[0].raw_probability_over == 0.1
        assert predictions[2] is None
        assert len(predictions) == 3

    def test_short_response_is_padded(self):
        client = _client(batch_size=10)
        client._request_json = AsyncMock(return_value={"predictions": [{"probability_over": 0.7, "probability_under": 0.3}]})

        predictions = asyncio.run(client.predict([{"line": 1.0}, {"line": 2.0}]))

        assert predictions[1] is None

    def test_unconfigured_endpoint(self):
        client = InferenceClient(project_id=None, endpoint_id=None)

        with pytest.raises(ConfigurationError):
            asyncio.run(client.predict([{"line": 1.0}]))

    def test_endpoint_url(self):
        assert _client().endpoint_url == (
            "https://us-central1-aiplatform.googleapis.com/v1/projects/proj/"
            "locations/us-central1/endpoints/123:predict"
        )
