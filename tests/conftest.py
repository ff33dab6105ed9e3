import json
import os
import tempfile

# Keep the recommendation log out of the working tree during tests
os.environ.setdefault("PRICING_LOG_FILE", os.path.join(tempfile.mkdtemp(), "recommendations.jsonl"))

import pytest
import requests

from pricing_console.client.pricing_client import PricingClientError
from pricing_console.models import HealthStatus, RecommendationResult
from pricing_console.session import SessionController

RAW_ROWS = [
    {"price_recommended": "100.5", "gm_pct": 12},
    {"error": "timeout"},
    {"index": 5, "price_recommended": 200},
]
KPIS = {"Revenue Lift (%)": 4.2, "Completion Rate (%)": 87.5}


def build_response(status_code=200, payload=None, text=None):
    """A real requests.Response carrying the given JSON payload (or raw text)."""
    response = requests.Response()
    response.status_code = status_code
    response.url = "http://pricing.test"
    response._content = (text if text is not None else json.dumps(payload)).encode()
    return response


class FakePricingClient:
    """Stands in for PricingClient; set `error` to make every call fail."""

    def __init__(self):
        self.health = HealthStatus(ok=True, version="test")
        self.result = RecommendationResult(
            price_recommended=420.0,
            p_complete_recommended=0.82,
            gm_pct=18.5,
            bounds={"low": 380.0, "high": 460.0},
        )
        self.rows = list(RAW_ROWS)
        self.kpis = dict(KPIS)
        self.comparison = {"Revenue Lift (%)": 2.5}
        self.error = None
        self.calls = []

    def _call(self, name, value):
        self.calls.append(name)
        if self.error is not None:
            raise self.error
        return value

    def check_health(self):
        return self._call("health", self.health)

    def recommend(self, record):
        return self._call("recommend", self.result)

    def recommend_batch(self, content, filename="rides.csv"):
        return self._call("recommend_batch", (self.rows, self.kpis))

    def compare_kpis(self, base, scenario):
        return self._call("kpis", self.comparison)


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def fake_client():
    return FakePricingClient()


@pytest.fixture
def controller(fake_client):
    return SessionController(fake_client)


@pytest.fixture
def server_down():
    return PricingClientError("Cannot connect to API server", "transport")
