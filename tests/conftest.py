from __future__ import annotations

import io

import pandas as pd
import pytest

from dashboard.data import dataset_from_records


@pytest.fixture
def sales_records():
    return [
        {"Region": "North", "Sales": "100", "Date": "2024-01-05"},
        {"Region": "South", "Sales": "200", "Date": "2024-02-10"},
        {"Region": "North", "Sales": "bad", "Date": ""},
    ]


@pytest.fixture
def sales_dataset(sales_records):
    return dataset_from_records(sales_records, source_name="sales.csv")


@pytest.fixture
def sales_csv() -> bytes:
    return b"Region,Sales,Date\nNorth,100,2024-01-05\n\nSouth,200,2024-02-10\nNorth,bad,\n"


@pytest.fixture
def sales_xlsx() -> bytes:
    df = pd.DataFrame(
        {
            "Region": ["North", "South", None],
            "Sales": [100, 200, 50],
            "Date": ["2024-01-05", "2024-02-10", "2024-03-01"],
        }
    )
    buf = io.BytesIO()
    df.to_excel(buf, index=False, sheet_name="Data")
    return buf.getvalue()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, reason: str = "OK"):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeHTTP:
    """Stands in for the `requests` module: records posts and replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def embed_settings():
    from dashboard_api.powerbi import EmbedSettings

    return EmbedSettings(
        client_id="client-123",
        tenant_id="tenant-abc",
        client_secret="s3cr3t-value",
        workspace_id="ws-1",
        report_id="rep-9",
    )


@pytest.fixture
def upstream_ok():
    return FakeHTTP(
        FakeResponse(200, {"access_token": "aad-token"}),
        FakeResponse(200, {"token": "embed-token", "expiration": "2026-10-18T12:00:00Z"}),
    )
