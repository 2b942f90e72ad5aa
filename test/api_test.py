import pytest
from datetime import datetime
from fastapi.testclient import TestClient

import Background.task as task
from main import TimeClock
from utils.helper import MemoryStore
from utils.report import ReportExportError


@pytest.fixture
def client(monkeypatch):
    moments = iter([datetime(2024, 3, 5, 8, 0), datetime(2024, 3, 5, 8, 0), datetime(2024, 3, 5, 12, 0)])
    last = {"now": datetime(2024, 3, 5, 8, 0)}

    def fake_clock():
        last["now"] = next(moments, last["now"])
        return last["now"]

    monkeypatch.setattr(task, "clock", TimeClock(MemoryStore(), fake_clock))
    return TestClient(task.app)


def test_register_punch_returns_wire_shape(client):
    response = client.post("/punch")
    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "Entry"
    assert body["time"] == "08:00"
    assert set(body) == {"id", "time", "type", "timestamp"}


def test_summary_after_punches(client):
    client.post("/punch")
    client.post("/punch")
    body = client.get("/summary").json()
    assert body["minutes_worked"] == 240
    assert body["balance"] == -240
    assert body["balance_display"] == "-04:00"
    assert [p["type"] for p in body["punches"]] == ["BreakStart", "Entry"]


def test_clear_resets_day(client):
    client.post("/punch")
    assert client.post("/clear").status_code == 200
    body = client.get("/summary").json()
    assert body["punches"] == []
    assert body["minutes_worked"] == 0


def test_report_download(client):
    client.post("/punch")
    response = client.get("/report")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "punch_report_05-03-2024.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


def test_report_failure_is_surfaced(client, monkeypatch):
    client.post("/punch")

    def broken_report():
        raise ReportExportError("Could not generate report for 05/03/2024")

    monkeypatch.setattr(task.clock, "report", broken_report)
    response = client.get("/report")
    assert response.status_code == 500
    assert task.clock.summary().punches[0].display_time == "08:00"


def test_startup_loads_ledger(client):
    with TestClient(task.app) as started:
        assert task.clock.state is not None
        assert task.clock.state.date_key == "05/03/2024"
        assert started.get("/summary").status_code == 200
