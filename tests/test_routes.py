from datetime import date
from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from crm_demo.domain.months import month_key, month_sequence
from crm_demo.generator.chunked import JobProgress
from crm_demo.web.app import create_app
from crm_demo.web.dependencies import get_db_session


def _recent_months(count: int) -> list[str]:
    """The ``count`` calendar months before the current one."""

    today = date.today()
    year, month = today.year, today.month - count
    while month <= 0:
        month += 12
        year -= 1
    return [month_key(day) for day in month_sequence(date(year, month, 1), count)]


def _month_payload(month: str, scale: int = 1) -> dict[str, object]:
    return {
        "month": month,
        "targets": {
            "leadsCreated": 4 * scale,
            "contactsCreated": 10 * scale,
            "companiesCreated": 3 * scale,
            "dealsCreated": 5 * scale,
            "closedWonCount": 2 * scale,
            "closedWonValue": 4000 * scale,
            "pipelineAddedValue": 9000 * scale,
        },
    }


def _plan_config(**overrides: object) -> dict[str, object]:
    months = _recent_months(2)
    body: dict[str, object] = {
        "mode": "monthly-plan",
        "country": "us",
        "industry": "saas",
        "startDate": f"{months[0]}-01",
        "teamSize": 3,
        "monthlyPlan": {"months": [_month_payload(months[0]), _month_payload(months[1], 2)]},
    }
    body.update(overrides)
    return body


@pytest.fixture()
def app(session_factory: sessionmaker) -> FastAPI:
    application = create_app()

    def _session() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db_session] = _session
    return application


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def test_create_app_registers_routers() -> None:
    paths = {route.path for route in create_app().routes}

    assert "/demo-generator/jobs" in paths
    assert "/demo-generator/tenants/{tenant_id}/patch/apply" in paths
    assert "/reports/tenants/{tenant_id}/metrics" in paths


def test_preview_monthly_plan(client: TestClient) -> None:
    response = client.post("/demo-generator/preview", json=_plan_config())

    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "monthly-plan"
    assert body["totals"]["contactsCreated"] == 30
    assert float(body["totals"]["closedWonValue"]) == 12000


def test_preview_invalid_config_is_422(client: TestClient) -> None:
    response = client.post("/demo-generator/preview", json=_plan_config(teamSize=1))

    assert response.status_code == 422
    assert "teamSize" in {error["path"] for error in response.json()["errors"]}


def test_validate_plan_reports_errors(client: TestClient) -> None:
    month = _recent_months(1)[0]
    bad = _month_payload(month)
    bad["targets"]["closedWonCount"] = 9

    response = client.post("/demo-generator/validate-plan", json={"months": [bad]})

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert body["errors"][0]["path"].startswith("months[0].targets")


def test_create_job_without_starting(client: TestClient) -> None:
    response = client.post("/demo-generator/jobs?start=false", json={**_plan_config(), "seed": "api-seed"})

    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "pending"
    assert created["tenantId"] is None

    detail = client.get(f"/demo-generator/jobs/{created['jobId']}")
    assert detail.status_code == 200
    assert detail.json()["seed"] == "api-seed"
    assert detail.json()["logs"][0]["level"] == "info"


def test_create_and_run_job(client: TestClient) -> None:
    created = client.post("/demo-generator/jobs", json=_plan_config()).json()

    progress = created
    for _ in range(20):
        if progress["status"] != "running":
            break
        progress = client.post(f"/demo-generator/jobs/{created['jobId']}/continue").json()

    assert progress["status"] == "completed"
    assert progress["verificationPassed"] is True


def test_unknown_job_is_404(client: TestClient) -> None:
    assert client.get("/demo-generator/jobs/4040").status_code == 404
    assert client.post("/demo-generator/jobs/4040/continue").status_code == 404


def test_tenant_kpis(client: TestClient, generated_tenant: JobProgress) -> None:
    response = client.get(
        f"/demo-generator/tenants/{generated_tenant.tenant_id}/kpis",
        params={"fromMonth": "2024-01", "toMonth": "2024-03"},
    )

    assert response.status_code == 200
    months = response.json()["months"]
    assert [month["month"] for month in months] == ["2024-01", "2024-02", "2024-03"]
    assert months[0]["metrics"]["contactsCreated"] == 20


def test_tenant_kpis_unknown_tenant(client: TestClient) -> None:
    response = client.get("/demo-generator/tenants/9999/kpis", params={"fromMonth": "2024-01", "toMonth": "2024-02"})

    assert response.status_code == 404


def test_patch_validate_and_report(client: TestClient, generated_tenant: JobProgress) -> None:
    tenant_id = generated_tenant.tenant_id
    plan = {
        "mode": "metrics-only",
        "planType": "deltas",
        "months": [{"month": "2024-02", "metrics": {"contactsCreated": 6}}],
    }

    check = client.post(f"/demo-generator/tenants/{tenant_id}/patch/validate", json=plan)
    assert check.status_code == 200
    assert check.json()["valid"] is True
    assert check.json()["preview"]["overridesToWrite"] == 1

    applied = client.post(f"/demo-generator/tenants/{tenant_id}/patch/apply", json=plan)
    assert applied.status_code == 200
    assert applied.json()["status"] == "completed"

    report = client.get(f"/reports/tenants/{tenant_id}/metrics", params={"start": "2024-02", "end": "2024-02"})
    assert report.status_code == 200
    assert report.json()["months"][0]["contactsCreated"] == 30


def test_patch_blocked_is_400(client: TestClient, generated_tenant: JobProgress) -> None:
    plan = {"mode": "metrics-only", "months": [{"month": "2024-02", "metrics": {"contactsCreated": 1}}]}

    response = client.post(f"/demo-generator/tenants/{generated_tenant.tenant_id}/patch/apply", json=plan)

    assert response.status_code == 400
    assert response.json()["blockers"]


def test_unknown_metric_is_rejected(client: TestClient, generated_tenant: JobProgress) -> None:
    plan = {"mode": "additive", "months": [{"month": "2024-02", "metrics": {"revenue": 1}}]}

    response = client.post(f"/demo-generator/tenants/{generated_tenant.tenant_id}/patch/validate", json=plan)

    assert response.status_code == 422


def test_delete_tenant(client: TestClient, generated_tenant: JobProgress) -> None:
    response = client.delete(f"/demo-generator/tenants/{generated_tenant.tenant_id}")

    assert response.status_code == 200
    assert response.json()["deleted"]["contacts"] == 72
    assert client.delete(f"/demo-generator/tenants/{generated_tenant.tenant_id}").status_code == 404
