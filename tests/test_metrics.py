from datetime import datetime, timezone

import pytest

from ixiclinic_admin.auth import get_current_admin
from ixiclinic_admin.domain.metrics.service import MetricsService, monthly_revenue
from ixiclinic_admin.main import app
from ixiclinic_admin.schemas import Account

from conftest import seed

# A Wednesday
NOW = datetime(2024, 5, 15, 14, 30, tzinfo=timezone.utc)


def account(status, price=None, billing="monthly", active=True):
    plan = {"name": f"plan-{billing}", "price": price, "billing": billing} if price is not None else None
    return Account(isActive=active, billingInfo={"subscriptionStatus": status, "plan": plan})


@pytest.fixture
def system(store):
    seed(
        store,
        "accounts",
        "acc-1",
        {
            "isActive": True,
            "billingInfo": {"subscriptionStatus": "active", "plan": {"name": "clinic-pro-monthly", "price": 99.99}},
            "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
        },
    )
    seed(
        store,
        "accounts",
        "acc-2",
        {
            "isActive": True,
            "billingInfo": {
                "subscriptionStatus": "active",
                "plan": {"name": "clinic-pro-annual", "price": 1200, "billing": "annual"},
            },
            "createdAt": datetime(2024, 2, 1, tzinfo=timezone.utc),
        },
    )
    seed(
        store,
        "accounts",
        "acc-3",
        {"isActive": False, "billingInfo": {"subscriptionStatus": "trial"}, "createdAt": datetime(2024, 3, 1, tzinfo=timezone.utc)},
    )

    seed(store, "accounts/acc-1/patients", "p1", {"createdAt": datetime(2024, 5, 3, tzinfo=timezone.utc)})
    seed(store, "accounts/acc-1/patients", "p2", {"createdAt": datetime(2024, 4, 28, tzinfo=timezone.utc)})
    seed(store, "patients", "p3", {"accountId": "acc-2", "createdAt": datetime(2024, 5, 14, tzinfo=timezone.utc)})

    seed(store, "accounts/acc-1/users", "u1", {"role": "doctor"})
    seed(store, "accounts/acc-1/users", "u2", {"role": "assistant"})

    seed(store, "accounts/acc-1/appointments", "a1", {"date": datetime(2024, 5, 15, 9, tzinfo=timezone.utc)})
    seed(store, "accounts/acc-1/appointments", "a2", {"date": datetime(2024, 5, 13, 9, tzinfo=timezone.utc)})
    seed(store, "appointments", "a3", {"accountId": "acc-2", "date": datetime(2024, 5, 20, 9, tzinfo=timezone.utc)})
    seed(store, "appointments", "a4", {"accountId": "acc-2", "date": datetime(2024, 5, 1, 9, tzinfo=timezone.utc)})

    seed(store, "invoices", "i1", {"accountId": "acc-1", "amount": 10})
    seed(store, "accounts/acc-1/prescriptions", "rx1", {})

    seed(store, "system_alerts", "al-1", {"severity": "info", "resolved": False, "createdAt": datetime(2024, 5, 1, tzinfo=timezone.utc)})
    seed(store, "system_alerts", "al-2", {"severity": "warning", "resolved": False, "createdAt": datetime(2024, 5, 2, tzinfo=timezone.utc)})
    seed(store, "system_alerts", "al-3", {"severity": "critical", "resolved": True, "createdAt": datetime(2024, 5, 3, tzinfo=timezone.utc)})


def test_monthly_revenue_normalises_billing_cycles():
    accounts = [
        account("active", 100),
        account("active", 300, "quarterly"),
        account("active", 1200, "annual"),
        account("trial", 500),
        account("active"),
    ]

    assert monthly_revenue(accounts) == 300


def test_admin_metrics(client, system):
    data = client.get("/metrics").json()

    assert data == {
        "totalAccounts": 3,
        "activeSubscriptions": 2,
        "trialAccounts": 1,
        "monthlyRevenue": 199.99,
        "totalPatients": 3,
        "totalAppointments": 4,
        "totalInvoices": 1,
        "totalPrescriptions": 1,
        "systemHealth": "healthy",
    }


def test_unresolved_critical_alert_degrades_health(client, store, system):
    seed(store, "system_alerts", "al-4", {"severity": "error", "resolved": False})

    assert client.get("/metrics").json()["systemHealth"] == "warning"


def test_quick_stats(store, system):
    stats = MetricsService(store).get_quick_stats(NOW)

    assert stats.accounts.model_dump() == {"total": 3, "active": 2, "inactive": 1}
    assert stats.patients.model_dump() == {"total": 3, "thisMonth": 2}
    assert stats.users.model_dump() == {"total": 2, "doctors": 1, "staff": 1}
    assert stats.appointments.model_dump() == {"total": 4, "today": 1, "thisWeek": 2}


def test_quick_stats_endpoint(client, system):
    data = client.get("/metrics/quick-stats").json()

    assert data["accounts"]["total"] == 3
    assert data["appointments"]["total"] == 4


def test_alerts_newest_first_and_unresolved_only(client, system):
    items = client.get("/metrics/alerts").json()["items"]

    assert [a["id"] for a in items] == ["al-2", "al-1"]


def test_resolve_alert(client, system):
    response = client.post("/metrics/alerts/al-2/resolve")

    assert response.status_code == 200
    alert = response.json()
    assert alert["resolved"] is True
    assert alert["resolvedBy"] == "admin-uid"
    assert alert["resolvedAt"] is not None
    assert [a["id"] for a in client.get("/metrics/alerts").json()["items"]] == ["al-1"]


def test_resolve_unknown_alert(client):
    assert client.post("/metrics/alerts/nope/resolve").status_code == 404


def test_support_role_cannot_resolve_alerts(client, support_user, system):
    app.dependency_overrides[get_current_admin] = lambda: support_user

    assert client.get("/metrics/alerts").status_code == 200
    assert client.post("/metrics/alerts/al-1/resolve").status_code == 403


def test_system_data(client, system):
    data = client.get("/metrics/system-data").json()

    assert data["totalStats"] == {
        "totalAccounts": 3,
        "totalPatients": 3,
        "totalUsers": 2,
        "totalAppointments": 4,
        "activeAccounts": 2,
        "inactiveAccounts": 1,
    }


def test_health_endpoints(client):
    assert client.get("/").json() == {"message": "IxiClinic Admin API is running"}
    assert client.get("/health").json() == {"status": "healthy"}

    redis = client.get("/health/redis").json()
    assert redis["status"] == "unhealthy"
    assert redis["redis"]["connected"] is False


def test_security_headers_are_set(client):
    response = client.get("/health")

    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
