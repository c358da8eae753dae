import json

import pytest

from ixiclinic_admin.auth import get_current_admin
from ixiclinic_admin.domain.billing import subscription_service
from ixiclinic_admin.domain.billing.paypal_service import PayPalService, get_paypal_service
from ixiclinic_admin.domain.billing.subscription_service import (
    get_account_status,
    get_status_label,
    is_problem_subscription,
    outstanding_balance,
)
from ixiclinic_admin.main import app

from conftest import seed

SUBSCRIPTIONS_PATH = "/v1/billing/subscriptions"


def subscription(sub_id, status="ACTIVE", email="owner@clinic.com", plan_id="P-CLINIC", **billing_info):
    return {
        "id": sub_id,
        "status": status,
        "plan_id": plan_id,
        "subscriber": {"email_address": email},
        "billing_info": billing_info,
    }


@pytest.fixture
def linked_account(store):
    seed(
        store,
        "accounts",
        "acc-1",
        {
            "email": "owner@clinic.com",
            "isActive": True,
            "billingInfo": {"subscriptionStatus": "active", "paypalSubscriptionId": "I-1"},
        },
    )
    return "acc-1"


@pytest.fixture
def paypal_subscriptions(fake_paypal):
    fake_paypal.add(
        "GET",
        SUBSCRIPTIONS_PATH,
        {
            "subscriptions": [
                subscription(
                    "I-1",
                    last_payment={"amount": {"value": "99.99", "currency_code": "USD"}},
                ),
                subscription("I-2", status="SUSPENDED", email="late@clinic.com", plan_id="P-OTHER"),
                subscription(
                    "I-3",
                    email="debt@clinic.com",
                    failed_payments_count=2,
                    outstanding_balance={"value": "25.50", "currency_code": "USD"},
                    last_payment={"amount": {"value": "49.99", "currency_code": "USD"}},
                ),
            ]
        },
    )


def test_status_helpers():
    assert get_status_label("APPROVAL_PENDING") == "Pendiente de Aprobación"
    assert get_status_label("SOMETHING_NEW") == "SOMETHING_NEW"
    assert get_account_status("ACTIVE") == "active"
    assert get_account_status("EXPIRED") == "cancelled"
    assert get_account_status(None) == "inactive"

    assert outstanding_balance({"billing_info": {"outstanding_balance": {"value": "3.10", "currency_code": "EUR"}}}) == (
        3.1,
        "EUR",
    )
    assert outstanding_balance({}) == (0.0, "USD")

    assert is_problem_subscription({"status": "SUSPENDED"})
    assert is_problem_subscription({"status": "ACTIVE", "billing_info": {"failed_payments_count": 1}})
    assert not is_problem_subscription({"status": "ACTIVE"})
    assert is_problem_subscription({"billing_info": {"outstanding_balance": {"value": "0.01"}}})
    # a negative balance is a credit in the subscriber's favour
    assert not is_problem_subscription({"billing_info": {"outstanding_balance": {"value": "-5.00"}}})


def test_list_subscriptions(client, plans, linked_account, paypal_subscriptions):
    plans.set_paypal_plan_mapping("clinic-pro-monthly", "P-CLINIC")

    response = client.get("/subscriptions")

    assert response.status_code == 200
    data = response.json()
    assert data["counts"] == {"total": 3, "active": 2, "problems": 2, "filtered": 3}
    first = data["items"][0]
    assert first["accountId"] == "acc-1"
    assert first["statusLabel"] == "Activa"
    assert first["localStatus"] == "active"
    assert first["planName"] == "clinic-pro-monthly"
    assert not first["hasProblems"]


def test_list_subscriptions_filters(client, paypal_subscriptions):
    by_email = client.get("/subscriptions", params={"search": "LATE@"}).json()
    by_status = client.get("/subscriptions", params={"status": "ACTIVE"}).json()

    assert [i["subscription"]["id"] for i in by_email["items"]] == ["I-2"]
    assert by_email["counts"]["filtered"] == 1
    assert [i["subscription"]["id"] for i in by_status["items"]] == ["I-1", "I-3"]


def test_problem_subscriptions(client, paypal_subscriptions):
    response = client.get("/subscriptions/problems")

    assert response.status_code == 200
    assert [i["subscription"]["id"] for i in response.json()] == ["I-2", "I-3"]


def test_usage_metrics(client, paypal_subscriptions):
    data = client.get("/subscriptions/metrics").json()

    assert data == {
        "planUsage": {"P-CLINIC": 2, "P-OTHER": 1},
        "totalSubscriptions": 3,
        "activeSubscriptions": 2,
        "problemSubscriptions": 2,
        "monthlyRevenue": 149.98,
    }


def test_list_and_metrics_agree_on_problem_count(client, fake_paypal):
    fake_paypal.add(
        "GET",
        SUBSCRIPTIONS_PATH,
        {
            "subscriptions": [
                subscription("I-1"),
                subscription("I-2", status="SUSPENDED"),
                subscription("I-3", outstanding_balance={"value": "-5.00", "currency_code": "USD"}),
                subscription("I-4", outstanding_balance={"value": "12.00", "currency_code": "USD"}),
                subscription("I-5", failed_payments_count=1),
            ]
        },
    )

    listed = client.get("/subscriptions").json()["counts"]["problems"]
    problems = [i["subscription"]["id"] for i in client.get("/subscriptions/problems").json()]
    metrics = client.get("/subscriptions/metrics").json()["problemSubscriptions"]

    assert problems == ["I-2", "I-4", "I-5"]
    assert listed == metrics == 3


def test_paypal_plans_are_annotated(client, plans, fake_paypal):
    plans.set_paypal_plan_mapping("clinic-pro-monthly", "P-CLINIC")
    fake_paypal.add("GET", "/v1/billing/plans", {"plans": [{"id": "P-CLINIC"}, {"id": "P-UNKNOWN"}]})

    data = client.get("/subscriptions/paypal-plans").json()

    assert data["plans"] == [
        {"id": "P-CLINIC", "localPlanName": "clinic-pro-monthly"},
        {"id": "P-UNKNOWN", "localPlanName": None},
    ]


def test_paypal_plan_detail(client, plans, fake_paypal):
    plans.set_paypal_plan_mapping("clinic-pro-annual", "P-ANNUAL")
    fake_paypal.add("GET", "/v1/billing/plans/P-ANNUAL", {"id": "P-ANNUAL", "status": "ACTIVE"})

    data = client.get("/subscriptions/paypal-plans/P-ANNUAL").json()

    assert data == {"id": "P-ANNUAL", "status": "ACTIVE", "localPlanName": "clinic-pro-annual"}
    assert client.get("/subscriptions/paypal-plans/P-GONE").status_code == 404


def test_get_subscription_finds_account(client, linked_account, fake_paypal):
    fake_paypal.add("GET", f"{SUBSCRIPTIONS_PATH}/I-1", subscription("I-1"))

    data = client.get("/subscriptions/I-1").json()

    assert data["accountId"] == "acc-1"
    assert data["subscription"]["id"] == "I-1"


def test_transactions_use_a_time_window(client, fake_paypal):
    fake_paypal.add("GET", f"{SUBSCRIPTIONS_PATH}/I-1/transactions", {"transactions": []})

    response = client.get("/subscriptions/I-1/transactions", params={"days": 7})

    assert response.status_code == 200
    request = fake_paypal.last_request("GET", f"{SUBSCRIPTIONS_PATH}/I-1/transactions")
    assert request.url.params["start_time"].endswith(".000Z")
    assert request.url.params["end_time"] > request.url.params["start_time"]


def test_cancel_updates_linked_account(client, store, linked_account, fake_paypal):
    fake_paypal.add("POST", f"{SUBSCRIPTIONS_PATH}/I-1/cancel", None, status=204)

    response = client.post("/subscriptions/I-1/cancel", json={"reason": "Customer request"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"]
    assert data["action"] == "cancel"
    assert data["localStatus"] == "cancelled"
    assert data["accountId"] == "acc-1"

    account = store.document("accounts/acc-1").get()
    assert account.get("billingInfo.subscriptionStatus") == "cancelled"

    actions = client.get("/accounts/acc-1/actions").json()["items"]
    assert actions[0]["action"] == "cancel_subscription"
    assert actions[0]["details"] == {"subscriptionId": "I-1", "reason": "Customer request"}


def test_suspend_and_activate(client, store, linked_account, fake_paypal):
    fake_paypal.add("POST", f"{SUBSCRIPTIONS_PATH}/I-1/suspend", None, status=204)
    fake_paypal.add("POST", f"{SUBSCRIPTIONS_PATH}/I-1/activate", None, status=204)

    client.post("/subscriptions/I-1/suspend", json={"reason": "Payment dispute"})
    assert store.document("accounts/acc-1").get().get("billingInfo.subscriptionStatus") == "inactive"

    client.post("/subscriptions/I-1/activate", json={"reason": "Dispute resolved"})
    assert store.document("accounts/acc-1").get().get("billingInfo.subscriptionStatus") == "active"


def test_action_without_linked_account(client, fake_paypal):
    fake_paypal.add("POST", f"{SUBSCRIPTIONS_PATH}/I-9/suspend", None, status=204)

    response = client.post("/subscriptions/I-9/suspend", json={"reason": "Fraud check"})

    assert response.status_code == 200
    assert response.json()["accountId"] is None


def test_action_requires_a_reason(client):
    assert client.post("/subscriptions/I-1/cancel", json={"reason": ""}).status_code == 422


def test_revise_with_mapped_plan(client, plans, linked_account, fake_paypal):
    plans.set_paypal_plan_mapping("clinic-enterprise-monthly", "P-ENT")
    fake_paypal.add(
        "POST",
        f"{SUBSCRIPTIONS_PATH}/I-1/revise",
        {
            "plan_id": "P-ENT",
            "links": [
                {"rel": "self", "href": "https://paypal.test/self"},
                {"rel": "approve", "href": "https://paypal.test/approve"},
            ],
        },
    )

    response = client.post("/subscriptions/I-1/revise", json={"planName": "clinic-enterprise-monthly"})

    assert response.status_code == 200
    assert response.json()["approvalUrl"] == "https://paypal.test/approve"
    body = json.loads(fake_paypal.last_request("POST", f"{SUBSCRIPTIONS_PATH}/I-1/revise").content)
    assert body["plan_id"] == "P-ENT"


def test_revise_with_unmapped_local_plan(client):
    response = client.post("/subscriptions/I-1/revise", json={"planName": "clinic-enterprise-monthly"})

    assert response.status_code == 400


def test_revise_with_raw_paypal_plan_id(client, fake_paypal):
    fake_paypal.add("POST", f"{SUBSCRIPTIONS_PATH}/I-1/revise", {"plan_id": "P-RAW"})

    response = client.post("/subscriptions/I-1/revise", json={"planName": "P-RAW"})

    assert response.status_code == 200
    assert response.json()["approvalUrl"] is None
    body = json.loads(fake_paypal.last_request("POST", f"{SUBSCRIPTIONS_PATH}/I-1/revise").content)
    assert body["plan_id"] == "P-RAW"


def test_retry_payment_captures_outstanding_balance(client, fake_paypal):
    fake_paypal.add(
        "GET",
        f"{SUBSCRIPTIONS_PATH}/I-3",
        subscription("I-3", outstanding_balance={"value": "25.5", "currency_code": "USD"}),
    )
    fake_paypal.add("POST", f"{SUBSCRIPTIONS_PATH}/I-3/capture", {"status": "COMPLETED"})

    response = client.post("/subscriptions/I-3/retry-payment")

    assert response.status_code == 200
    assert response.json()["action"] == "retry_payment"
    body = json.loads(fake_paypal.last_request("POST", f"{SUBSCRIPTIONS_PATH}/I-3/capture").content)
    assert body["amount"] == {"currency_code": "USD", "value": "25.50"}


def test_retry_payment_without_balance(client, fake_paypal):
    fake_paypal.add("GET", f"{SUBSCRIPTIONS_PATH}/I-1", subscription("I-1"))

    response = client.post("/subscriptions/I-1/retry-payment")

    assert response.status_code == 400


def test_paypal_not_found_is_404(client):
    response = client.get("/subscriptions/I-MISSING")

    assert response.status_code == 404
    assert response.json()["detail"] == "Resource not found in PayPal"


def test_paypal_failure_is_bad_gateway(client, fake_paypal):
    fake_paypal.add("GET", SUBSCRIPTIONS_PATH, {"name": "INTERNAL_SERVICE_ERROR"}, status=500)

    response = client.get("/subscriptions")

    assert response.status_code == 502
    assert response.json()["paypal_status"] == 500


def test_unconfigured_paypal_is_503(client):
    app.dependency_overrides[get_paypal_service] = lambda: PayPalService("", "")

    assert client.get("/subscriptions").status_code == 503
    assert client.post("/subscriptions/I-1/cancel", json={"reason": "x"}).status_code == 503


def test_support_role_cannot_change_subscriptions(client, support_user):
    app.dependency_overrides[get_current_admin] = lambda: support_user

    response = client.post("/subscriptions/I-1/cancel", json={"reason": "x"})

    assert response.status_code == 403


def test_webhook_events(client, fake_paypal):
    fake_paypal.add("GET", "/v1/notifications/webhooks-events", {"events": [{"id": "WH-1"}]})
    fake_paypal.add("GET", "/v1/notifications/webhooks-events/WH-1", {"id": "WH-1"})

    events = client.get("/webhooks/events", params={"page_size": 5})
    event = client.get("/webhooks/events/WH-1")

    assert events.json() == {"events": [{"id": "WH-1"}]}
    assert fake_paypal.last_request("GET", "/v1/notifications/webhooks-events").url.params["page_size"] == "5"
    assert event.json() == {"id": "WH-1"}


def test_verify_webhook_signature(client, fake_paypal, monkeypatch):
    monkeypatch.setattr(subscription_service, "PAYPAL_WEBHOOK_ID", "WEBHOOK-1")
    fake_paypal.add("POST", "/v1/notifications/verify-webhook-signature", {"verification_status": "FAILURE"})

    response = client.post(
        "/webhooks/verify-signature",
        json={"headers": {"paypal-transmission-id": "tx"}, "event": {"id": "WH-1"}},
    )

    assert response.status_code == 200
    assert response.json() == {"verified": False, "verificationStatus": "FAILURE"}


def test_verify_webhook_signature_needs_webhook_id(client, monkeypatch):
    monkeypatch.setattr(subscription_service, "PAYPAL_WEBHOOK_ID", None)

    response = client.post("/webhooks/verify-signature", json={"headers": {}, "event": {}})

    assert response.status_code == 503
