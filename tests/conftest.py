import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["SKIP_ENV_VALIDATION"] = "true"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ.setdefault("FIREBASE_PROJECT_ID", "ixiclinic-test")
os.environ.setdefault("ADMIN_EMAILS", "admin@ixiclinic.com")
os.environ.setdefault("PAYPAL_CLIENT_ID", "test-client-id")
os.environ.setdefault("PAYPAL_CLIENT_SECRET", "test-client-secret")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ixiclinic_admin import models  # noqa: F401
from ixiclinic_admin.auth import ROLE_PERMISSIONS, AdminUser, get_current_admin
from ixiclinic_admin.database import Base, get_db
from ixiclinic_admin.document_store import DocumentStore
from ixiclinic_admin.domain.billing.paypal_service import PayPalService, get_paypal_service
from ixiclinic_admin.domain.plans.store import PlansStore, get_plans_store
from ixiclinic_admin.identity_provider import IdentityProviderUnavailable, get_identity_provider
from ixiclinic_admin.main import app

PAYPAL_BASE_URL = "https://paypal.test"


class FakeIdentityProvider:
    """In-memory stand-in for the Firebase Auth wrapper"""

    def __init__(self):
        self.users: dict[str, str] = {}
        self.deleted: list[str] = []
        self.available = True
        self.fail_delete = False

    def add_user(self, email: str, uid: str) -> None:
        self.users[email] = uid

    def _check(self):
        if not self.available:
            raise IdentityProviderUnavailable("FIREBASE_PROJECT_ID not configured")

    def is_available(self) -> bool:
        return self.available

    def get_user_by_email(self, email: str):
        self._check()
        uid = self.users.get(email)
        if uid is None:
            return None
        return {"uid": uid, "email": email, "display_name": None, "disabled": False}

    def delete_user_by_uid(self, uid: str) -> None:
        self._check()
        if self.fail_delete:
            raise RuntimeError("identity backend down")
        self.deleted.append(uid)


class FakePayPal:
    """Routes PayPal REST calls by (method, path) for httpx.MockTransport"""

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple[int, object]] = {}
        self.requests: list[httpx.Request] = []
        self.token_requests = 0

    def add(self, method: str, path: str, json=None, status: int = 200) -> None:
        self.routes[(method, path)] = (status, json)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth2/token":
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": "test-token", "expires_in": 3600})

        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND"})
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def last_request(self, method: str, path: str) -> httpx.Request:
        return next(r for r in reversed(self.requests) if r.method == method and r.url.path == path)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def store(db_session):
    return DocumentStore(db_session)


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def plans():
    return PlansStore(paypal_plan_mapping={})


@pytest.fixture
def fake_paypal():
    return FakePayPal()


@pytest.fixture
def paypal(fake_paypal):
    return PayPalService(
        client_id="test-client-id",
        client_secret="test-client-secret",
        base_url=PAYPAL_BASE_URL,
        transport=httpx.MockTransport(fake_paypal.handler),
    )


@pytest.fixture
def admin_user():
    return AdminUser(
        uid="admin-uid",
        email="admin@ixiclinic.com",
        role="admin",
        display_name="Admin",
        permissions=list(ROLE_PERMISSIONS["admin"]),
    )


@pytest.fixture
def support_user():
    return AdminUser(
        uid="support-uid",
        email="support@ixiclinic.com",
        role="support",
        permissions=list(ROLE_PERMISSIONS["support"]),
    )


@pytest.fixture
def client(db_session, identity, plans, paypal, admin_user):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_admin] = lambda: admin_user
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_plans_store] = lambda: plans
    app.dependency_overrides[get_paypal_service] = lambda: paypal

    yield TestClient(app)

    app.dependency_overrides.clear()


def seed(store: DocumentStore, collection: str, doc_id: str, data: dict) -> None:
    store.collection(collection).document(doc_id).set(data)
