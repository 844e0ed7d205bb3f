"""
Shared fixtures: per-test SQLite database, seeded users and in-memory fakes
of the realtime database and the Expo push endpoint.
"""

import json
import hashlib
from types import SimpleNamespace
from typing import Callable, Optional

import httpx
import pytest


# =============================================================================
# FAKE REALTIME DATABASE
# =============================================================================

def _etag(value) -> str:
    return hashlib.sha1(json.dumps(value, sort_keys=True).encode()).hexdigest()


class FakeRealtimeServer:
    """
    In-memory stand-in for the realtime database REST API.

    Supports GET (with ETag), PUT (with if-match), PATCH and POST.
    `before_put` runs between a conditional GET and PUT to simulate a
    concurrent writer.
    """

    def __init__(self):
        self.data = {}
        self.requests = []
        self.before_put: Optional[Callable[["FakeRealtimeServer", list], None]] = None
        self.unreachable = False
        self._counter = 0

    def get(self, parts):
        node = self.data
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def set(self, parts, value):
        node = self.data
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = value

    def children(self, *parts):
        return list((self.get(list(parts)) or {}).values())

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.unreachable:
            raise httpx.ConnectError("realtime database unreachable", request=request)

        self.requests.append(request)
        path = request.url.path
        assert path.endswith(".json")
        parts = [p for p in path[:-len(".json")].split("/") if p]
        body = json.loads(request.content) if request.content else None

        if request.method == "GET":
            value = self.get(parts)
            # A missing path is a literal JSON null body
            return httpx.Response(
                200,
                content=json.dumps(value).encode(),
                headers={"ETag": _etag(value), "Content-Type": "application/json"},
            )

        if request.method == "PUT":
            if_match = request.headers.get("if-match")
            if if_match and self.before_put:
                self.before_put(self, parts)
            if if_match and if_match != _etag(self.get(parts)):
                return httpx.Response(412, json={"error": "ETag mismatch"})
            self.set(parts, body)
            return httpx.Response(200, json=body)

        if request.method == "PATCH":
            current = self.get(parts) or {}
            current.update(body)
            self.set(parts, current)
            return httpx.Response(200, json=body)

        if request.method == "POST":
            self._counter += 1
            key = f"-N{self._counter:06d}"
            self.set(parts + [key], body)
            return httpx.Response(200, json={"name": key})

        return httpx.Response(405)


# =============================================================================
# FAKE EXPO PUSH
# =============================================================================

class FakeExpo:
    """Records pushed messages; `fail` makes the endpoint return 500."""

    def __init__(self):
        self.messages = []
        self.fail = False
        self.ticket_errors = {}  # token -> Expo error code

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(500, json={"errors": [{"message": "boom"}]})

        batch = json.loads(request.content)
        self.messages.extend(batch)
        tickets = []
        for message in batch:
            error = self.ticket_errors.get(message["to"])
            if error:
                tickets.append({"status": "error", "message": error, "details": {"error": error}})
            else:
                tickets.append({"status": "ok", "id": f"ticket-{len(self.messages)}"})
        return httpx.Response(200, json={"data": tickets})


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def sqlalchemy_db(tmp_path, monkeypatch):
    """Configure a fresh SQLAlchemy SQLite DB and test settings."""
    from immigration_backend.config import get_settings
    from immigration_backend.db.session import reset_engine, init_db

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
    monkeypatch.setenv("FIREBASE_DATABASE_URL", "https://test-project.firebaseio.com")
    monkeypatch.setenv("CRON_SECRET", "cron-test-secret")
    for name in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD"):
        monkeypatch.delenv(name, raising=False)

    get_settings.cache_clear()
    reset_engine()
    init_db()

    yield

    reset_engine()
    get_settings.cache_clear()


@pytest.fixture
def realtime():
    from immigration_backend.realtime.client import RealtimeDatabase, set_realtime_db

    server = FakeRealtimeServer()
    set_realtime_db(RealtimeDatabase(
        "https://test-project.firebaseio.com",
        secret="test-secret",
        transport=httpx.MockTransport(server.handler),
    ))
    yield server
    set_realtime_db(None)


@pytest.fixture
def expo():
    from immigration_backend.notifications.push import ExpoPushClient, set_push_client

    fake = FakeExpo()
    set_push_client(ExpoPushClient(
        "https://exp.host/--/api/v2/push/send",
        transport=httpx.MockTransport(fake.handler),
    ))
    yield fake
    set_push_client(None)


@pytest.fixture
def client(sqlalchemy_db, realtime, expo):
    from fastapi.testclient import TestClient
    from immigration_backend.api import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seed(sqlalchemy_db):
    """Admin, two agents, two clients (one without realtime id) and a case."""
    from immigration_backend.auth import get_password_hash
    from immigration_backend.db.session import get_db_session
    from immigration_backend.db.models import Case, PushDevice, ServiceType, User, UserRole

    with get_db_session() as db:
        admin = User(email="admin@example.com", first_name="Ada", last_name="Admin",
                     role=UserRole.ADMIN, firebase_uid="fb-admin")
        agent = User(email="agent@example.com", first_name="Alex", last_name="Agent",
                     role=UserRole.AGENT, firebase_uid="fb-agent")
        other_agent = User(email="other@example.com", first_name="Olive", last_name="Other",
                           role=UserRole.AGENT, firebase_uid="fb-other")
        client_user = User(email="client@example.com", first_name="Chris", last_name="Client",
                           role=UserRole.CLIENT, firebase_uid="fb-client",
                           password_hash=get_password_hash("correct-horse"))
        no_rt_client = User(email="nort@example.com", first_name="Nora",
                            role=UserRole.CLIENT)
        db.add_all([admin, agent, other_agent, client_user, no_rt_client])
        db.flush()

        case = Case(service_type=ServiceType.WORK_PERMIT, client_id=client_user.id,
                    assigned_agent_id=agent.id)
        db.add(case)
        db.add(PushDevice(user_id=client_user.id, token="ExponentPushToken[client]", platform="ios"))
        db.flush()

        ids = SimpleNamespace(
            admin=admin.id,
            agent=agent.id,
            other_agent=other_agent.id,
            client=client_user.id,
            no_rt_client=no_rt_client.id,
            case=case.id,
            case_reference=case.reference_number,
        )

    return ids


@pytest.fixture
def auth_headers():
    """Build `Authorization` headers for a user id."""
    from immigration_backend.auth import create_access_token

    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}

    return _headers
