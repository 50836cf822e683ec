"""
Pytest configuration shared by unit and API tests.

Settings are read once and cached, so the environment is prepared before any
`nebula` module is imported.
"""
import os
from datetime import timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ALLOWED_HOSTS"] = '["testserver"]'
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""
os.environ.setdefault("ADMIN_EMAIL", "")

import pytest
from sqlalchemy.orm import sessionmaker

from nebula.database import build_engine, create_tables, utcnow
from nebula.models.user import User, UserRole
from nebula.services import auth as auth_module
from nebula.services.auth import AuthService
from nebula.services.identity import generate_qr_code, generate_ticket_number
from nebula.services.ticket_store import TicketStore

TEST_PASSWORD = "secret123"
EVENT_DATE = (utcnow() + timedelta(days=30)).replace(hour=20, minute=0, second=0, microsecond=0)


class FakeNotifier:
    """Stands in for EmailService; records what would have been sent."""

    def __init__(self):
        self.sent = []
        self.deliver = True
        self.error = None

    async def send_ticket_email(self, ticket) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append(ticket.ticket_number)
        return self.deliver


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(auth_module, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def password():
    return TEST_PASSWORD


@pytest.fixture
def notifier():
    return FakeNotifier()


def make_user(db, role: UserRole, email: str = None, is_active: bool = True) -> User:
    user = User(
        email=email or f"{role.value}@example.com",
        name=f"{role.value.title()} User",
        password_hash=AuthService.hash_password(TEST_PASSWORD),
        role=role,
        is_active=is_active
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db):
    return make_user(db, UserRole.ADMIN)


@pytest.fixture
def sales_user(db):
    return make_user(db, UserRole.SALES)


@pytest.fixture
def scanner_user(db):
    return make_user(db, UserRole.SCANNER)


def create_ticket(db, creator: User, event_name: str = "Nebula Live", buyer_email: str = "buyer@example.com", **overrides):
    event = TicketStore.create_event(
        db,
        name=event_name,
        location=overrides.pop("location", "Main Hall"),
        event_date=overrides.pop("event_date", EVENT_DATE),
        base_price=overrides.get("price", 25.0),
        creator_id=creator.id
    )
    fields = dict(
        event_id=event.id,
        buyer_name="Ada Buyer",
        buyer_email=buyer_email,
        buyer_phone=None,
        price=25.0,
        ticket_number=generate_ticket_number(),
        qr_code=generate_qr_code(),
        creator_id=creator.id
    )
    fields.update(overrides)
    ticket = TicketStore.create_ticket(db, **fields)
    return TicketStore.get_ticket(db, ticket.id)


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {AuthService.create_access_token(user)}"}


@pytest.fixture
def make_ticket(db):
    def factory(creator: User, **overrides):
        return create_ticket(db, creator, **overrides)
    return factory


@pytest.fixture
def auth_headers():
    return bearer


@pytest.fixture
def client(session_factory, notifier):
    from fastapi.testclient import TestClient

    from nebula.database import get_db
    from nebula.main import app
    from nebula.services.email import get_notifier

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()
