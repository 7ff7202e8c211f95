import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from billsplit.db import get_session, init_db
from billsplit.main import app
from billsplit.models.schemas import LineItemIn, ParticipantIn, ReceiptIn, ReceiptSplitCreate
from billsplit.models.user import User
from billsplit.routes.split import require_user
from billsplit.services import split_service


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def users(session):
    """Alice creates splits; Bob and Carol join them; Eve is never invited."""
    people = {
        "alice": User(name="Alice Smith", email="alice@example.com"),
        "bob": User(name="Bob Brown", email="bob@example.com"),
        "carol": User(name="Carol Jones", email="carol@example.com"),
        "eve": User(name="Eve Adams", email="eve@example.com"),
    }
    for u in people.values():
        session.add(u)
    session.commit()
    for u in people.values():
        session.refresh(u)
    return people


@pytest.fixture
def receipt_split(session, users):
    """Burger 12.00 x2, Pizza 18.00 x1, Fries 5.00 x1; tax 3.50, tip 5.00."""
    data = ReceiptSplitCreate(
        title="Friday dinner",
        receipt=ReceiptIn(
            items=[
                LineItemIn(name="Burger", unit_price=Decimal("12.00"), quantity=2),
                LineItemIn(name="Pizza", unit_price=Decimal("18.00"), quantity=1),
                LineItemIn(name="Fries", unit_price=Decimal("5.00"), quantity=1),
            ],
            subtotal=Decimal("47.00"),
            tax=Decimal("3.50"),
            tip=Decimal("5.00"),
        ),
        participants=[ParticipantIn(user_id=users["bob"].id), ParticipantIn(user_id=users["carol"].id)],
    )
    return split_service.create_itemized_split(session, users["alice"], data)


@pytest.fixture
def acting(users):
    # whoever is in here is the logged-in user for the test client
    return {"user": users["alice"]}


@pytest.fixture
def client(engine, acting):
    def _session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[require_user] = lambda: acting["user"]
    yield TestClient(app)
    app.dependency_overrides.clear()
