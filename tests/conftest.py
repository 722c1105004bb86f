import os

# must be set before agency_crm.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("EVENTS_ENABLED", "false")

import uuid  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, select  # noqa: E402
from sqlalchemy.engine import make_url  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from agency_crm.db import get_db  # noqa: E402
from agency_crm.main import create_app  # noqa: E402
from agency_crm.models import Base, Client, Task, User  # noqa: E402
from agency_crm.models.enums import Role  # noqa: E402

@pytest.fixture()
def db_session() -> Session:
    database_url = os.environ["DATABASE_URL"]

    if make_url(database_url).get_backend_name() == "sqlite":
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(engine)
        session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
        try:
            yield session
        finally:
            session.close()
            Base.metadata.drop_all(engine)
            engine.dispose()
        return

    engine = create_engine(database_url, pool_pre_ping=True)
    connection = engine.connect()
    transaction = connection.begin()
    Base.metadata.create_all(connection)

    # service commits land in savepoints; the outer transaction is thrown away
    TestingSessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()
        engine.dispose()

@pytest.fixture()
def client(db_session: Session) -> TestClient:
    app = create_app()

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    return TestClient(app)

def _login(client, email: str) -> str:
    r = client.post("/auth/request-link", json={"email": email})
    assert r.status_code == 200, r.text
    token = r.json()["token"]

    r = client.post("/auth/redeem", json={"token": token})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]

def _auth(jwt: str) -> dict[str, str]:
    return {"authorization": f"bearer {jwt}"}

def uniq_email(prefix: str) -> str:
    return f"{prefix}+{uuid.uuid4().hex[:10]}@example.com"

def set_role(db: Session, email: str, role: Role) -> User:
    user = db.scalar(select(User).where(User.email == email.lower()))
    assert user is not None
    user.role = role
    db.commit()
    return user

def login_as(client, db: Session, role: Role, prefix: str | None = None) -> tuple[str, User]:
    """Sign a fresh user in and give them ``role`` directly in the db."""
    email = uniq_email(prefix or role.value)
    jwt = _login(client, email)
    user = set_role(db, email, role)
    return jwt, user

def make_user(db: Session, role: Role = Role.team_member) -> User:
    u = User(email=uniq_email(role.value), role=role)
    db.add(u)
    db.commit()
    return u

def make_task(db: Session, creator: User, title: str = "task", **kw) -> Task:
    t = Task(title=title, created_by_id=creator.id, **kw)
    db.add(t)
    db.commit()
    return t

def make_client(db: Session, owner: User, name: str = "acme") -> Client:
    c = Client(name=name, owner_id=owner.id)
    db.add(c)
    db.commit()
    return c

@pytest.fixture()
def admin(db_session: Session) -> User:
    return make_user(db_session, Role.admin)
