"""Fixtures: SQLite en memoria, SMTP falso y cliente HTTP sobre la app."""
import smtplib
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from main import app
from pedidos.database import Base, create_tables, get_db
from pedidos.models.product import Product
from pedidos.models.user import User
from pedidos.services.mailer import Mailer, get_mailer


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeSMTPConnection:
    def __init__(self, server, host, port):
        self.server = server
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self):
        self.server.tls_started += 1

    def login(self, user, password):
        self.server.logins.append((user, password))

    def noop(self):
        return 250, b"OK"

    def send_message(self, message):
        if self.server.fail_send:
            raise smtplib.SMTPServerDisconnected("Conexión cerrada por el servidor")
        self.server.outbox.append(message)


class FakeSMTPServer:
    """Sustituye a smtplib.SMTP: se llama igual y guarda los mensajes enviados."""

    def __init__(self):
        self.outbox = []
        self.logins = []
        self.tls_started = 0
        self.connections = 0
        self.fail_send = False
        self.refuse_connections = False

    def __call__(self, host, port, timeout=None):
        if self.refuse_connections:
            raise ConnectionRefusedError(f"{host}:{port} no responde")
        self.connections += 1
        return FakeSMTPConnection(self, host, port)


@pytest.fixture
def smtp_server() -> FakeSMTPServer:
    return FakeSMTPServer()


@pytest.fixture
def mailer(smtp_server) -> Mailer:
    return Mailer(
        host="smtp.test",
        port=587,
        user="tienda@saturnina.test",
        password="secreto",
        from_name="Saturnina",
        smtp_factory=smtp_server,
    )


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    await create_tables(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        session.add_all([
            User(
                id=7,
                name="Lucía",
                last_name="Pérez",
                email="lucia@example.com",
                address="Calle Mayor 1",
                city="Madrid",
                postal_code="28013",
            ),
            User(id=8, name="Mario", last_name="Gómez", email=None),
            Product(id=1, name="Camiseta", price=Decimal("10.50"), stock=10),
            Product(id=2, name="Gorra", price=Decimal("5.00"), stock=3),
        ])
        await session.commit()

    yield factory


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, mailer):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
