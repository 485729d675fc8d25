import os
import time
from typing import Generator, Optional, Union

# Settings are read at import time, so the test environment must be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENCODE_KEY"] = "test-encode-key"
os.environ["CLEANUP_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from stellar_sdk import Account, Keypair, Network, TransactionBuilder

from main import app
from app.db.base import Base
from app.db.session import get_db


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NETWORK_PASSPHRASE = Network.TESTNET_NETWORK_PASSPHRASE


def override_get_db() -> Generator:
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture
def tables() -> Generator:
    """Create a fresh schema for each test"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def file_session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Sessions on a file-backed SQLite database, one connection per session.

    Used where separate sessions must really run concurrently.
    """
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'auth.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    file_engine.dispose()


@pytest.fixture
def session_factory(tables) -> sessionmaker:
    """Session factory bound to the test engine, for code that opens its own sessions"""
    return TestingSessionLocal


@pytest.fixture
def db_session(tables) -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(tables) -> TestClient:
    """Create a test client for the FastAPI application"""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class FakeClock:
    """Epoch-seconds clock that only moves when told to.

    Starts at the real current time so tokens minted against it still decode.
    """

    def __init__(self, start: Optional[int] = None):
        self.now = int(time.time()) if start is None else start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wallet() -> Keypair:
    return Keypair.random()


@pytest.fixture
def other_wallet() -> Keypair:
    return Keypair.random()


def build_envelope(
    source: str,
    data_value: Union[str, bytes, None],
    data_name: str = "auth_challenge",
    signers=(),
    fee_bump_with: Optional[Keypair] = None,
) -> str:
    """Build the transaction a wallet client submits as proof and return its XDR."""
    envelope = (
        TransactionBuilder(
            source_account=Account(source, 0),
            network_passphrase=NETWORK_PASSPHRASE,
            base_fee=100,
        )
        .append_manage_data_op(data_name=data_name, data_value=data_value)
        .set_timeout(30)
        .build()
    )
    for signer in signers:
        envelope.sign(signer)

    if fee_bump_with is not None:
        fee_bump = TransactionBuilder.build_fee_bump_transaction(
            fee_source=fee_bump_with.public_key,
            base_fee=200,
            inner_transaction_envelope=envelope,
            network_passphrase=NETWORK_PASSPHRASE,
        )
        fee_bump.sign(fee_bump_with)
        return fee_bump.to_xdr()
    return envelope.to_xdr()


@pytest.fixture
def envelope_for():
    return build_envelope
