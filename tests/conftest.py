# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import base58
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from nacl.signing import SigningKey
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from checkthecrowd.db.session import Base, build_engine, create_tables
from checkthecrowd.services.session import SessionIssuer

TEST_DB_URL = "sqlite://"
TEST_SESSION_SECRET = "test-session-secret-0123456789"
TEST_DOMAIN = "checkthecrowd.test"

ETH_TOKEN = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
SOL_TOKEN = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class FakeClock:
    """Settable clock for code that takes a ``clock`` callable."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 14, 12, 0, 0, 123000, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    create_tables(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def session_issuer() -> SessionIssuer:
    return SessionIssuer(TEST_SESSION_SECRET)


def _generate_evm_wallet() -> dict[str, Any]:
    account = Account.create()

    def sign(message: str) -> str:
        signed = Account.sign_message(encode_defunct(text=message), private_key=account.key)
        return "0x" + bytes(signed.signature).hex()

    return {"address": account.address, "sign": sign}


def _generate_sol_wallet() -> dict[str, Any]:
    signing_key = SigningKey.generate()
    address = base58.b58encode(signing_key.verify_key.encode()).decode()

    def sign(message: str) -> str:
        return "0x" + signing_key.sign(message.encode("utf-8")).signature.hex()

    return {"address": address, "sign": sign}


@pytest.fixture()
def evm_wallet() -> dict[str, Any]:
    """Return a fresh EVM wallet with a personal-message signer."""
    return _generate_evm_wallet()


@pytest.fixture()
def other_evm_wallet() -> dict[str, Any]:
    """Return a second EVM wallet, distinct from ``evm_wallet``."""
    return _generate_evm_wallet()


@pytest.fixture()
def sol_wallet() -> dict[str, Any]:
    """Return a fresh Ed25519 wallet encoded as base58."""
    return _generate_sol_wallet()


@pytest.fixture()
def wallet_factory() -> Callable[[str], dict[str, Any]]:
    factories = {"evm": _generate_evm_wallet, "base58": _generate_sol_wallet}
    return lambda family: factories[family]()
