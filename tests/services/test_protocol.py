from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from checkthecrowd.core.errors import (
    ConfigError,
    InvalidSignatureFormat,
    MessageMismatch,
    NonceRejected,
    ProtocolError,
    RateLimited,
    WalletMismatch,
)
from checkthecrowd.core.settings import settings
from checkthecrowd.models import Nonce, Vote, VoteHistory
from checkthecrowd.services.messages import build_login_message, build_vote_message
from checkthecrowd.services.nonce import IssuedNonce, NonceLedger
from checkthecrowd.services.protocol import WalletAuthProtocol
from checkthecrowd.services.rate_limit import InMemoryRateLimiter, RateLimitDecision
from checkthecrowd.services.session import SessionIssuer

from tests.conftest import ETH_TOKEN, SOL_TOKEN, TEST_DOMAIN, FakeClock


class DenyAll:
    def __init__(self, retry_after: int = 7) -> None:
        self.keys: list[str] = []
        self.retry_after = retry_after

    def check(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        self.keys.append(key)
        return RateLimitDecision(allowed=False, retry_after_seconds=self.retry_after)


@pytest.fixture()
def protocol(db_session: Session, session_issuer: SessionIssuer) -> WalletAuthProtocol:
    return WalletAuthProtocol(db_session, session_issuer=session_issuer)


def _login_message(wallet: str, issued: IssuedNonce) -> str:
    return build_login_message(
        domain=TEST_DOMAIN,
        wallet=wallet,
        nonce=issued.value,
        issued_at=issued.issued_at,
        expires_at=issued.expires_at,
    )


def _vote_message(wallet: str, issued: IssuedNonce, *, chain: str, address: str, choice: str) -> str:
    return build_vote_message(
        domain=TEST_DOMAIN,
        chain=chain,
        address=address,
        choice=choice,
        wallet=wallet,
        nonce=issued.value,
        issued_at=issued.issued_at,
        expires_at=issued.expires_at,
    )


def _used_nonces(session: Session) -> int:
    return session.execute(
        select(func.count()).select_from(Nonce).where(Nonce.used_at.is_not(None))
    ).scalar_one()


def _count(session: Session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


@pytest.mark.parametrize("family", ["evm", "base58"])
def test_login_issues_verifiable_session(
    family: str,
    wallet_factory,
    protocol: WalletAuthProtocol,
    session_issuer: SessionIssuer,
    db_session: Session,
) -> None:
    wallet = wallet_factory(family)
    issued = protocol.issue_challenge(wallet["address"])
    message = _login_message(wallet["address"], issued)

    result = protocol.login(
        domain=TEST_DOMAIN,
        wallet=wallet["address"],
        signature=wallet["sign"](message),
        message=message,
        nonce=issued.value,
    )

    payload = session_issuer.verify(result.session_token)
    assert payload is not None
    assert payload.wallet == result.wallet
    assert result.expires_at == payload.expires_at_datetime
    assert _used_nonces(db_session) == 1


def test_login_replay_is_rejected(
    evm_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
) -> None:
    issued = protocol.issue_challenge(evm_wallet["address"])
    message = _login_message(evm_wallet["address"], issued)
    request = {
        "domain": TEST_DOMAIN,
        "wallet": evm_wallet["address"],
        "signature": evm_wallet["sign"](message),
        "message": message,
        "nonce": issued.value,
    }
    protocol.login(**request)

    with pytest.raises(NonceRejected):
        protocol.login(**request)


def test_login_with_other_wallets_signature_keeps_nonce(
    evm_wallet: dict[str, Any],
    other_evm_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
    db_session: Session,
) -> None:
    issued = protocol.issue_challenge(evm_wallet["address"])
    message = _login_message(evm_wallet["address"], issued)

    with pytest.raises(WalletMismatch):
        protocol.login(
            domain=TEST_DOMAIN,
            wallet=evm_wallet["address"],
            signature=other_evm_wallet["sign"](message),
            message=message,
            nonce=issued.value,
        )
    assert _used_nonces(db_session) == 0


def test_login_bound_to_domain(
    evm_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
    db_session: Session,
) -> None:
    issued = protocol.issue_challenge(evm_wallet["address"])
    message = _login_message(evm_wallet["address"], issued)

    with pytest.raises(MessageMismatch):
        protocol.login(
            domain="evil.example",
            wallet=evm_wallet["address"],
            signature=evm_wallet["sign"](message),
            message=message,
            nonce=issued.value,
        )
    assert _used_nonces(db_session) == 0


def test_nonce_issued_to_other_wallet_is_rejected(
    evm_wallet: dict[str, Any],
    other_evm_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
) -> None:
    issued = protocol.issue_challenge(other_evm_wallet["address"])
    message = _login_message(evm_wallet["address"], issued)

    with pytest.raises(NonceRejected):
        protocol.login(
            domain=TEST_DOMAIN,
            wallet=evm_wallet["address"],
            signature=evm_wallet["sign"](message),
            message=message,
            nonce=issued.value,
        )


def test_expired_nonce_is_rejected(
    evm_wallet: dict[str, Any],
    db_session: Session,
    session_issuer: SessionIssuer,
    clock: FakeClock,
) -> None:
    protocol = WalletAuthProtocol(
        db_session,
        nonce_ledger=NonceLedger(db_session, clock=clock),
        session_issuer=session_issuer,
    )
    issued = protocol.issue_challenge(evm_wallet["address"])
    message = _login_message(evm_wallet["address"], issued)

    clock.advance(minutes=5)

    with pytest.raises(NonceRejected) as exc_info:
        protocol.login(
            domain=TEST_DOMAIN,
            wallet=evm_wallet["address"],
            signature=evm_wallet["sign"](message),
            message=message,
            nonce=issued.value,
        )
    assert exc_info.value.status_code == 401


def test_login_without_secret_fails_before_burning_nonce(
    evm_wallet: dict[str, Any],
    db_session: Session,
) -> None:
    protocol = WalletAuthProtocol(db_session, session_issuer=SessionIssuer(""))
    issued = protocol.issue_challenge(evm_wallet["address"])
    message = _login_message(evm_wallet["address"], issued)

    with pytest.raises(ConfigError):
        protocol.login(
            domain=TEST_DOMAIN,
            wallet=evm_wallet["address"],
            signature=evm_wallet["sign"](message),
            message=message,
            nonce=issued.value,
        )
    assert _used_nonces(db_session) == 0


def test_boundary_checks_run_before_lookup(
    evm_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
) -> None:
    issued = protocol.issue_challenge(evm_wallet["address"])
    base = {
        "domain": TEST_DOMAIN,
        "wallet": evm_wallet["address"],
        "signature": "0x" + "ab" * 65,
        "message": "m",
        "nonce": issued.value,
    }
    with pytest.raises(InvalidSignatureFormat):
        protocol.login(**{**base, "signature": "deadbeef"})
    with pytest.raises(ProtocolError, match="message is too long"):
        protocol.login(**{**base, "message": "x" * 501})
    with pytest.raises(ProtocolError, match="nonce is required"):
        protocol.login(**{**base, "nonce": ""})
    with pytest.raises(ProtocolError, match="nonce is too long"):
        protocol.login(**{**base, "nonce": "n" * 129})


def test_rate_limited_requests_do_nothing(
    evm_wallet: dict[str, Any],
    db_session: Session,
    session_issuer: SessionIssuer,
) -> None:
    limiter = DenyAll(retry_after=7)
    protocol = WalletAuthProtocol(db_session, rate_limiter=limiter, session_issuer=session_issuer)

    with pytest.raises(RateLimited) as exc_info:
        protocol.issue_challenge(evm_wallet["address"], client_key="1.2.3.4")

    assert exc_info.value.retry_after_seconds == 7
    assert exc_info.value.status_code == 429
    assert limiter.keys == ["auth:nonce:1.2.3.4"]
    assert _count(db_session, Nonce) == 0


def test_gate_is_skipped_without_client_key(
    evm_wallet: dict[str, Any],
    db_session: Session,
) -> None:
    protocol = WalletAuthProtocol(db_session, rate_limiter=DenyAll())
    protocol.issue_challenge(evm_wallet["address"])
    assert _count(db_session, Nonce) == 1


def test_in_memory_gate_counts_per_action(
    evm_wallet: dict[str, Any],
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(settings, "rate_limit_nonce", 2)
    protocol = WalletAuthProtocol(db_session, rate_limiter=InMemoryRateLimiter())
    protocol.issue_challenge(evm_wallet["address"], client_key="ip")
    protocol.issue_challenge(evm_wallet["address"], client_key="ip")
    with pytest.raises(RateLimited):
        protocol.issue_challenge(evm_wallet["address"], client_key="ip")


def test_cast_vote_records_vote(
    sol_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
    db_session: Session,
) -> None:
    issued = protocol.issue_challenge(sol_wallet["address"])
    message = _vote_message(
        sol_wallet["address"], issued, chain="eth", address=ETH_TOKEN, choice="suspicious"
    )

    record = protocol.cast_vote(
        domain=TEST_DOMAIN,
        chain="eth",
        address=ETH_TOKEN,
        wallet=sol_wallet["address"],
        choice="suspicious",
        signature=sol_wallet["sign"](message),
        message=message,
        nonce=issued.value,
    )

    assert record.choice == "suspicious"
    assert record.address == ETH_TOKEN.lower()
    assert record.message == message
    history = db_session.execute(select(VoteHistory)).scalar_one()
    assert history.nonce_value == issued.value
    assert _used_nonces(db_session) == 1


def test_second_vote_needs_fresh_nonce(
    evm_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
    db_session: Session,
) -> None:
    choices = ["appears_legit", "suspicious"]
    records = []
    for choice in choices:
        issued = protocol.issue_challenge(evm_wallet["address"])
        message = _vote_message(
            evm_wallet["address"], issued, chain="sol", address=SOL_TOKEN, choice=choice
        )
        records.append(
            protocol.cast_vote(
                domain=TEST_DOMAIN,
                chain="sol",
                address=SOL_TOKEN,
                wallet=evm_wallet["address"],
                choice=choice,
                signature=evm_wallet["sign"](message),
                message=message,
                nonce=issued.value,
            )
        )

    assert records[1].previous_choice == "appears_legit"
    assert _count(db_session, Vote) == 1
    assert _count(db_session, VoteHistory) == 2


def test_vote_with_altered_choice_writes_nothing(
    evm_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
    db_session: Session,
) -> None:
    issued = protocol.issue_challenge(evm_wallet["address"])
    message = _vote_message(
        evm_wallet["address"], issued, chain="eth", address=ETH_TOKEN, choice="appears_legit"
    )

    with pytest.raises(MessageMismatch):
        protocol.cast_vote(
            domain=TEST_DOMAIN,
            chain="eth",
            address=ETH_TOKEN,
            wallet=evm_wallet["address"],
            choice="suspicious",
            signature=evm_wallet["sign"](message),
            message=message,
            nonce=issued.value,
        )

    assert _count(db_session, Vote) == 0
    assert _count(db_session, VoteHistory) == 0
    assert _used_nonces(db_session) == 0


def test_vote_rejects_unknown_choice(
    evm_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
) -> None:
    with pytest.raises(ProtocolError, match="Invalid choice"):
        protocol.cast_vote(
            domain=TEST_DOMAIN,
            chain="eth",
            address=ETH_TOKEN,
            wallet=evm_wallet["address"],
            choice="valid",
            signature="0x" + "ab" * 65,
            message="m",
            nonce="n",
        )


def test_login_nonce_cannot_cast_vote(
    evm_wallet: dict[str, Any],
    protocol: WalletAuthProtocol,
) -> None:
    issued = protocol.issue_challenge(evm_wallet["address"])
    message = _login_message(evm_wallet["address"], issued)

    with pytest.raises(MessageMismatch):
        protocol.cast_vote(
            domain=TEST_DOMAIN,
            chain="eth",
            address=ETH_TOKEN,
            wallet=evm_wallet["address"],
            choice="unclear",
            signature=evm_wallet["sign"](message),
            message=message,
            nonce=issued.value,
        )
