"""Import a legacy JSON dev store into the configured database.

The dev store kept plaintext wallets; this import replaces each with its
wallet key and writes one history row per imported vote.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from checkthecrowd.core.errors import InvalidAddress
from checkthecrowd.db.session import SessionLocal, create_tables
from checkthecrowd.db.time import ensure_utc, utcnow
from checkthecrowd.services.votes import TokenRef, VoteLedger, VoteProof

logger = logging.getLogger(__name__)

# Earlier builds used a different choice vocabulary.
LEGACY_CHOICES: dict[str, str] = {
    "valid": "appears_legit",
    "risky": "suspicious",
    "unknown": "unclear",
}


@dataclass
class ImportReport:
    tokens: int = 0
    votes: int = 0
    skipped: int = 0


def load_store(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Read the store file, tolerating missing sections."""
    parsed = json.loads(path.read_text(encoding="utf-8"))
    return {
        "tokens": parsed.get("tokens") if isinstance(parsed.get("tokens"), list) else [],
        "votes": parsed.get("votes") if isinstance(parsed.get("votes"), list) else [],
    }


def _timestamp(value: Any, fallback: datetime) -> datetime:
    if not value:
        return fallback
    try:
        return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return fallback


def canonical_choice(raw: str) -> str:
    """Map a stored choice onto the current vocabulary."""
    choice = raw.strip().lower()
    return LEGACY_CHOICES.get(choice, choice)


def import_store(db: Session, store: Mapping[str, list[dict[str, Any]]]) -> ImportReport:
    """Write every valid token and vote from ``store``; skip the rest."""
    report = ImportReport()
    now = utcnow()

    for token in store["tokens"]:
        chain, address = token.get("chain"), token.get("address")
        if not chain or not address:
            report.skipped += 1
            continue
        created_at = _timestamp(token.get("createdAt"), now)
        try:
            VoteLedger(db, clock=lambda: created_at).register_token(str(chain).lower(), str(address))
        except InvalidAddress as err:
            logger.warning("Skipping token %s:%s: %s", chain, address, err.reason)
            report.skipped += 1
            continue
        report.tokens += 1

    for vote in store["votes"]:
        fields = [vote.get(name) for name in ("chain", "address", "voterWallet", "choice")]
        if not all(fields):
            report.skipped += 1
            continue
        chain, address, wallet, raw_choice = (str(value) for value in fields)
        signature = vote.get("signature") or None
        stamped_at = _timestamp(vote.get("updatedAt") or vote.get("createdAt"), now)
        ledger = VoteLedger(db, clock=lambda: stamped_at)
        try:
            ledger.submit_vote(
                TokenRef(chain=chain.lower(), address=address),
                wallet,
                canonical_choice(raw_choice),
                VoteProof(
                    signature=signature,
                    message=vote.get("message") or None,
                    verification_method="signed" if signature else "connected_only",
                ),
            )
        except (InvalidAddress, ValueError) as err:
            logger.warning("Skipping vote on %s:%s: %s", chain, address, err)
            report.skipped += 1
            continue
        report.votes += 1

    return report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("store", type=Path, help="Path to dev-store.json")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before importing",
    )
    args = parser.parse_args(argv)

    try:
        store = load_store(args.store)
    except (OSError, json.JSONDecodeError) as err:
        print(f"Failed to read {args.store}: {err}", file=sys.stderr)
        return 1

    if not store["tokens"] and not store["votes"]:
        print("No rows to migrate (tokens/votes are empty).")
        return 0

    if args.create_tables:
        create_tables()

    with SessionLocal() as db:
        report = import_store(db, store)

    print(
        f"Migration complete: tokens={report.tokens}, votes={report.votes}, "
        f"skipped={report.skipped}"
    )
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
