# src/checkthecrowd/services/consensus.py
"""Consensus computation over a token's vote set."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Final

from checkthecrowd.models.vote import VOTE_CHOICES

NEUTRAL_LABEL: Final[str] = "unclear"


@dataclass(frozen=True)
class ConsensusSummary:
    """Totals and dominant label for one token."""

    total: int
    counts: dict[str, int] = field(default_factory=dict)
    label: str = NEUTRAL_LABEL

    @property
    def appears_legit(self) -> int:
        return self.counts.get("appears_legit", 0)

    @property
    def suspicious(self) -> int:
        return self.counts.get("suspicious", 0)

    @property
    def unclear(self) -> int:
        return self.counts.get("unclear", 0)

    def as_dict(self) -> dict[str, int | str]:
        return {
            "total": self.total,
            "appearsLegit": self.appears_legit,
            "suspicious": self.suspicious,
            "unclear": self.unclear,
            "label": self.label,
        }


def dominant_label(counts: dict[str, int]) -> str:
    """Return the label with the strictly highest count.

    Shared maxima and empty vote sets resolve to the neutral label.
    """
    top = max(counts.values(), default=0)
    if top == 0:
        return NEUTRAL_LABEL
    winners = [choice for choice, count in counts.items() if count == top]
    if len(winners) > 1:
        return NEUTRAL_LABEL
    return winners[0]


def aggregate(choices: Iterable[str]) -> ConsensusSummary:
    """Reduce raw vote choices to totals and a dominant label.

    Raises:
        ValueError: If a choice is outside the vote vocabulary.
    """
    tally = Counter(choices)
    unknown = set(tally) - set(VOTE_CHOICES)
    if unknown:
        raise ValueError(f"Unknown vote choice(s): {', '.join(sorted(unknown))}")

    counts = {choice: tally.get(choice, 0) for choice in VOTE_CHOICES}
    return ConsensusSummary(
        total=sum(counts.values()),
        counts=counts,
        label=dominant_label(counts),
    )
