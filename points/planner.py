"""
Oldest-first spending plans.

A plan says how many points to take from each payer so that the oldest
spendable points go first and no payer ends up below zero.

Negative transactions (corrections) are applied to the same payer's earlier
positive chunks before anything is spent. A correction larger than what the
payer had granted up to that moment only neutralizes what exists; the excess
is dropped, not carried forward.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from .models import Transaction


@dataclass(frozen=True)
class Chunk:
    payer: str
    timestamp: datetime


def create_spending_plan(transactions: Iterable[Transaction], points: int) -> dict[str, int]:
    """
    Build a spending plan for ``points`` over a ledger snapshot.

    Returns payer -> delta (each <= 0), ordered by the first chunk touched.
    A payer whose chunks were fully neutralized can still appear with 0.
    The total may fall short of ``points``; the caller decides what to do.
    """
    # sorted() is stable, so equal timestamps keep insertion order
    ordered = sorted(transactions, key=lambda t: t.timestamp)

    chunks: list[Chunk] = []
    available: list[int] = []
    chunks_by_payer: dict[str, list[int]] = {}

    for transaction in ordered:
        if transaction.points > 0:
            chunks_by_payer.setdefault(transaction.payer, []).append(len(chunks))
            chunks.append(Chunk(transaction.payer, transaction.timestamp))
            available.append(transaction.points)
        elif transaction.points < 0:
            left = -transaction.points
            for index in chunks_by_payer.get(transaction.payer, []):
                if left <= 0:
                    break
                taken = min(left, available[index])
                left -= taken
                available[index] -= taken

    plan: dict[str, int] = {}
    remaining = points
    for chunk, amount in zip(chunks, available):
        if remaining <= 0:
            break
        plan.setdefault(chunk.payer, 0)
        spend_now = min(remaining, amount)
        remaining -= spend_now
        plan[chunk.payer] -= spend_now

    return plan


def plan_total(plan: dict[str, int]) -> int:
    """Points a plan actually covers."""
    return -sum(plan.values())
