# Overview: Pure FIFO lot allocation and bundle capacity math; no database access.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable


@dataclass(frozen=True)
class LotSnapshot:
    lot_id: int
    quantity_remaining: int
    unit_cost_cents: int = 0
    purchase_date: datetime | None = None


@dataclass(frozen=True)
class LotDraw:
    lot_id: int
    quantity: int
    unit_cost_cents: int = 0

    @property
    def cost_cents(self) -> int:
        return self.quantity * self.unit_cost_cents


@dataclass(frozen=True)
class Allocation:
    requested: int
    draws: tuple[LotDraw, ...]
    shortfall: int

    @property
    def allocated(self) -> int:
        return self.requested - self.shortfall

    @property
    def fulfilled(self) -> bool:
        return self.shortfall == 0

    @property
    def cost_cents(self) -> int:
        return sum(d.cost_cents for d in self.draws)


def allocate_fifo(lots: Iterable[LotSnapshot], quantity: int) -> Allocation:
    """
    Consume `quantity` units from `lots` in the order given (oldest first).

    Each lot gives min(remaining, still_needed). Empty lots are skipped.
    When the lots cannot cover the request, the draws still describe
    everything that was available and `shortfall` holds the missing units;
    callers decide whether a partial allocation is acceptable (it never is
    for a sale).
    """
    if quantity < 0:
        raise ValueError("quantity must be non-negative")

    still_needed = quantity
    draws: list[LotDraw] = []
    for lot in lots:
        if still_needed == 0:
            break
        if lot.quantity_remaining <= 0:
            continue
        take = min(lot.quantity_remaining, still_needed)
        draws.append(LotDraw(lot_id=lot.lot_id, quantity=take, unit_cost_cents=lot.unit_cost_cents))
        still_needed -= take

    return Allocation(requested=quantity, draws=tuple(draws), shortfall=still_needed)


def max_bundle_quantity(components: Iterable[tuple[int, int]]) -> int:
    """
    Largest number of bundles the component stock can build.

    `components` yields (available_stock, quantity_per_bundle) pairs. A bundle
    without components cannot be sold.
    """
    capacities = [
        max(available, 0) // per_bundle
        for available, per_bundle in components
        if per_bundle > 0
    ]
    if not capacities:
        return 0
    return min(capacities)
