"""Pantry ledger: a read-only snapshot of what the user holds.

The ledger is the only view of pantry stock the engine uses while building
a list. Netting never touches storage; deductions are staged on the ledger
and written only by an explicit ``commit`` once the caller has accepted the
list. A failed or abandoned generation therefore never consumes stock.

Commit is optimistic: the ledger remembers the pantry version it was
snapshotted at, and the repository refuses the write if anything changed
since (PantryCommitConflictError).
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from athyra.data_layer.exceptions import PantryCommitConflictError, UnitMismatchError
from athyra.data_layer.models import ZERO, ConsolidatedDemand, NetResult, PantryEntry, to_decimal
from athyra.data_layer.repositories import PantryRepository
from athyra.ingestion.unit_converter import UnitConverter


logger = logging.getLogger(__name__)

# (ingredient id, base unit)
StockKey = Tuple[str, str]


def _expiry_order(entry: PantryEntry):
    # Soonest expiry first, entries without expiry last
    return (entry.expires_at is None, entry.expires_at or "", entry.id)


class PantryLedger:
    """Snapshot of one user's pantry, keyed by canonical ingredient id and base unit.

    Usage:
        ledger = PantryLedger.snapshot(pantry_repo, "user-1", converter)
        result = ledger.net_out(demand)        # pure
        ledger.stage(demand.ingredient_id, result.deducted)
        ...
        ledger.commit(pantry_repo)             # only after acceptance
    """

    def __init__(
        self,
        user_id: str,
        entries: List[PantryEntry],
        version: int,
        converter: UnitConverter
    ):
        self.user_id = user_id
        self.version = version
        self.converter = converter
        self._entries: Dict[StockKey, List[Tuple[PantryEntry, Decimal]]] = {}
        self._available: Dict[StockKey, Decimal] = {}
        self._staged: Dict[StockKey, Decimal] = {}
        self.committed = False

        for entry in sorted(entries, key=_expiry_order):
            try:
                base_qty, base_unit = converter.to_base_unit(
                    entry.ingredient_id, entry.available_quantity, entry.unit
                )
            except UnitMismatchError as e:
                logger.warning("Pantry entry %s ignored for netting: %s", entry.id, e)
                continue
            key = (entry.ingredient_id, base_unit)
            self._entries.setdefault(key, []).append((entry, base_qty))
            self._available[key] = self._available.get(key, ZERO) + base_qty

    @classmethod
    def snapshot(
        cls,
        repository: PantryRepository,
        user_id: str,
        converter: UnitConverter
    ) -> "PantryLedger":
        """Capture the user's current pantry and its version."""
        entries, version = repository.snapshot(user_id)
        return cls(user_id, entries, version, converter)

    def _key(self, ingredient_id: str, base_unit: Optional[str]) -> Optional[StockKey]:
        if base_unit is not None:
            return (ingredient_id, base_unit)
        # First unit the ingredient is held in; catalog ingredients only have one
        for key in self._entries:
            if key[0] == ingredient_id:
                return key
        return None

    def available(self, ingredient_id: str, base_unit: Optional[str] = None) -> Decimal:
        """Quantity on hand not yet staged for deduction, in base units.

        Returns zero when the ingredient is absent or not held in
        *base_unit*. Without a base unit, the unit it is held in is used.
        """
        key = self._key(ingredient_id, base_unit)
        if key is None:
            return ZERO
        held = self._available.get(key, ZERO)
        return max(ZERO, held - self._staged.get(key, ZERO))

    def net_out(self, demand: ConsolidatedDemand) -> NetResult:
        """Net a demand line against the pantry. Does not change the ledger.

        deducted = min(demand, available); to_buy = demand - deducted.
        Unmergeable lines are never netted.
        """
        if not demand.mergeable:
            return NetResult(to_buy=demand.total_quantity, deducted=ZERO)

        available = self.available(demand.ingredient_id, demand.base_unit)
        deducted = min(demand.total_quantity, available)
        to_buy = max(ZERO, demand.total_quantity - deducted)
        return NetResult(to_buy=to_buy, deducted=deducted)

    def stage(self, ingredient_id: str, amount, base_unit: Optional[str] = None) -> None:
        """Record a pending deduction, clamped to what is available."""
        amount = to_decimal(amount)
        if amount < 0:
            raise ValueError(f"Deduction for '{ingredient_id}' cannot be negative: {amount}")
        if amount == 0:
            return
        key = self._key(ingredient_id, base_unit)
        if key is None:
            return
        amount = min(amount, self.available(*key))
        if amount == 0:
            return
        self._staged[key] = self._staged.get(key, ZERO) + amount

    def reset_staged(self) -> None:
        self._staged.clear()

    @property
    def staged(self) -> Dict[StockKey, Decimal]:
        return dict(self._staged)

    def pending_updates(self) -> Tuple[Dict[str, PantryEntry], List[PantryEntry]]:
        """Compute the entries a commit would write.

        Deductions are drawn from entries soonest-expiry first.

        Returns:
            Tuple of (entry id -> updated entry, original entries touched)
        """
        updated: Dict[str, PantryEntry] = {}
        originals: List[PantryEntry] = []

        for key in sorted(self._staged):
            ingredient_id = key[0]
            remaining = self._staged[key]
            for entry, base_qty in self._entries.get(key, []):
                if remaining <= 0:
                    break
                take = min(remaining, base_qty)
                if take <= 0:
                    continue
                remaining -= take

                if take == base_qty:
                    new_quantity = ZERO
                else:
                    used = self.converter.from_base_unit(ingredient_id, take, entry.unit)
                    new_quantity = max(ZERO, entry.available_quantity - used)

                originals.append(entry)
                updated[entry.id] = PantryEntry(
                    id=entry.id,
                    ingredient_id=entry.ingredient_id,
                    name=entry.name,
                    available_quantity=new_quantity,
                    unit=entry.unit,
                    storage_location=entry.storage_location,
                    category=entry.category,
                    expires_at=entry.expires_at,
                    added_at=entry.added_at,
                )

        return updated, originals

    def commit(self, repository: PantryRepository) -> List[PantryEntry]:
        """Write staged deductions to the repository.

        Returns:
            The original (pre-commit) versions of every entry written, so
            the caller can roll back if a later commit step fails

        Raises:
            PantryCommitConflictError: If the pantry changed since snapshot
            RuntimeError: If this ledger was already committed
        """
        if self.committed:
            raise RuntimeError(f"Pantry ledger for '{self.user_id}' already committed")

        updated, originals = self.pending_updates()
        if not updated:
            self.committed = True
            return []

        new_version = repository.apply_deductions(self.user_id, updated, self.version)
        if new_version is None:
            actual = repository.version(self.user_id)
            logger.warning(
                "Pantry commit conflict for %s: expected v%d, found v%d",
                self.user_id, self.version, actual,
            )
            raise PantryCommitConflictError(self.user_id, self.version, actual)

        logger.info(
            "Committed pantry deductions for %s on %d entries (v%d -> v%d)",
            self.user_id, len(updated), self.version, new_version,
        )
        self.version = new_version
        self.committed = True
        return originals
