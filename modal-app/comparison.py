"""
Saved calculations for side-by-side comparison ("Auto's vergelijken").
Keeps the most recent entries, cheapest-first views and a JSON store.
"""

import json
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from constants import CALCULATION_METHOD, CALCULATION_TYPE_NAME, MAX_COMPARISONS
from cost_calculator import CostBreakdown, breakdown_to_dict
from vehicle import FUEL_LABELS, VehicleFacts


@dataclass
class ComparisonEntry:
    """One stored calculation. The breakdown is kept in its JSON form."""
    id: str
    kenteken: str
    method: str
    vehicle_summary: dict
    breakdown: dict
    timestamp: str
    type_name: str = CALCULATION_TYPE_NAME

    @property
    def net_monthly(self) -> Optional[float]:
        return self.breakdown.get("totals", {}).get("netMonthly")


def summarize_vehicle(vehicle: Optional[VehicleFacts]) -> dict:
    """Short vehicle description for a comparison card."""
    if vehicle is None:
        return {"make": "", "model": "", "kenteken": "", "buildYear": None, "fuel": ""}
    return {
        "make": vehicle.make,
        "model": vehicle.model,
        "kenteken": vehicle.kenteken,
        "buildYear": (
            vehicle.first_registration_date.year if vehicle.first_registration_date else None
        ),
        "fuel": FUEL_LABELS[vehicle.fuel_category],
    }


class ComparisonList:
    """
    Most-recent-first list of saved calculations.

    Adding a calculation for a kenteken and method that is already stored
    replaces the old entry. The list holds at most max_entries.
    """

    def __init__(self, entries: Optional[list] = None, max_entries: int = MAX_COMPARISONS):
        self.max_entries = max_entries
        self.entries: list = list(entries or [])[:max_entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def add(
        self,
        breakdown: CostBreakdown,
        vehicle: Optional[VehicleFacts] = None,
        method: str = CALCULATION_METHOD,
        now: Optional[datetime] = None,
    ) -> ComparisonEntry:
        """Store a calculation at the front of the list."""
        kenteken = vehicle.plate_id if vehicle is not None else ""
        entry = ComparisonEntry(
            id=uuid.uuid4().hex,
            kenteken=kenteken,
            method=method,
            vehicle_summary=summarize_vehicle(vehicle),
            breakdown=breakdown_to_dict(breakdown),
            timestamp=(now or datetime.now()).isoformat(timespec="seconds"),
        )

        # Manual entries (no kenteken) never replace each other
        if kenteken:
            self.entries = [
                e for e in self.entries if (e.kenteken, e.method) != (kenteken, method)
            ]
        self.entries.insert(0, entry)

        dropped = self.entries[self.max_entries:]
        self.entries = self.entries[:self.max_entries]
        for old in dropped:
            print(f"[COMPARISON] Oudste vergelijking verwijderd: {old.id}")

        print(f"[COMPARISON] Toegevoegd: {kenteken or 'handmatig'} ({len(self.entries)}/{self.max_entries})")
        return entry

    def get(self, entry_id: str) -> Optional[ComparisonEntry]:
        return next((e for e in self.entries if e.id == entry_id), None)

    def remove(self, entry_id: str) -> bool:
        """Remove an entry by id. Returns False when the id is unknown."""
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.id != entry_id]
        return len(self.entries) < before

    def clear(self) -> None:
        self.entries = []

    def sorted_by_net_monthly(self) -> list:
        """Cheapest first; entries without a net monthly amount go last."""
        return sorted(
            self.entries,
            key=lambda e: (e.net_monthly is None, e.net_monthly or 0),
        )

    def best_option(self) -> Optional[ComparisonEntry]:
        ranked = self.sorted_by_net_monthly()
        return ranked[0] if ranked else None

    def price_difference(self) -> float:
        """Monthly net spread between the cheapest and most expensive entry."""
        amounts = [e.net_monthly for e in self.entries if e.net_monthly is not None]
        if len(amounts) < 2:
            return 0
        return max(amounts) - min(amounts)

    def to_list(self) -> list:
        return [asdict(e) for e in self.entries]

    def save(self, path: Union[str, Path]) -> None:
        Path(path).write_text(json.dumps(self.to_list(), ensure_ascii=False, indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Union[str, Path], max_entries: int = MAX_COMPARISONS) -> "ComparisonList":
        """
        Load a stored list. A missing file gives an empty list; an
        unreadable file is reported and also gives an empty list.
        """
        path = Path(path)
        if not path.exists():
            return cls(max_entries=max_entries)

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            entries = [ComparisonEntry(**item) for item in raw]
        except (ValueError, TypeError) as e:
            print(f"[COMPARISON] Fout bij laden vergelijkingen uit {path}: {e}")
            return cls(max_entries=max_entries)

        print(f"[COMPARISON] Vergelijkingen geladen: {len(entries)}")
        return cls(entries, max_entries=max_entries)


def comparison_summary(comparisons: ComparisonList) -> dict:
    """Summary block: cheapest option, monthly spread and count."""
    best = comparisons.best_option()
    return {
        "bestOption": best.type_name if best else "Geen vergelijkingen",
        "bestOptionId": best.id if best else None,
        "priceDifference": round(comparisons.price_difference()),
        "count": len(comparisons),
    }
