"""
Read-only view over a room's seat layout
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from cinebook.config import settings


@dataclass(frozen=True)
class SeatInfo:
    seat_id: str
    seat_type: str
    nominal_price: Optional[Decimal] = None


class SeatMap:
    """
    Seat identifier -> seat type and nominal price.

    Entries may be a dict (``{"type": "vip", "price": 12.5}``) or a bare
    seat-type string; a missing type falls back to the default seat type.
    """

    def __init__(self, raw: Optional[Mapping] = None, default_seat_type: Optional[str] = None):
        self.default_seat_type = default_seat_type or settings.DEFAULT_SEAT_TYPE
        self._seats: Dict[str, SeatInfo] = {}
        for seat_id, entry in (raw or {}).items():
            self._seats[str(seat_id)] = self._parse(str(seat_id), entry)

    def _parse(self, seat_id: str, entry) -> SeatInfo:
        if isinstance(entry, str):
            return SeatInfo(seat_id, entry or self.default_seat_type)
        entry = entry or {}
        price = entry.get("price")
        return SeatInfo(
            seat_id=seat_id,
            seat_type=entry.get("type") or self.default_seat_type,
            nominal_price=Decimal(str(price)) if price is not None else None,
        )

    def __contains__(self, seat_id: str) -> bool:
        return seat_id in self._seats

    def __len__(self) -> int:
        return len(self._seats)

    def get(self, seat_id: str) -> Optional[SeatInfo]:
        return self._seats.get(seat_id)

    def seat_type(self, seat_id: str) -> str:
        info = self._seats.get(seat_id)
        return info.seat_type if info else self.default_seat_type

    def missing(self, seat_ids: Iterable[str]) -> List[str]:
        """Seat ids that are not part of the layout, in request order."""
        return [seat_id for seat_id in seat_ids if seat_id not in self._seats]

    def seat_ids(self) -> List[str]:
        return list(self._seats)

    def to_dict(self) -> Dict[str, dict]:
        return {
            seat_id: {
                "type": info.seat_type,
                "price": float(info.nominal_price) if info.nominal_price is not None else None,
            }
            for seat_id, info in self._seats.items()
        }
