"""
Slot identifier canonicalization.

The request layer hands us several identifier shapes for the same thing:

  - a numeric activity row id ("42" or 42), the "explicit key"
  - a textual activity id, optionally suffixed with a variant number ("simlab-2")
  - a time-slot id embedding the activity id as a prefix ("simlab-2-3")

SlotKeyCodec turns them into one `SlotKey(activity_id, slot_index)` at the
boundary. Everything downstream (cache, locks, ledger queries) takes the
SlotKey as an opaque value and never re-parses strings.

Variant policy
==============

`preserve_variants=True`: "simlab-2" is its own activity with its own
capacity pool. `preserve_variants=False`: the suffix is stripped and
"simlab-2" books against "simlab". The policy is fixed per codec instance so
one call chain can't mix the two.
"""

import re
from dataclasses import dataclass
from typing import Union

from openday.core.exceptions import InvalidSlotIdentifier

ActivityRef = Union[str, int]

_VARIANT_SUFFIX = re.compile(r"-\d+$")
KEY_SEPARATOR = ":"


@dataclass(frozen=True, order=True)
class SlotKey:
    """Canonical (activity_id, slot_index) pair; the unit of capacity bookkeeping."""

    activity_id: str
    slot_index: int

    def __str__(self) -> str:
        return f"{self.activity_id}{KEY_SEPARATOR}{self.slot_index}"


class SlotKeyCodec:
    def __init__(self, preserve_variants: bool = True, max_slots: int = 5) -> None:
        if max_slots < 1:
            raise ValueError("max_slots must be positive")
        self.preserve_variants = preserve_variants
        self.max_slots = max_slots

    def is_row_reference(self, raw: ActivityRef) -> bool:
        """True when the reference is a numeric row id rather than a textual id."""
        if isinstance(raw, bool):
            return False
        if isinstance(raw, int):
            return True
        return isinstance(raw, str) and raw.strip().isdigit()

    def row_id(self, raw: ActivityRef) -> int:
        if not self.is_row_reference(raw):
            raise InvalidSlotIdentifier(raw, "not a numeric row id")
        row_id = int(raw)
        if row_id < 1:
            raise InvalidSlotIdentifier(raw, "row ids start at 1")
        return row_id

    def canonicalize_activity(self, raw_id: str, preserve_variants: bool | None = None) -> str:
        """
        Canonical textual activity id.

        `preserve_variants` overrides the codec policy; callers inside the
        engine never pass it.
        """
        if not isinstance(raw_id, str):
            raise InvalidSlotIdentifier(raw_id, "activity id must be text")
        activity_id = raw_id.strip()
        if not activity_id:
            raise InvalidSlotIdentifier(raw_id, "empty activity id")

        preserve = self.preserve_variants if preserve_variants is None else preserve_variants
        if preserve:
            return activity_id

        base = _VARIANT_SUFFIX.sub("", activity_id)
        if not base:
            raise InvalidSlotIdentifier(raw_id, "nothing left after stripping variant suffix")
        return base

    def extract_slot_index(self, time_slot_id: Union[str, int]) -> int:
        """Slot number after the final '-' of a time-slot id (a bare number is accepted)."""
        if isinstance(time_slot_id, bool):
            raise InvalidSlotIdentifier(time_slot_id, "not a time-slot id")
        if isinstance(time_slot_id, int):
            tail = str(time_slot_id)
        elif isinstance(time_slot_id, str):
            text = time_slot_id.strip()
            _, _, tail = text.rpartition("-")
        else:
            raise InvalidSlotIdentifier(time_slot_id, "not a time-slot id")

        if not tail.isdigit():
            raise InvalidSlotIdentifier(time_slot_id, "no trailing slot number")

        slot_index = int(tail)
        if not 1 <= slot_index <= self.max_slots:
            raise InvalidSlotIdentifier(
                time_slot_id, f"slot number must be between 1 and {self.max_slots}"
            )
        return slot_index

    def compose_key(self, activity_id: str, slot_index: int) -> SlotKey:
        if not activity_id:
            raise InvalidSlotIdentifier(activity_id, "empty activity id")
        if not 1 <= slot_index <= self.max_slots:
            raise InvalidSlotIdentifier(slot_index, f"slot number must be between 1 and {self.max_slots}")
        return SlotKey(activity_id, slot_index)

    def parse_key(self, text: str) -> SlotKey:
        """Inverse of `str(SlotKey)`."""
        activity_id, sep, slot = text.rpartition(KEY_SEPARATOR)
        if not sep or not slot.isdigit():
            raise InvalidSlotIdentifier(text, "expected '<activity>:<slot>'")
        return self.compose_key(activity_id, int(slot))

    def slot_keys(self, activity_id: str) -> list[SlotKey]:
        """Every canonical key an activity exposes (slots 1..max_slots)."""
        return [SlotKey(activity_id, index) for index in range(1, self.max_slots + 1)]
