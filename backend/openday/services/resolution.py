"""
Turn request identifiers into an Activity and a canonical SlotKey.

This is the single place where raw identifiers meet the database; callers
get back typed values and never look at the raw strings again.
"""

from typing import Optional, Union

from openday.core.exceptions import InvalidSlotIdentifier, SlotNotFound
from openday.core.logging import get_logger
from openday.core.metrics import slot_prefix_mismatches
from openday.services.ledger import ActivitySnapshot, LedgerTransaction
from openday.services.slot_keys import ActivityRef, SlotKey, SlotKeyCodec

logger = get_logger(__name__)


async def resolve_activity(
    txn: LedgerTransaction,
    codec: SlotKeyCodec,
    activity_ref: Optional[Union[ActivityRef, SlotKey]],
    explicit_key: Optional[int] = None,
) -> ActivitySnapshot:
    """
    Look up the Activity a request refers to.

    An explicit row key wins over the textual reference; it avoids
    re-parsing ambiguity but must still exist.
    """
    if explicit_key is not None:
        activity = await txn.get_activity_by_row_id(codec.row_id(explicit_key))
        if activity is None:
            raise SlotNotFound(explicit_key)
        if isinstance(activity_ref, str) and not codec.is_row_reference(activity_ref):
            textual = codec.canonicalize_activity(activity_ref)
            if textual != activity.activity_id:
                logger.warning(
                    "explicit_key_mismatch",
                    explicit_key=explicit_key,
                    activity_ref=activity_ref,
                    resolved=activity.activity_id,
                )
        return activity

    if activity_ref is None:
        raise SlotNotFound(activity_ref)

    if isinstance(activity_ref, SlotKey):
        activity = await txn.get_activity(activity_ref.activity_id)
    elif codec.is_row_reference(activity_ref):
        activity = await txn.get_activity_by_row_id(codec.row_id(activity_ref))
    else:
        activity = await txn.get_activity(codec.canonicalize_activity(activity_ref))

    if activity is None:
        raise SlotNotFound(activity_ref)
    return activity


async def resolve_key(
    txn: LedgerTransaction,
    codec: SlotKeyCodec,
    activity_ref: Optional[ActivityRef],
    time_slot_id: Union[str, int],
    explicit_key: Optional[int] = None,
) -> SlotKey:
    # Parse the slot first: a malformed slot is a caller error even for unknown activities
    slot_index = codec.extract_slot_index(time_slot_id)
    activity = await resolve_activity(txn, codec, activity_ref, explicit_key)
    _check_slot_prefix(codec, time_slot_id, activity.activity_id)
    return codec.compose_key(activity.activity_id, slot_index)


def _check_slot_prefix(codec: SlotKeyCodec, time_slot_id: Union[str, int], activity_id: str) -> None:
    """The activity decides; a slot id naming another activity is only reported."""
    if not isinstance(time_slot_id, str):
        return
    prefix, _, _ = time_slot_id.strip().rpartition("-")
    if not prefix or codec.is_row_reference(prefix):
        return

    try:
        named = codec.canonicalize_activity(prefix)
    except InvalidSlotIdentifier:
        named = None
    if named != activity_id:
        slot_prefix_mismatches.inc()
        logger.warning(
            "time_slot_prefix_mismatch",
            time_slot_id=time_slot_id,
            prefix=prefix,
            resolved=activity_id,
        )
