"""
Tests for slot identifier canonicalization.
"""

import pytest

from openday.core.exceptions import InvalidSlotIdentifier
from openday.services.slot_keys import SlotKey, SlotKeyCodec


@pytest.fixture
def codec():
    return SlotKeyCodec(preserve_variants=True, max_slots=5)


def test_variant_preserved(codec):
    """Numbered variants are their own activity by default."""
    assert codec.canonicalize_activity("foo-2") == "foo-2"
    assert codec.canonicalize_activity("foo-2", preserve_variants=True) == "foo-2"


def test_variant_stripped():
    codec = SlotKeyCodec(preserve_variants=False)
    assert codec.canonicalize_activity("foo-2") == "foo"
    assert codec.canonicalize_activity("foo") == "foo"
    # Only the final numeric suffix goes
    assert codec.canonicalize_activity("open-day-12") == "open-day"


def test_policy_override(codec):
    assert codec.canonicalize_activity("foo-2", preserve_variants=False) == "foo"


@pytest.mark.parametrize("raw", ["", "   ", None, 42])
def test_canonicalize_rejects_bad_ids(codec, raw):
    with pytest.raises(InvalidSlotIdentifier):
        codec.canonicalize_activity(raw)


def test_nothing_left_after_stripping():
    codec = SlotKeyCodec(preserve_variants=False)
    with pytest.raises(InvalidSlotIdentifier):
        codec.canonicalize_activity("-3")


@pytest.mark.parametrize(
    "time_slot_id, expected",
    [
        ("simlab-3", 3),
        ("foo-2-1", 1),
        (" robotics-5 ", 5),
        ("4", 4),
        (2, 2),
    ],
)
def test_extract_slot_index(codec, time_slot_id, expected):
    assert codec.extract_slot_index(time_slot_id) == expected


@pytest.mark.parametrize("time_slot_id", ["simlab", "simlab-", "simlab-x", "simlab-0", "simlab-6", 0, True, None])
def test_extract_slot_index_rejects(codec, time_slot_id):
    """No silent default to slot 0."""
    with pytest.raises(InvalidSlotIdentifier):
        codec.extract_slot_index(time_slot_id)


def test_compose_key_is_stable(codec):
    first = codec.compose_key(codec.canonicalize_activity("foo-2"), codec.extract_slot_index("foo-2-1"))
    second = codec.compose_key(codec.canonicalize_activity("foo-2"), codec.extract_slot_index("foo-2-1"))
    assert first == second
    assert hash(first) == hash(second)
    assert first == SlotKey("foo-2", 1)
    assert str(first) == "foo-2:1"


def test_keys_are_ordered():
    keys = [SlotKey("b", 1), SlotKey("a", 2), SlotKey("a", 1)]
    assert sorted(keys) == [SlotKey("a", 1), SlotKey("a", 2), SlotKey("b", 1)]


def test_parse_key_inverts_str(codec):
    key = SlotKey("foo-2", 3)
    assert codec.parse_key(str(key)) == key


@pytest.mark.parametrize("text", ["foo", "foo:", "foo:x", ":1", "foo:9"])
def test_parse_key_rejects(codec, text):
    with pytest.raises(InvalidSlotIdentifier):
        codec.parse_key(text)


@pytest.mark.parametrize("raw, expected", [(7, True), ("12", True), ("simlab", False), ("foo-2", False), (True, False)])
def test_row_reference_detection(codec, raw, expected):
    assert codec.is_row_reference(raw) is expected


def test_row_id_must_be_positive(codec):
    with pytest.raises(InvalidSlotIdentifier):
        codec.row_id(0)


def test_slot_keys_cover_every_slot():
    codec = SlotKeyCodec(max_slots=3)
    assert codec.slot_keys("simlab") == [SlotKey("simlab", 1), SlotKey("simlab", 2), SlotKey("simlab", 3)]
