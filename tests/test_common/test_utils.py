"""
Tests for utility functions.
"""

import pytest

from adsync.common.utils import MAX_ENTITY_ID, coerce_entity_id


@pytest.mark.parametrize(
    "value,expected",
    [
        (42, 42),
        ("42", 42),
        (" 7 ", 7),
        (42.0, 42),
        (MAX_ENTITY_ID, MAX_ENTITY_ID),
        (str(MAX_ENTITY_ID), MAX_ENTITY_ID),
        (0, None),
        (-5, None),
        (1.5, None),
        (True, None),
        (None, None),
        ("abc", None),
        (MAX_ENTITY_ID + 1, None),
        (2**70, None),
        (str(2**70), None),
        (float(2**70), None),
    ],
)
def test_coerce_entity_id(value, expected) -> None:
    assert coerce_entity_id(value) == expected
