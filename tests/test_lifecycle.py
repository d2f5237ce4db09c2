"""
Tests for lifecycle transition scheduling.

The scheduler only declares policy; these tests check the declared rules and what
they mean for objects of a given age, not physical data movement.
"""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, strategies as st

from datalake.errors import InvalidLifecycleRule
from datalake.lifecycle import (
    eligible_transitions,
    lifecycle_configuration,
    lifecycle_matches,
    lifecycle_rule_for,
    make_rule,
    object_age_days,
    target_storage_class,
    validate_transitions,
)
from datalake.models import (
    ARCHIVE,
    DEEP_ARCHIVE,
    GLACIER,
    ONEZONE_IA,
    PROCESSED,
    RAW,
    STANDARD,
    STANDARD_IA,
    STORAGE_CLASS_RANK,
    Transition,
)


def test_raw_schedule() -> None:
    rule = lifecycle_rule_for(RAW)
    assert rule is not None
    assert rule.prefix == ""
    assert rule.transitions == (
        Transition(days=90, storage_class=STANDARD_IA),
        Transition(days=180, storage_class=GLACIER),
    )


def test_archive_schedule_goes_directly_to_glacier() -> None:
    rule = lifecycle_rule_for(ARCHIVE)
    assert rule is not None
    assert rule.transitions == (Transition(days=30, storage_class=GLACIER),)


def test_processed_layer_has_no_rule() -> None:
    assert lifecycle_rule_for(PROCESSED) is None
    assert eligible_transitions(None, 10_000) == []
    assert target_storage_class(None, 10_000) == STANDARD


def test_raw_object_aged_200_days_is_eligible_for_both_transitions_in_order() -> None:
    rule = lifecycle_rule_for(RAW)
    crossed = eligible_transitions(rule, 200)
    assert [t.storage_class for t in crossed] == [STANDARD_IA, GLACIER]
    assert target_storage_class(rule, 200) == GLACIER


def test_raw_object_aged_100_days_is_eligible_only_for_infrequent_access() -> None:
    rule = lifecycle_rule_for(RAW)
    assert [t.storage_class for t in eligible_transitions(rule, 100)] == [STANDARD_IA]
    assert target_storage_class(rule, 100) == STANDARD_IA


@pytest.mark.parametrize(
    "age, expected",
    [(0, STANDARD), (89, STANDARD), (90, STANDARD_IA), (179, STANDARD_IA), (180, GLACIER)],
)
def test_raw_threshold_boundaries(age: int, expected: str) -> None:
    assert target_storage_class(lifecycle_rule_for(RAW), age) == expected


@pytest.mark.parametrize("age, expected", [(29, STANDARD), (30, GLACIER), (400, GLACIER)])
def test_archive_threshold_boundaries(age: int, expected: str) -> None:
    assert target_storage_class(lifecycle_rule_for(ARCHIVE), age) == expected


@given(st.integers(min_value=0, max_value=5000), st.integers(min_value=0, max_value=5000))
def test_target_class_never_gets_hotter_with_age(age_a, age_b):
    """
    For any two ages, the older object SHALL be declared in an equal or colder class.
    """
    younger, older = sorted((age_a, age_b))
    for layer in (RAW, ARCHIVE):
        rule = lifecycle_rule_for(layer)
        assert (
            STORAGE_CLASS_RANK[target_storage_class(rule, older)]
            >= STORAGE_CLASS_RANK[target_storage_class(rule, younger)]
        )


@given(st.integers(min_value=180, max_value=20000))
def test_raw_objects_past_180_days_cross_infrequent_access_first(age):
    crossed = eligible_transitions(lifecycle_rule_for(RAW), age)
    assert [t.days for t in crossed] == [90, 180]


def test_archival_before_infrequent_access_is_rejected() -> None:
    with pytest.raises(InvalidLifecycleRule):
        make_rule(
            RAW,
            [Transition(days=90, storage_class=GLACIER), Transition(days=180, storage_class=STANDARD_IA)],
        )


def test_non_increasing_thresholds_rejected() -> None:
    with pytest.raises(InvalidLifecycleRule, match="strictly increasing"):
        validate_transitions(
            [Transition(days=180, storage_class=STANDARD_IA), Transition(days=90, storage_class=GLACIER)]
        )
    with pytest.raises(InvalidLifecycleRule, match="strictly increasing"):
        validate_transitions(
            [Transition(days=90, storage_class=STANDARD_IA), Transition(days=90, storage_class=GLACIER)]
        )


def test_back_transition_to_standard_rejected() -> None:
    with pytest.raises(InvalidLifecycleRule, match="not colder"):
        validate_transitions(
            [Transition(days=30, storage_class=GLACIER), Transition(days=60, storage_class=STANDARD)]
        )


def test_same_temperature_classes_rejected() -> None:
    with pytest.raises(InvalidLifecycleRule, match="not colder"):
        validate_transitions(
            [Transition(days=30, storage_class=STANDARD_IA), Transition(days=60, storage_class=ONEZONE_IA)]
        )


def test_empty_and_unknown_transitions_rejected() -> None:
    with pytest.raises(InvalidLifecycleRule):
        validate_transitions([])
    with pytest.raises(InvalidLifecycleRule, match="unknown storage class"):
        validate_transitions([Transition(days=30, storage_class="COLD_STORAGE")])
    with pytest.raises(InvalidLifecycleRule):
        validate_transitions([Transition(days=-1, storage_class=GLACIER)])


def test_three_tier_rule_is_accepted() -> None:
    rule = make_rule(
        RAW,
        [
            Transition(days=30, storage_class=STANDARD_IA),
            Transition(days=90, storage_class=GLACIER),
            Transition(days=365, storage_class=DEEP_ARCHIVE),
        ],
    )
    assert target_storage_class(rule, 400) == DEEP_ARCHIVE


def test_object_age_days() -> None:
    now = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert object_age_days(now - timedelta(days=200, hours=3), now) == 200
    assert object_age_days(datetime(2026, 5, 31, 13, 0), now) == 0
    assert object_age_days(now + timedelta(days=2), now) == 0


def test_negative_age_rejected() -> None:
    with pytest.raises(ValueError):
        eligible_transitions(lifecycle_rule_for(RAW), -1)


def test_lifecycle_configuration_shape() -> None:
    config = lifecycle_configuration(lifecycle_rule_for(RAW))
    assert config == {
        "Rules": [
            {
                "ID": "raw-tiering",
                "Status": "Enabled",
                "Filter": {"Prefix": ""},
                "Transitions": [
                    {"Days": 90, "StorageClass": "STANDARD_IA"},
                    {"Days": 180, "StorageClass": "GLACIER"},
                ],
            }
        ]
    }


def test_lifecycle_matches_round_trip_and_drift() -> None:
    rule = lifecycle_rule_for(RAW)
    rules = lifecycle_configuration(rule)["Rules"]
    assert lifecycle_matches(rule, rules)

    drifted = [dict(rules[0], Transitions=[{"Days": 60, "StorageClass": "STANDARD_IA"}])]
    assert not lifecycle_matches(rule, drifted)
    assert not lifecycle_matches(rule, [])
    assert not lifecycle_matches(rule, rules + rules)
