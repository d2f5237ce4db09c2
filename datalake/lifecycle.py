"""
Lifecycle transition scheduling for the data lake layers.

This module only *declares* policy. S3's own background process moves objects;
the helpers here answer "which transitions does the policy make an object of this
age eligible for", which is what the declared rule means for existing objects as
well as new ones.

Schedules
---------
- raw:       90 days -> STANDARD_IA, 180 days -> GLACIER
- archive:   30 days -> GLACIER (cold by design, no intermediate tier)
- processed: none (query-serving layer, never auto-cools)
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from datalake.errors import InvalidLifecycleRule
from datalake.models import (
    ARCHIVE,
    GLACIER,
    LAYERS,
    RAW,
    STANDARD,
    STANDARD_IA,
    STORAGE_CLASS_RANK,
    LifecycleRule,
    Transition,
)


DEFAULT_SCHEDULES: Dict[str, Tuple[Transition, ...]] = {
    RAW: (
        Transition(days=90, storage_class=STANDARD_IA),
        Transition(days=180, storage_class=GLACIER),
    ),
    ARCHIVE: (Transition(days=30, storage_class=GLACIER),),
}


def validate_transitions(transitions: Sequence[Transition]) -> Tuple[Transition, ...]:
    """
    Check that transitions only ever move objects to colder storage.

    Args:
        transitions: Transitions in declaration order

    Returns:
        The transitions as a tuple

    Raises:
        InvalidLifecycleRule: On an empty list, a negative threshold, an unknown
            class, a non-increasing threshold, or a class not colder than the
            previous one (a back-transition)
    """
    if not transitions:
        raise InvalidLifecycleRule("a lifecycle rule needs at least one transition")

    previous_days = -1
    previous_rank = STORAGE_CLASS_RANK[STANDARD]
    previous_class = STANDARD
    for transition in transitions:
        if transition.storage_class not in STORAGE_CLASS_RANK:
            raise InvalidLifecycleRule(f"unknown storage class {transition.storage_class!r}")
        if transition.days < 0:
            raise InvalidLifecycleRule(f"transition threshold must be >= 0 days, got {transition.days}")
        if transition.days <= previous_days:
            raise InvalidLifecycleRule(
                f"transition thresholds must be strictly increasing: {transition.days} after {previous_days}"
            )
        rank = STORAGE_CLASS_RANK[transition.storage_class]
        if rank <= previous_rank:
            raise InvalidLifecycleRule(
                f"transition to {transition.storage_class} at {transition.days} days is not colder "
                f"than {previous_class}"
            )
        previous_days = transition.days
        previous_rank = rank
        previous_class = transition.storage_class
    return tuple(transitions)


def make_rule(layer: str, transitions: Iterable[Transition], prefix: str = "") -> LifecycleRule:
    """Build a validated lifecycle rule for a layer."""
    if layer not in LAYERS:
        raise InvalidLifecycleRule(f"unknown layer {layer!r}")
    return LifecycleRule(
        rule_id=f"{layer}-tiering",
        layer=layer,
        transitions=validate_transitions(list(transitions)),
        prefix=prefix,
    )


def lifecycle_rule_for(layer: str) -> Optional[LifecycleRule]:
    """
    Return the declared rule for a layer, or None when the layer must stay hot.
    """
    if layer not in LAYERS:
        raise KeyError(layer)
    schedule = DEFAULT_SCHEDULES.get(layer)
    if schedule is None:
        return None
    return make_rule(layer, schedule)


def object_age_days(last_modified: datetime, now: Optional[datetime] = None) -> int:
    """
    Whole days elapsed since an object's last modification.

    Naive datetimes are treated as UTC. Objects modified "in the future" (clock
    skew) are age 0.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if last_modified.tzinfo is None:
        last_modified = last_modified.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0, (now - last_modified).days)


def eligible_transitions(rule: Optional[LifecycleRule], age_days: int) -> List[Transition]:
    """
    Transitions an object of the given age has crossed, in order.

    An object older than every threshold is eligible for all of them, in
    declaration order, regardless of whether it existed when the rule was created.
    """
    if age_days < 0:
        raise ValueError("age_days must be >= 0")
    if rule is None:
        return []
    return [t for t in rule.transitions if age_days >= t.days]


def target_storage_class(rule: Optional[LifecycleRule], age_days: int) -> str:
    """Storage class the policy declares for an object of the given age."""
    crossed = eligible_transitions(rule, age_days)
    if not crossed:
        return STANDARD
    return crossed[-1].storage_class


def lifecycle_configuration(rule: LifecycleRule) -> dict:
    """Render a rule as a PutBucketLifecycleConfiguration `LifecycleConfiguration`."""
    return {
        "Rules": [
            {
                "ID": rule.rule_id,
                "Status": "Enabled",
                "Filter": {"Prefix": rule.prefix},
                "Transitions": [t.to_dict() for t in rule.transitions],
            }
        ]
    }


def lifecycle_matches(rule: LifecycleRule, observed_rules: Sequence[dict]) -> bool:
    """
    Compare GetBucketLifecycleConfiguration `Rules` with the declared rule.

    Only the fields this module declares are compared, so S3 adding defaults to
    the stored rule does not cause a re-apply on every run.
    """
    if len(observed_rules) != 1:
        return False
    observed = observed_rules[0]
    observed_filter = observed.get("Filter") or {}
    observed_transitions = [
        (int(t.get("Days", -1)), t.get("StorageClass")) for t in observed.get("Transitions") or []
    ]
    declared_transitions = [(t.days, t.storage_class) for t in rule.transitions]
    return (
        observed.get("ID") == rule.rule_id
        and observed.get("Status") == "Enabled"
        and observed_filter.get("Prefix", "") == rule.prefix
        and observed_transitions == declared_transitions
    )
