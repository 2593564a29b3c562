"""
Trigger evaluation for notification rules.

Matches an inbound event against a snapshot of notification rules. This
module is pure: it never mutates rules and never records anything for rules
that do not match.
"""

from typing import Iterable

from models.event import Event
from models.notification import NotificationRule


def rule_matches_event(rule: NotificationRule, event: Event) -> bool:
    """
    Check if a single rule matches an event.

    All filter conditions are AND-ed together:
    - rule is active
    - rule listens for the event kind
    - platform filter is empty or contains the event platform
    - min_resources is unset or met by resources_added

    Args:
        rule: Notification rule
        event: Inbound event

    Returns:
        True if the rule matches the event
    """
    if not rule.active:
        return False

    if not rule.listens_for(event.kind):
        return False

    # Platform filter (empty means all platforms)
    if rule.platforms and event.platform not in rule.platforms:
        return False

    # Minimum resources filter
    if rule.min_resources is not None and event.resources_added < rule.min_resources:
        return False

    return True


def matches(event: Event, rules: Iterable[NotificationRule]) -> list[NotificationRule]:
    """
    Find all rules that match an event, in registration order.

    Every match is returned; two rules with identical filters both match.
    """
    return [rule for rule in rules if rule_matches_event(rule, event)]
