"""Shared type definitions for type checking.

Uses NewType for IDs to provide compile-time type safety - prevents mixing
different ID types (e.g., passing RuleID where ScheduleID expected).

Uses TypeAlias for complex types that are purely structural.
"""

from typing import NewType, TypeAlias

# ID types using NewType for type safety
ScheduleID = NewType("ScheduleID", str)
GroupID = NewType("GroupID", str)
RuleID = NewType("RuleID", str)
TemplateID = NewType("TemplateID", str)
ExecutionID = NewType("ExecutionID", str)

# Structural aliases using TypeAlias
PlatformID: TypeAlias = str  # e.g. "coursera", "linkedin"
