"""Ordered enumerations used for security comparisons.

Levels compare by declaration order, never lexically: ``"high" < "standard"``
is true for strings but ``DeviceSecurityLevel.HIGH`` outranks
``DeviceSecurityLevel.STANDARD``.
"""

from enum import Enum

from beartype import beartype


class OrderedLevel(str, Enum):
    """String enum with a total order given by member declaration order."""

    @property
    def rank(self) -> int:
        """Zero-based position of the member, lowest first."""
        return list(type(self)).index(self)

    @beartype
    def at_least(self, other: "OrderedLevel") -> bool:
        """Whether this level meets or exceeds ``other``."""
        if type(other) is not type(self):
            raise TypeError(
                f"Cannot compare {type(self).__name__} with {type(other).__name__}"
            )
        return self.rank >= other.rank


class AccessLevel(OrderedLevel):
    """Principal access levels, lowest first."""

    VISITOR = "visitor"
    BASIC = "basic"
    STANDARD = "standard"
    ELEVATED = "elevated"
    ADMINISTRATIVE = "administrative"
    EMERGENCY = "emergency"
    SYSTEM_ADMIN = "system_admin"


class DeviceSecurityLevel(OrderedLevel):
    """Security posture of the device making a request."""

    LOW = "low"
    STANDARD = "standard"
    HIGH = "high"
    MAXIMUM = "maximum"


class ClearanceLevel(OrderedLevel):
    """Background clearance levels."""

    BASIC = "basic"
    STANDARD = "standard"
    ENHANCED = "enhanced"
    HIGHEST = "highest"


class ThreatLevel(OrderedLevel):
    """Derived threat assessment levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def escalate(self) -> "ThreatLevel":
        """One step up for unusual activity: low becomes medium, else high."""
        if self is ThreatLevel.LOW:
            return ThreatLevel.MEDIUM
        return ThreatLevel.HIGH
