"""
Static mapping from incident category to the resource domains that respond to it.
"""

from sahaay.models import IncidentStatus

DOMAIN_RULES: dict[str, tuple[str, ...]] = {
    "Medical Emergency": ("Medical Response",),
    "Fire": ("Fire & Rescue",),
    "Flood": ("Rescue", "Shelter & Relief"),
    "Earthquake": ("Rescue", "Medical Response", "Shelter & Relief"),
    "Infrastructure Failure": (
        "Infrastructure & Utilities",
        "Security & Control",
    ),
    "Accident": ("Medical Response", "Traffic Control"),
    "Other / Unknown": ("Community Support",),
}

_STATUS_ORDER = {
    IncidentStatus.REPORTED: 0,
    IncidentStatus.RESPONDING: 1,
    IncidentStatus.RESOLVED: 2,
}


def required_domains(category: str | None) -> list[str]:
    """Return the domains required for a category, or [] if it is not known."""
    if not category:
        return []
    return list(DOMAIN_RULES.get(category, ()))


def is_forward_transition(
    current: IncidentStatus, target: IncidentStatus
) -> bool:
    # Staying in the same status counts as forward.
    return _STATUS_ORDER[target] >= _STATUS_ORDER[current]
