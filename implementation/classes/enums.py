"""
Enum classes for account and ranking data.
"""

from enum import Enum


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"

    def __str__(self) -> str:
        return self.value


class UnrankedLabelPolicy(str, Enum):
    """What the ranking pipeline does when the classifier answers outside the vocabulary."""
    PASS_THROUGH = "pass_through"  # keep the raw label with rank 0
    SENTINEL = "sentinel"          # store the sentinel ranking instead
    REJECT = "reject"              # fail the request, persist nothing

    @classmethod
    def from_string(cls, value: str) -> "UnrankedLabelPolicy | None":
        """
        Convert a configuration string to a policy.
        Returns None if the string doesn't match any policy.
        """
        normalized = value.strip().lower().replace("-", "_")
        for policy in cls:
            if policy.value == normalized:
                return policy
        return None
