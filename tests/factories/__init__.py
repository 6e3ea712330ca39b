"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .user import UserFactory, InactiveUserFactory
from .contact import (
    ContactFactory,
    EngagedContactFactory,
    VipContactFactory,
    UnsubscribedContactFactory,
)

__all__ = [
    "UserFactory",
    "InactiveUserFactory",
    # Contacts
    "ContactFactory",
    "EngagedContactFactory",
    "VipContactFactory",
    "UnsubscribedContactFactory",
]
