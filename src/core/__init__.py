"""
PRM Portal Core Package

Business logic for deals, learning, accounts and partner support, plus
database access and observability.
"""

from . import database
from . import deals

__all__ = ["database", "deals"]
