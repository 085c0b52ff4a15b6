"""
Base service class.
Services own the business rules and the transaction: they work through
repositories and commit or roll back the session they were given.
"""

from abc import ABC


class BaseService(ABC):
    """Base service class for all services."""
    pass
