"""
Base controller class.
Controllers build services for one request and return Pydantic schemas to the
endpoints. They hold no business rules.
"""

from abc import ABC


class BaseController(ABC):
    """Base controller class for all controllers."""
    pass
