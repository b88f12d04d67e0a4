"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .sql_store import SqlReservationStore

__all__ = ['SqlReservationStore']
