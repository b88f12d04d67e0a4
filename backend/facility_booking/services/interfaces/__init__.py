"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .reservation_store import ReservationFilter, ReservationStore

__all__ = ['ReservationFilter', 'ReservationStore']
