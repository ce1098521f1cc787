from openday.models.activity import Activity
from openday.models.reservation import ReservationRecord

__all__ = ["Activity", "ReservationRecord"]
