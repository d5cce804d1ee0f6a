"""Football slot booker for a facility reservation site.

Logs in, polls the preferred date/time slots until one can be booked, then
tries once to swap it for a more preferred slot.
"""

from src.footbooker.client import SessionClient
from src.footbooker.config import FootbookerConfig, load_config
from src.footbooker.engine import BookingEngine, BookingResult
from src.footbooker.runner import Outcome, RunReport, run_booking

__all__ = [
    "SessionClient",
    "FootbookerConfig",
    "load_config",
    "BookingEngine",
    "BookingResult",
    "Outcome",
    "RunReport",
    "run_booking",
]
