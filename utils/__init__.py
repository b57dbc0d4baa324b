"""Utility modules for cross-cutting concerns."""

from utils.money import parse_amount, parse_positive_amount, round_half_up
from utils.timezone import now_utc, ensure_utc
