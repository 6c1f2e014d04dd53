"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

DEFAULT_COMMISSION_RATE = Decimal("0.40")
DEFAULT_CARD_TAX_RATE = Decimal("0.19")

# datetime.weekday(): Monday=0 ... Saturday=5
PAYOUT_WEEK_START_WEEKDAY = 5
DAYS_PER_WEEK = 7

DEFAULT_HISTORY_LIMIT = 500
DEFAULT_DOCUMENT_API_TIMEOUT = 5
