"""
Decimal rounding used for every derived number we store or report.

PostgreSQL ROUND(numeric, n) rounds half away from zero; Python's round()
on floats does not, so all derived values go through these helpers.
"""
from decimal import ROUND_HALF_UP, Decimal

ONE_PLACE = Decimal('0.1')
TWO_PLACES = Decimal('0.01')


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats such as 0.1 from dragging binary noise along
    return Decimal(str(value))


def round_rating(value) -> Decimal:
    """Round to 1 decimal place, half up."""
    return to_decimal(value).quantize(ONE_PLACE, rounding=ROUND_HALF_UP)


def round_km(value) -> Decimal:
    """Round a distance in kilometres to 2 decimal places, half up."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
