"""JSON provider writing decimals (product prices) as JSON numbers."""
from __future__ import annotations
from decimal import Decimal
from typing import Any

from flask.json.provider import DefaultJSONProvider


class DecimalJSONProvider(DefaultJSONProvider):
    """Flask's default provider, except ``Decimal`` is a number, not a string.

    Integral values become ints; others go through float, which keeps every
    value of up to 15 significant digits exactly (prices have 5 decimals).
    """

    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, Decimal):
            if o == o.to_integral_value():
                return int(o)
            return float(o)
        return DefaultJSONProvider.default(o)
