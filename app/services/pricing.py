"""
Shipping price calculation for a service area
"""
import math
from datetime import datetime
from typing import Dict, Optional

from app.utils.helpers import to_utc_naive


def is_active(pricing: Dict, now: datetime) -> bool:
    if pricing.get("status") != "ACTIVE":
        return False
    start = pricing.get("effective_from")
    end = pricing.get("effective_to")
    now = to_utc_naive(now)
    if start is not None and to_utc_naive(start) > now:
        return False
    if end is not None and to_utc_naive(end) < now:
        return False
    return True


def active_pricing_query(service_area: str, service_type: str, now: datetime) -> Dict:
    now = to_utc_naive(now)
    return {
        "service_area": service_area,
        "service_type": service_type,
        "status": "ACTIVE",
        "effective_from": {"$lte": now},
        "$or": [{"effective_to": None}, {"effective_to": {"$gte": now}}],
    }


def calculate_price(pricing: Dict, distance: float, weight: float) -> Dict:
    """Clamp to min, cap at max (0 means no cap), add flat fees and round half-up to a whole unit"""
    base_price = pricing.get("base_price", 0)
    distance_charge = distance * pricing.get("price_per_km", 0)
    weight_charge = weight * pricing.get("price_per_kg", 0)
    min_charge = pricing.get("min_charge", 0)
    max_charge: Optional[float] = pricing.get("max_charge")
    additional_fees = pricing.get("insurance_fee", 0) + pricing.get("packaging_fee", 0)

    subtotal = max(min_charge, base_price + distance_charge + weight_charge)
    if max_charge:
        subtotal = min(subtotal, max_charge)

    return {
        "price": math.floor(subtotal + additional_fees + 0.5),
        "currency": pricing.get("currency", "IDR"),
        "details": {
            "base_price": base_price,
            "distance_charge": round(distance_charge, 2),
            "weight_charge": round(weight_charge, 2),
            "additional_fees": round(additional_fees, 2),
            "min_charge": min_charge,
            "max_charge": max_charge,
        },
    }
