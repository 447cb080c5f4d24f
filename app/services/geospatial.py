"""
Geospatial helpers: distance math and service area lookups by location
"""
import logging
import math
from typing import Dict, List, Optional

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.utils.errors import ValidationError

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000
DEFAULT_MAX_DISTANCE = 5000


def haversine(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Great-circle distance in metres between two lng/lat points"""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


def within_radius(point: List[float], center: List[float], radius: float) -> bool:
    return haversine(point[0], point[1], center[0], center[1]) <= radius


def point(longitude: float, latitude: float) -> Dict:
    return {"type": "Point", "coordinates": [longitude, latitude]}


# ===================== Query builders =====================

def contains_query(longitude: float, latitude: float) -> Dict:
    return {
        "status": "ACTIVE",
        "geometry": {"$geoIntersects": {"$geometry": point(longitude, latitude)}},
    }


def near_query(longitude: float, latitude: float, max_distance: Optional[float] = None) -> Dict:
    return {
        "status": "ACTIVE",
        "center": {
            "$near": {
                "$geometry": point(longitude, latitude),
                "$maxDistance": max_distance or DEFAULT_MAX_DISTANCE,
            }
        },
    }


def polygon_query(polygon: Optional[Dict]) -> Dict:
    if not polygon:
        raise ValidationError("Polygon is required for polygon search")
    return {
        "status": "ACTIVE",
        "geometry": {"$geoIntersects": {"$geometry": polygon}},
    }


def build_location_query(
    search_type: str,
    longitude: Optional[float] = None,
    latitude: Optional[float] = None,
    max_distance: Optional[float] = None,
    polygon: Optional[Dict] = None,
) -> Dict:
    if search_type == "polygon":
        return polygon_query(polygon)
    if longitude is None or latitude is None:
        raise ValidationError("Longitude and latitude are required")
    if search_type == "near":
        return near_query(longitude, latitude, max_distance)
    if search_type == "contains":
        return contains_query(longitude, latitude)
    raise ValidationError(f"Unknown search type {search_type}")


# ===================== Lookups =====================

async def find_service_areas(
    search_type: str,
    longitude: Optional[float] = None,
    latitude: Optional[float] = None,
    max_distance: Optional[float] = None,
    polygon: Optional[Dict] = None,
) -> List[Dict]:
    query = build_location_query(search_type, longitude, latitude, max_distance, polygon)
    # $near results come back ordered by distance
    sort = None if search_type == "near" else [("code", 1)]
    return await db_ops.get_all(Collections.SERVICE_AREAS, query, limit=0, sort=sort)


async def find_branches_by_location(longitude: float, latitude: float) -> List[Dict]:
    """Branches serving the active areas that contain the point, by priority"""
    areas = await db_ops.get_all(Collections.SERVICE_AREAS, contains_query(longitude, latitude), limit=0)
    if not areas:
        return []
    areas_by_id = {str(area["_id"]): area for area in areas}
    assignments = await db_ops.get_all(Collections.SERVICE_AREA_ASSIGNMENTS, {
        "service_area": {"$in": list(areas_by_id)},
        "status": "ACTIVE",
    }, limit=0, sort=[("priority_level", 1)])

    results = []
    for assignment in assignments:
        branch = await db_ops.get_by_id(Collections.BRANCHES, assignment["branch"])
        if not branch:
            logger.warning("Assignment %s references missing branch %s", assignment["_id"], assignment["branch"])
            continue
        results.append({
            "branch": branch,
            "service_area": areas_by_id[assignment["service_area"]],
            "priority_level": assignment["priority_level"],
        })
    return results
