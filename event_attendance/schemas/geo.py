"""
Geographic schemas: points, great-circle distance and event fences
"""
import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from event_attendance.core.exceptions import InvalidCoordinateException

EARTH_RADIUS_M = 6371000
MIN_FENCE_POINTS = 3
MAX_FENCE_POINTS = 100


class GeoPoint(BaseModel):
    """Immutable latitude/longitude pair in decimal degrees"""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    @classmethod
    def from_coordinates(cls, latitude: float, longitude: float) -> "GeoPoint":
        """
        Build a point, rejecting out-of-range coordinates

        Raises:
            InvalidCoordinateException: If latitude is outside [-90, 90]
                or longitude is outside [-180, 180]
        """
        if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
            raise InvalidCoordinateException(latitude, longitude)
        return cls(latitude=latitude, longitude=longitude)

    def distance_to(self, other: "GeoPoint") -> float:
        """Distance in meters to another point"""
        return haversine_distance(self, other)

    def __str__(self) -> str:
        return f"POINT({self.longitude:f} {self.latitude:f})"


def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
    """
    Calculate distance between two coordinates using Haversine formula

    Returns:
        float: Distance in meters
    """
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    delta_lat = math.radians(b.latitude - a.latitude)
    delta_lon = math.radians(b.longitude - a.longitude)

    h = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_M * c


class GeoFence(BaseModel):
    """
    Polygon describing the area where attendance is allowed

    The stored points do not need to repeat the first point at the end; the
    polygon is closed on the fly for containment tests. A fence with fewer
    than 3 points is treated as "no fence" and contains every point.
    """
    model_config = ConfigDict(frozen=True)

    points: List[GeoPoint] = Field(default_factory=list, max_length=MAX_FENCE_POINTS)

    @model_validator(mode="before")
    @classmethod
    def accept_pairs(cls, data: Any) -> Any:
        """Accept the stored JSON form: a bare list of [latitude, longitude] pairs"""
        if isinstance(data, (list, tuple)):
            points = []
            for item in data:
                if isinstance(item, (list, tuple)):
                    points.append({"latitude": item[0], "longitude": item[1]})
                else:
                    points.append(item)
            return {"points": points}
        return data

    @classmethod
    def from_pairs(cls, pairs: List[List[float]]) -> "GeoFence":
        """Build a fence from [latitude, longitude] pairs"""
        return cls(points=[GeoPoint.from_coordinates(lat, lon) for lat, lon in pairs])

    @property
    def is_defined(self) -> bool:
        return len(self.points) >= MIN_FENCE_POINTS

    def closed_points(self) -> List[GeoPoint]:
        """Fence points with the first point appended when the ring is open"""
        if not self.points:
            return []
        if self.points[0] != self.points[-1]:
            return [*self.points, self.points[0]]
        return list(self.points)

    def centroid(self) -> Optional[GeoPoint]:
        """Mean of the distinct vertices, None for a degenerate fence"""
        if not self.is_defined:
            return None
        vertices = self.points
        if vertices[0] == vertices[-1]:
            vertices = vertices[:-1]
        return GeoPoint(
            latitude=sum(p.latitude for p in vertices) / len(vertices),
            longitude=sum(p.longitude for p in vertices) / len(vertices),
        )

    def contains(self, point: GeoPoint) -> bool:
        """
        Even-odd ray casting test

        A horizontal ray is cast from the point; each polygon edge it
        crosses toggles the result. Points exactly on an edge may resolve
        either way.
        """
        if not self.is_defined:
            return True

        polygon = self.closed_points()
        inside = False
        j = len(polygon) - 1

        for i in range(len(polygon)):
            xi, yi = polygon[i].longitude, polygon[i].latitude
            xj, yj = polygon[j].longitude, polygon[j].latitude

            if (yi > point.latitude) != (yj > point.latitude) and \
                    point.longitude < (xj - xi) * (point.latitude - yi) / (yj - yi) + xi:
                inside = not inside
            j = i

        return inside

    def to_pairs(self) -> List[List[float]]:
        """Serialize to [latitude, longitude] pairs for JSON storage"""
        return [[p.latitude, p.longitude] for p in self.points]
