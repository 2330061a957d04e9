from typing import Optional

from pydantic import BaseModel

from rentswatch_api.services.geo_filter import RegionQuery, build_region_query


class FilterParams(BaseModel):
    radius: float = 20.0
    min_living_space: Optional[float] = None
    max_living_space: Optional[float] = None
    rooms: Optional[str] = None  # comma separated, e.g. "1,2"
    limit: Optional[int] = None

    def to_query(self, latitude: float, longitude: float) -> RegionQuery:
        return build_region_query(
            latitude,
            longitude,
            self.radius,
            min_living_space=self.min_living_space,
            max_living_space=self.max_living_space,
            rooms=self.rooms,
            limit=self.limit,
        )


class CenterParams(FilterParams):
    latitude: float
    longitude: float

    def to_region_query(self) -> RegionQuery:
        return self.to_query(self.latitude, self.longitude)
