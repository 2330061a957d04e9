from dataclasses import asdict
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from rentswatch_api.services.aggregation import StatsResult
from rentswatch_api.services.geocoder import GeocodeResult
from rentswatch_api.services.ranking import RegionSnapshot


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GroupStatsResponse(CamelModel):
    key: str
    total: int
    avg_price_per_sqm: Optional[float] = None
    std_err: Optional[float] = None


class StatsResponse(CamelModel):
    total: int
    avg_price_per_sqm: Optional[float] = None
    std_err: Optional[float] = None
    inequality_index: Optional[float] = None
    deciles: List[float]
    insufficient_data: bool
    neighborhoods: List[GroupStatsResponse] = []
    months: List[GroupStatsResponse] = []

    @classmethod
    def from_result(cls, result: StatsResult) -> "StatsResponse":
        return cls.model_validate(result.to_dict())


class PlaceResponse(CamelModel):
    latitude: float
    longitude: float
    display_name: str
    type: Optional[str] = None

    @classmethod
    def from_result(cls, place: GeocodeResult) -> "PlaceResponse":
        return cls(
            latitude=place.latitude,
            longitude=place.longitude,
            display_name=place.display_name,
            type=place.type,
        )


class GeocodeStatsResponse(StatsResponse):
    place: PlaceResponse
    radius: float


class CitySummaryResponse(CamelModel):
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None
    rankable: bool
    total: int
    avg_price_per_sqm: Optional[float] = None
    std_err: Optional[float] = None
    inequality_index: Optional[float] = None
    deciles: List[float]
    insufficient_data: bool

    @classmethod
    def from_snapshot(cls, snap: RegionSnapshot) -> "CitySummaryResponse":
        stats = snap.stats
        return cls(
            name=snap.name,
            latitude=snap.latitude,
            longitude=snap.longitude,
            radius=snap.radius_km,
            rankable=snap.rankable,
            total=stats.total,
            avg_price_per_sqm=stats.avg_price_per_sqm,
            std_err=stats.std_err,
            inequality_index=stats.inequality_index,
            deciles=stats.deciles,
            insufficient_data=stats.insufficient_data,
        )


class CityResponse(CitySummaryResponse):
    neighborhoods: List[GroupStatsResponse] = []
    months: List[GroupStatsResponse] = []

    @classmethod
    def from_snapshot(cls, snap: RegionSnapshot) -> "CityResponse":
        summary = CitySummaryResponse.from_snapshot(snap).model_dump()
        return cls(
            **summary,
            neighborhoods=[GroupStatsResponse.model_validate(asdict(g)) for g in snap.stats.neighborhoods],
            months=[GroupStatsResponse.model_validate(asdict(g)) for g in snap.stats.months],
        )
