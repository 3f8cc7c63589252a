from .provider import MapLoadError, MapProvider
from .spherical import LatLng, measure_area_sqft, measure_length_feet
from .surface import MeasurementMode, MeasurementSurface, SurfaceState, SurfaceStatus

__all__ = [
    "LatLng",
    "MapLoadError",
    "MapProvider",
    "MeasurementMode",
    "MeasurementSurface",
    "SurfaceState",
    "SurfaceStatus",
    "measure_area_sqft",
    "measure_length_feet",
]
