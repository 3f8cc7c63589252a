from fastapi import APIRouter, Depends
import logging

from ..measurement import MeasurementMode, MeasurementSurface
from ..measurement.headless import HeadlessMapProvider
from ..schemas.measurement import MeasurementRead, MeasurementRequest
from ..tenants import TenantConfig
from ..utils.errors import QuoteError
from .dependencies import get_tenant

router = APIRouter(tags=["measurement"])
logger = logging.getLogger(__name__)


@router.post("/measurement", response_model=MeasurementRead)
async def measure_shapes(payload: MeasurementRequest, tenant: TenantConfig = Depends(get_tenant)):
    """Measure submitted shapes with the same surface logic the widget runs.

    Shapes below the minimum vertex count for the mode are ignored, exactly
    as the surface would discard them.
    """
    surface = MeasurementSurface(
        HeadlessMapProvider(),
        MeasurementMode(payload.mode),
        brand_color=tenant.primary_hex,
    )
    try:
        paths = [[point.model_dump() for point in shape] for shape in payload.shapes]
        if not await surface.mount(initial_paths=paths):
            raise QuoteError(surface.error or "Measurement unavailable.")
        return {
            "mode": surface.mode.value,
            "value": surface.value,
            "unit": "sqft" if surface.mode is MeasurementMode.AREA else "ft",
            "shapes": len(surface.shapes),
        }
    finally:
        surface.teardown()
