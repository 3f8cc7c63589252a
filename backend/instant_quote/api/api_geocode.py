from fastapi import APIRouter, Query, status
import logging

from ..services.geocode import geocode_address_async
from ..utils.errors import QuoteError

router = APIRouter(tags=["geocode"])
logger = logging.getLogger(__name__)


class AddressNotFound(QuoteError):
    status_code = status.HTTP_404_NOT_FOUND
    public_message = "Address not found. Try again."


@router.get("/geocode")
async def geocode(address: str = Query(..., min_length=3, max_length=300)):
    """Resolve an address to the center the measurement map opens on."""
    result = await geocode_address_async(address)
    if result is None:
        raise AddressNotFound()
    return {"lat": result.lat, "lng": result.lng, "formattedAddress": result.formatted_address}
