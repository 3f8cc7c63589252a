from fastapi import APIRouter, Depends

from ..pricing import FenceSelection, compute_fence_estimate
from ..schemas.measurement import FenceEstimateRequest
from ..tenants import TenantConfig
from .dependencies import get_tenant

router = APIRouter(tags=["fence"])


@router.post("/fence/estimate")
def fence_estimate(payload: FenceEstimateRequest, tenant: TenantConfig = Depends(get_tenant)):
    """Low/high price range for a measured fence line."""
    card = tenant.fence_rate_card
    selection = FenceSelection(
        fence_type=payload.fence_type or card.default_type,
        walk_gate_qty=payload.walk_gate_qty,
        double_gate_qty=payload.double_gate_qty,
        remove_old_fence=payload.remove_old_fence,
    )
    estimate = compute_fence_estimate(payload.feet, selection, card)
    return {**estimate.as_dict(), "fenceTypes": sorted(card.fence_types)}
