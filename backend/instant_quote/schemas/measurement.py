from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from instant_quote.pricing.rates import MAX_MEASUREMENT


class PointIn(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class MeasurementRequest(BaseModel):
    mode: Literal["area", "length"] = "area"
    shapes: List[List[PointIn]] = Field(default_factory=list, max_length=50)


class MeasurementRead(BaseModel):
    mode: Literal["area", "length"]
    value: float
    unit: Literal["sqft", "ft"]
    shapes: int


class FenceEstimateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    feet: float = Field(default=0, le=int(MAX_MEASUREMENT), allow_inf_nan=False)
    fence_type: Optional[str] = Field(default=None, alias="fenceType")
    walk_gate_qty: int = Field(default=0, alias="walkGateQty")
    double_gate_qty: int = Field(default=0, alias="doubleGateQty")
    remove_old_fence: bool = Field(default=False, alias="removeOldFence")
