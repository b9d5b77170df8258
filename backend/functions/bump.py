from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from rpc.client import RpcCaller
from rpc.errors import ValidationError

BUMP_FN = "bump_property"


class BumpResult(BaseModel):
    """
    Outcome of a manual bump. Limits come from the agent's plan; -1 means unlimited.
    """

    success: bool
    error: str | None = None
    bumps_used: int | None = None
    bumps_limit: int | None = None
    bumps_remaining: int | None = None
    next_reset: str | None = None

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


async def bump_property(rpc: RpcCaller, property_id: str | None) -> BumpResult:
    pid = (property_id or "").strip() if isinstance(property_id, str) else property_id
    if not pid:
        raise ValidationError("propertyId is required")
    data = await rpc.rpc(BUMP_FN, {"property_id": str(pid)})
    if not isinstance(data, dict):
        return BumpResult(success=False, error="Unexpected bump_property response")
    return BumpResult.model_validate(data)
