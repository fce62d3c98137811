"""Allocation endpoints (admin)."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from hostpanel.api.deps import CurrentAdmin, DbSession, get_allocation_service
from hostpanel.models import Allocation
from hostpanel.schemas import AllocationResponse, AllocationUpdate
from hostpanel.services.allocation_service import AllocationService

router = APIRouter()

Allocations = Annotated[AllocationService, Depends(get_allocation_service)]


@router.get("/{allocation_id}", response_model=AllocationResponse)
async def get_allocation(
    allocation_id: str, _: CurrentAdmin, session: DbSession, allocations: Allocations
) -> Allocation:
    return await allocations.get(session, allocation_id)


@router.patch("/{allocation_id}", response_model=AllocationResponse)
async def update_allocation(
    allocation_id: str,
    update_in: AllocationUpdate,
    _: CurrentAdmin,
    session: DbSession,
    allocations: Allocations,
) -> Allocation:
    """Change the display address. Blank clears it."""
    return await allocations.update_external_ip(session, allocation_id, update_in.external_ip)


@router.delete("/{allocation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_allocation(
    allocation_id: str, _: CurrentAdmin, session: DbSession, allocations: Allocations
) -> None:
    await allocations.delete(session, allocation_id)
