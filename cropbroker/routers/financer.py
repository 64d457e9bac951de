"""Financer API endpoints - buyers and their credit."""

from fastapi import APIRouter, Depends, status

from cropbroker.auth import require_financer, require_roles
from cropbroker.models import User, UserRole
from cropbroker.repositories import Repositories, get_repositories
from cropbroker.routers._errors import service_errors
from cropbroker.schemas.financer import (
    BuyerCreate,
    BuyerListingResponse,
    BuyerResponse,
    CreditUpdate,
    FinancerInfo,
    PurchaseOrderDetail,
)
from cropbroker.services import credit as credit_service

router = APIRouter()


@router.post(
    "/buyers",
    response_model=BuyerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a buyer",
)
async def create_buyer(
    data: BuyerCreate,
    financer: User = Depends(require_financer),
    repos: Repositories = Depends(get_repositories),
) -> BuyerResponse:
    """Add a buyer; its available credit starts at the full limit."""
    with service_errors():
        buyer = await credit_service.create_buyer(
            repos, financer, data.name, data.credit_limit
        )
    return BuyerResponse.model_validate(buyer)


@router.get("/buyers", response_model=list[BuyerResponse], summary="List my buyers")
async def list_buyers(
    financer: User = Depends(require_financer),
    repos: Repositories = Depends(get_repositories),
) -> list[BuyerResponse]:
    buyers = await credit_service.list_buyers(repos, financer)
    return [BuyerResponse.model_validate(b) for b in buyers]


@router.get(
    "/buyers/all",
    response_model=list[BuyerListingResponse],
    summary="List all buyers with and without financing",
)
async def list_all_buyers(
    user: User = Depends(require_roles(UserRole.FINANCER, UserRole.BROKER)),
    repos: Repositories = Depends(get_repositories),
) -> list[BuyerListingResponse]:
    listings = await credit_service.list_all_buyers(repos)
    results = []
    for listing in listings:
        buyer = listing.buyer
        financed = listing.with_financing
        results.append(
            BuyerListingResponse(
                id=buyer.id,
                name=listing.display_name,
                financer_id=buyer.financer_id,
                status=buyer.status,
                with_financing=financed,
                credit_limit=buyer.credit_limit if financed else None,
                available_credit=buyer.available_credit if financed else None,
                financer_details=(
                    FinancerInfo.model_validate(buyer.financer)
                    if financed and buyer.financer
                    else None
                ),
            )
        )
    return results


@router.put(
    "/buyers/{buyer_id}/credit",
    response_model=BuyerResponse,
    summary="Update a buyer's credit limit",
)
async def update_credit_limit(
    buyer_id: str,
    data: CreditUpdate,
    financer: User = Depends(require_financer),
    repos: Repositories = Depends(get_repositories),
) -> BuyerResponse:
    with service_errors():
        buyer = await credit_service.update_credit_limit(
            repos, financer, buyer_id, data.credit_limit
        )
    return BuyerResponse.model_validate(buyer)


@router.get(
    "/purchase-orders",
    response_model=list[PurchaseOrderDetail],
    summary="Purchase orders against my buyers",
)
async def list_purchase_orders(
    financer: User = Depends(require_financer),
    repos: Repositories = Depends(get_repositories),
) -> list[PurchaseOrderDetail]:
    pos = await credit_service.list_purchase_orders(repos, financer)
    return [PurchaseOrderDetail.model_validate(po) for po in pos]
