from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.config import settings
from app.core.database import get_db
from app.schemas.purchase import PurchaseCreate, PurchaseResponse
from app.services.purchase_service import PurchaseService

router = APIRouter()


@router.post("/", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase(
    request: PurchaseCreate,
    db: Session = Depends(get_db)
):
    """Record an in-app checkout"""
    return PurchaseService.record_purchase(
        db=db,
        product_id=request.product_id,
        partnership_id=request.partnership_id,
        customer=request.customer,
        quantity=request.quantity
    )


@router.get("/", response_model=List[PurchaseResponse])
async def list_purchases(
    affiliate_id: Optional[str] = None,
    company_id: Optional[str] = None,
    skip: int = 0,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    db: Session = Depends(get_db)
):
    """List purchases"""
    return PurchaseService.list_purchases(
        db=db,
        affiliate_id=affiliate_id,
        company_id=company_id,
        skip=skip,
        limit=min(limit, settings.MAX_PAGE_SIZE)
    )
