from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.config import settings
from app.core.database import get_db
from app.models.commission import CommissionStatus
from app.schemas.commission import (
    CommissionDashboard,
    CommissionResponse,
    CommissionSimulation,
    CommissionSimulationResult,
    CommissionUpdate,
    CompanyPaymentCreate,
    CompanyPaymentResponse,
)
from app.services.commission_service import CommissionService
from app.services.company_payment_service import CompanyPaymentService
from app.services.stripe_gateway import TransferGateway, get_gateway

router = APIRouter()


@router.get("/", response_model=List[CommissionResponse])
async def list_commissions(
    affiliate_id: Optional[str] = None,
    status: Optional[CommissionStatus] = None,
    skip: int = 0,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    db: Session = Depends(get_db)
):
    """List commissions"""
    return CommissionService.list_commissions(
        db=db,
        affiliate_id=affiliate_id,
        status=status,
        skip=skip,
        limit=min(limit, settings.MAX_PAGE_SIZE)
    )


@router.get("/dashboard/{affiliate_id}", response_model=CommissionDashboard)
async def get_commission_dashboard(
    affiliate_id: str,
    db: Session = Depends(get_db)
):
    """Get commission dashboard data"""
    return CommissionService.get_dashboard_data(db, affiliate_id)


@router.post("/simulate", response_model=CommissionSimulationResult)
async def simulate_commission(
    simulation: CommissionSimulation,
    db: Session = Depends(get_db)
):
    """Simulate commission calculation"""
    return CommissionService.simulate_commission(
        db=db,
        product_id=simulation.product_id,
        purchase_amount=simulation.purchase_amount,
        quantity=simulation.quantity
    )


@router.post("/company-payments", response_model=CompanyPaymentResponse, status_code=201)
async def pay_company_commissions(
    payment: CompanyPaymentCreate,
    db: Session = Depends(get_db),
    gateway: TransferGateway = Depends(get_gateway)
):
    """Charge a company for approved commissions it owes"""
    return CompanyPaymentService.pay_commissions(
        db=db,
        gateway=gateway,
        company_id=payment.company_id,
        commission_ids=payment.commission_ids,
        payment_method_id=payment.payment_method_id
    )


@router.get("/company-payments/{company_id}", response_model=List[CompanyPaymentResponse])
async def list_company_payments(
    company_id: str,
    skip: int = 0,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    db: Session = Depends(get_db)
):
    """List a company's commission payments"""
    return CompanyPaymentService.list_payments(db, company_id, skip=skip, limit=min(limit, settings.MAX_PAGE_SIZE))


@router.put("/{commission_id}", response_model=CommissionResponse)
async def update_commission(
    commission_id: str,
    commission_update: CommissionUpdate,
    db: Session = Depends(get_db)
):
    """Approve or reject a commission"""
    return CommissionService.update_status(db, commission_id, commission_update.status)
