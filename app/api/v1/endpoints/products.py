from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.models.company import Company
from app.models.product import Product
from app.schemas.product import ProductCreate, ProductResponse

router = APIRouter()


@router.get("/", response_model=List[ProductResponse])
async def list_products(
    company_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    """List active products"""
    query = db.query(Product).filter(Product.is_active == True)
    if company_id:
        query = query.filter(Product.company_id == company_id)
    return query.offset(skip).limit(limit).all()


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db)
):
    """Create new product"""
    if not db.get(Company, product_data.company_id):
        raise NotFoundError("Company not found", details={"company_id": product_data.company_id})

    values = product_data.model_dump()
    values["commission_type"] = product_data.commission_type.value
    if product_data.affiliate_discount_type is not None:
        values["affiliate_discount_type"] = product_data.affiliate_discount_type.value

    product = Product(**values)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product
