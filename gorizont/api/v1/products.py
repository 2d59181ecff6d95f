import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_current_user, get_db, require_role
from gorizont.common.enums import UserRole
from gorizont.core.products.service import ProductService
from gorizont.db.models.user import User

router = APIRouter(prefix="/products", tags=["Products"])
product_service = ProductService()


# ---------- Schemas ----------


class ProductCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    price: Decimal = Field(ge=0, decimal_places=2)
    in_stock: bool = True


class ProductResponse(BaseModel):
    id: uuid.UUID
    vendor_id: uuid.UUID
    title: str
    description: str | None
    price: Decimal
    in_stock: bool
    average_rating: float
    reviews_count: int

    model_config = {"from_attributes": True}


# ---------- Endpoints ----------


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    body: ProductCreateRequest,
    current_user: User = Depends(require_role(UserRole.VENDOR, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return await product_service.create_product(
        current_user,
        body.title,
        body.price,
        db,
        description=body.description,
        in_stock=body.in_stock,
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await product_service.get_product(product_id, db)


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await product_service.delete_product(product_id, current_user, db)
