import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_current_user, get_db, require_role
from gorizont.common.enums import ReviewStatus, UserRole
from gorizont.common.pagination import PaginatedResponse, PaginationParams, page_response, paginate
from gorizont.core.reviews.service import ReviewService
from gorizont.db.models.review import Review
from gorizont.db.models.user import User

router = APIRouter(prefix="/reviews", tags=["Reviews"])
review_service = ReviewService()


# ---------- Schemas ----------


class ReviewCreateRequest(BaseModel):
    product_id: uuid.UUID
    order_id: uuid.UUID
    rating: int = Field(ge=1, le=5)
    text: str | None = Field(default=None, max_length=5000)


class ReviewModerateRequest(BaseModel):
    status: ReviewStatus


class ReviewResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    order_id: uuid.UUID
    user_id: uuid.UUID
    rating: int
    text: str | None
    status: str
    created_at: str


class ReviewListResponse(PaginatedResponse[ReviewResponse]):
    pass


# ---------- Endpoints ----------


@router.post("", response_model=ReviewResponse, status_code=201)
async def create_review(
    body: ReviewCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    review = await review_service.create_review(
        current_user, body.product_id, body.order_id, body.rating, body.text, db
    )
    return _review_response(review)


@router.get("", response_model=ReviewListResponse)
async def list_reviews(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    params: PaginationParams = Depends(),
):
    query = (
        select(Review)
        .where(
            Review.product_id == product_id,
            Review.status == ReviewStatus.APPROVED.value,
            Review.is_deleted.is_(False),
        )
        .order_by(Review.created_at.desc())
    )
    items, total = await paginate(db, query, params, Review)
    return page_response(ReviewListResponse, items, total, params, _review_response)


@router.patch("/{review_id}", response_model=ReviewResponse)
async def moderate_review(
    review_id: uuid.UUID,
    body: ReviewModerateRequest,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    review = await review_service.get_review(review_id, db)
    review = await review_service.moderate(review, body.status, current_user, db)
    return _review_response(review)


@router.delete("/{review_id}", status_code=204)
async def delete_review(
    review_id: uuid.UUID,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    review = await review_service.get_review(review_id, db)
    await review_service.delete(review, current_user, db)


def _review_response(review: Review) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        product_id=review.product_id,
        order_id=review.order_id,
        user_id=review.user_id,
        rating=review.rating,
        text=review.text,
        status=review.status,
        created_at=review.created_at.isoformat(),
    )
