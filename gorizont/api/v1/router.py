from fastapi import APIRouter

from gorizont.api.v1.admin import router as admin_router
from gorizont.api.v1.appeals import router as appeals_router
from gorizont.api.v1.auth import router as auth_router
from gorizont.api.v1.conversations import router as conversations_router
from gorizont.api.v1.disputes import router as disputes_router
from gorizont.api.v1.messages import router as messages_router
from gorizont.api.v1.notifications import router as notifications_router
from gorizont.api.v1.orders import router as orders_router
from gorizont.api.v1.products import router as products_router
from gorizont.api.v1.reviews import router as reviews_router

v1_router = APIRouter()

v1_router.include_router(auth_router)
v1_router.include_router(products_router)
v1_router.include_router(orders_router)
v1_router.include_router(disputes_router)
v1_router.include_router(conversations_router)
v1_router.include_router(messages_router)
v1_router.include_router(reviews_router)
v1_router.include_router(notifications_router)
v1_router.include_router(appeals_router)
v1_router.include_router(admin_router)
