"""API V1 Router"""

from fastapi import APIRouter

# Import endpoint routers
from booking_engine.api.v1.endpoints import bookings, courses, installments, payments, webhooks

# Create API v1 router
api_router = APIRouter()

# Include endpoint routers with prefixes and tags
api_router.include_router(installments.router, prefix="/installments", tags=["Installment Plans"])
api_router.include_router(payments.router, tags=["Payments & Invoices"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
api_router.include_router(courses.router, prefix="/courses", tags=["Group Courses"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Provider Webhooks"])
