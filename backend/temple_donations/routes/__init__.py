from temple_donations.routes.payment import router as payment_router
from temple_donations.routes.receipts import router as receipts_router
from temple_donations.routes.donations import router as donations_router
from temple_donations.routes.admin import router as admin_router

__all__ = ["payment_router", "receipts_router", "donations_router", "admin_router"]
