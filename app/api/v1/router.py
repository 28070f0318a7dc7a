from fastapi import APIRouter

from app.api.v1.endpoints import products, purchases, commissions, payouts, payout_preferences, webhooks

api_router = APIRouter()

api_router.include_router(products.router, prefix="/products", tags=["Products"])
api_router.include_router(purchases.router, prefix="/purchases", tags=["Purchases"])
api_router.include_router(commissions.router, prefix="/commissions", tags=["Commissions"])
api_router.include_router(payouts.router, prefix="/payouts", tags=["Payouts"])
api_router.include_router(payout_preferences.router, prefix="/payout-preferences", tags=["Payout Preferences"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
