"""
Billing API - public Stripe configuration for browser clients.
"""
from fastapi import APIRouter

from payrelay.config import get_settings

router = APIRouter(tags=["billing"])


@router.get("/config")
async def get_stripe_config():
    """Publishable key for initialising Stripe.js."""
    settings = get_settings()
    return {"publishableKey": settings.stripe_publishable_key}
