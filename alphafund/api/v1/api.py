"""
V1 API router aggregation.

All versioned endpoint routers are mounted here under a common prefix.
The top-level ``main.py`` mounts this router at ``/api/v1``.
"""

from fastapi import APIRouter

from alphafund.api.v1.endpoints import commission, events, fund, governance, investors

api_router = APIRouter()

api_router.include_router(fund.router, prefix="/fund", tags=["Fund"])
api_router.include_router(investors.router, prefix="/investors", tags=["Investors"])
api_router.include_router(commission.router, prefix="/commission", tags=["Commission"])
api_router.include_router(events.router, prefix="/events", tags=["Events"])

# Governance defines /members and /proposals itself, so it is mounted at the
# root of the v1 prefix.
api_router.include_router(governance.router, tags=["Governance"])
