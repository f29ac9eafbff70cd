from fastapi import APIRouter

from jobfeed.api.routes import feed, health, ingest, listings, live, metrics

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(feed.router, tags=["public"])
api_router.include_router(live.router, tags=["public"])
api_router.include_router(metrics.router, prefix="/metrics", tags=["public"])
api_router.include_router(ingest.router, tags=["admin"])
api_router.include_router(listings.router, prefix="/listings", tags=["staff"])
