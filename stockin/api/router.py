"""
API Router - JSON Endpoints
"""
from fastapi import APIRouter
from datetime import datetime

from stockin import __version__
from stockin.api.stock_in import router as stock_in_router

api_router = APIRouter(tags=["API"])

api_router.include_router(stock_in_router)


@api_router.get("/status")
async def api_status():
    return {"status": "ok", "version": __version__, "timestamp": datetime.now().isoformat()}
