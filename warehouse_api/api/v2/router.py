from fastapi import APIRouter
from warehouse_api.api.v2 import inventory

api_router = APIRouter()

api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
