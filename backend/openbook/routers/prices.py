from fastapi import APIRouter
from openbook.services import price_feed

router = APIRouter(prefix="/api/prices", tags=["prices"])

@router.get("")
async def get_prices():
    return await price_feed.get_prices()
