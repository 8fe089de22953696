from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_marketplace_user
from db.models.user import User as UserModel
from db.session import get_db_session
from schemas.bid_schema import ProximityRequest
from services.bid_service import preview_proximity
from utils.rate_limit import write_rate_limit
from utils.responses import no_store_json

router = APIRouter(prefix="/api/bids", dependencies=[write_rate_limit])


@router.post("/proximity")
async def proximity_endpoint(
    data: ProximityRequest,
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await preview_proximity(data.product_id, data.price_per_unit, db))
