from fastapi import APIRouter, Depends

from cleancar.api.deps import get_current_user
from cleancar.api.v1.schemas import PointsBalanceResponseSchema
from cleancar.domain.entities.user import User

router = APIRouter()


@router.get("/points", response_model=PointsBalanceResponseSchema)
def get_points(user: User = Depends(get_current_user)):
    return PointsBalanceResponseSchema(user_id=user.id, points_balance=user.points_balance)
