from fastapi import APIRouter, Depends, Request

from devicewatch.models.user import User
from devicewatch.schemas.user import CurrentUserResponse
from devicewatch.services.auth import get_current_user

router = APIRouter()


@router.get("/me", response_model=CurrentUserResponse)
def read_current_user(request: Request, current_user: User = Depends(get_current_user)):
    decision = getattr(request.state, "device_decision", None)
    profile = CurrentUserResponse.model_validate(current_user)
    if decision is not None:
        profile.device_status = decision.outcome.value
        profile.new_device = decision.is_new_device
    return profile
