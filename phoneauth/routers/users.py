from fastapi import APIRouter, Depends
from ..dependencies import get_current_user, get_user_service
from ..models.user import User
from ..schemas.users import UserProfileResponse, UpdateProfileRequest
from ..services.user_service import UserService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/profile", response_model=UserProfileResponse)
def get_profile(current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)):
    return UserProfileResponse.model_validate(users.get_profile(current_user.id))


@router.patch("/profile", response_model=UserProfileResponse)
def update_profile(
    payload: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    user = users.update_profile(current_user.id, **payload.model_dump(exclude_none=True))
    return UserProfileResponse.model_validate(user)
