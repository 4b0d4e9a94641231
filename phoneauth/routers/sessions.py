from typing import List
from fastapi import APIRouter, Depends, Response, status
from ..dependencies import get_current_user, get_session_service
from ..models.user import User
from ..schemas.users import SessionResponse
from ..services.session_service import SessionService

router = APIRouter(prefix="/api/v1/auth/sessions", tags=["sessions"])


@router.get("", response_model=List[SessionResponse])
def list_sessions(
    current_user: User = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
):
    return [SessionResponse.model_validate(s) for s in sessions.get_user_sessions(current_user.id)]


# Registered before /{session_id} so "all" is not captured as an id
@router.delete("/all", status_code=status.HTTP_204_NO_CONTENT)
def logout_all_sessions(
    current_user: User = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
):
    sessions.logout_all_sessions(current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def logout_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
):
    sessions.logout_session(session_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
