"""User API route - the requester's own profile."""

from fastapi import APIRouter, Depends

from enrolldesk.auth import Identity, get_current_identity

router = APIRouter()


@router.get("/api/users/GetLoginUserDetails", response_model=Identity)
def get_login_user_details(identity: Identity = Depends(get_current_identity)):
    """Public profile of the authenticated staff member."""
    return identity
