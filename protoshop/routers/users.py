# protoshop/routers/users.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from protoshop.core.auth import get_current_user, require_admin
from protoshop.database import get_session
from protoshop.models.user import User
from protoshop.repositories.user_repo import UserRepository
from protoshop.schemas.user import (
    AddressRead,
    AddressWrite,
    ProfileUpdate,
    SavedModelRead,
    UserRead,
    UserRoleUpdate,
)
from protoshop.services.user_service import UserService

router = APIRouter(prefix="/user", tags=["Users"])

repo = UserRepository()
service = UserService(repo)


def get_user_service() -> UserService:
    return service


# -------- Self profile --------


@router.get("/profile", response_model=UserRead)
def read_profile(current_user: User = Depends(get_current_user)):
    """
    Return the authenticated user's profile.
    """
    return current_user


@router.put("/profile", response_model=UserRead)
def update_profile(
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """
    Update the authenticated user's profile (partial update).

    Editable: full_name, phone_number, avatar_url. Email is fixed.
    """
    return service.update_profile(session, current_user, payload)


# -------- Addresses --------


@router.get("/addresses", response_model=list[AddressRead])
def list_addresses(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """Saved addresses, default first."""
    return service.list_addresses(session, current_user)


@router.post("/addresses", response_model=AddressRead, status_code=status.HTTP_201_CREATED)
def add_address(
    payload: AddressWrite,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.add_address(session, current_user, payload)


@router.put("/addresses/{address_id}", response_model=AddressRead)
def update_address(
    address_id: uuid.UUID,
    payload: AddressWrite,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.update_address(session, current_user, address_id, payload)


@router.delete("/addresses/{address_id}")
def delete_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    service.delete_address(session, current_user, address_id)
    return {"message": "Address deleted"}


# -------- Saved models --------


@router.get("/models", response_model=list[SavedModelRead])
def list_saved_models(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.list_saved_models(session, current_user)


# -------- Admin endpoints --------


@router.get(
    "/admin/all",
    response_model=list[UserRead],
    dependencies=[Depends(require_admin)],
)
def list_users(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    service: UserService = Depends(get_user_service),
):
    """
    List all users (admin only).

    Pagination via skip/limit.
    """
    return service.list_users(session, skip, limit)


@router.patch(
    "/{user_id}/role",
    response_model=UserRead,
    dependencies=[Depends(require_admin)],
)
def change_role(
    user_id: uuid.UUID,
    payload: UserRoleUpdate,
    session: Session = Depends(get_session),
    service: UserService = Depends(get_user_service),
):
    """
    Update a user's role (admin only).

    Allowed roles: user, admin.
    """
    return service.update_role(session, user_id, payload)
