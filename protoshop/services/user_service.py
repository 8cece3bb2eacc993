# protoshop/services/user_service.py
import uuid
from datetime import datetime, timezone

from sqlmodel import Session

from protoshop.core.errors import NotFoundError
from protoshop.models.user import Address, SavedModel, User
from protoshop.repositories.user_repo import UserRepository
from protoshop.schemas.user import AddressWrite, ProfileUpdate, UserRoleUpdate


class UserService:
    """
    Business logic for User.

    Responsibilities:
      - profile edits (email is never editable)
      - address book with a single default address per user
      - admin role management
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    # ----- Self profile -----

    def update_profile(
        self,
        session: Session,
        current_user: User,
        payload: ProfileUpdate,
    ) -> User:
        """
        Partial update: only fields present in the request are written.
        """
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(current_user, field, value)
        current_user.updated_at = datetime.now(timezone.utc)
        return self.repo.update(session, current_user)

    # ----- Addresses -----

    def list_addresses(self, session: Session, user: User) -> list[Address]:
        return self.repo.list_addresses(session, user.id)

    def _get_address(self, session: Session, user: User, address_id: uuid.UUID) -> Address:
        address = self.repo.get_address(session, user.id, address_id)
        if not address:
            raise NotFoundError("Address not found")
        return address

    def add_address(self, session: Session, user: User, payload: AddressWrite) -> Address:
        """
        Add an address. The first address a user saves becomes the default.
        """
        data = payload.model_dump()
        if not self.repo.list_addresses(session, user.id):
            data["is_default"] = True
        if data["is_default"]:
            self.repo.clear_default_address(session, user.id)
        address = Address(user_id=user.id, **data)
        return self.repo.save_address(session, address)

    def update_address(
        self,
        session: Session,
        user: User,
        address_id: uuid.UUID,
        payload: AddressWrite,
    ) -> Address:
        address = self._get_address(session, user, address_id)
        data = payload.model_dump()
        if data["is_default"]:
            self.repo.clear_default_address(session, user.id, keep_id=address.id)
        for field, value in data.items():
            setattr(address, field, value)
        address.updated_at = datetime.now(timezone.utc)
        return self.repo.save_address(session, address)

    def delete_address(self, session: Session, user: User, address_id: uuid.UUID) -> None:
        address = self._get_address(session, user, address_id)
        self.repo.delete_address(session, address)

    # ----- Saved models -----

    def list_saved_models(self, session: Session, user: User) -> list[SavedModel]:
        return self.repo.list_saved_models(session, user.id)

    # ----- Admin operations -----

    def list_users(self, session: Session, skip: int, limit: int) -> list[User]:
        """List users with pagination (admin only)."""
        return self.repo.list_users(session, skip=skip, limit=limit)

    def update_role(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: UserRoleUpdate,
    ) -> User:
        """
        Change user's role (admin only).

        Raises:
            NotFoundError(404): if the user does not exist.
        """
        user = self.repo.get_by_id(session, user_id)
        if not user:
            raise NotFoundError("User not found")
        user.role = payload.role
        user.updated_at = datetime.now(timezone.utc)
        return self.repo.update(session, user)
