# protoshop/repositories/user_repo.py
import uuid

from sqlalchemy import update
from sqlmodel import Session, select

from protoshop.models.user import Address, SavedModel, User


class UserRepository:
    """
    Data access layer for User, Address and SavedModel.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    # ----- Users -----

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def get_by_email(self, session: Session, email: str) -> User | None:
        """Return a User by unique (lower-cased) email, or None if not found."""
        stmt = select(User).where(User.email == email.lower())
        return session.exec(stmt).first()

    def list_users(self, session: Session, skip: int = 0, limit: int = 50) -> list[User]:
        """
        Paginated user listing, newest accounts first.
        """
        stmt = select(User).order_by(User.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def create(self, session: Session, user: User) -> User:
        """Insert a new User and return the persisted row."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    def update(self, session: Session, user: User) -> User:
        """Persist changes to an existing User."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    # ----- Addresses -----

    def list_addresses(self, session: Session, user_id: uuid.UUID) -> list[Address]:
        stmt = (
            select(Address)
            .where(Address.user_id == user_id)
            .order_by(Address.is_default.desc(), Address.created_at)
        )
        return session.exec(stmt).all()

    def get_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> Address | None:
        stmt = select(Address).where(Address.id == address_id, Address.user_id == user_id)
        return session.exec(stmt).first()

    def clear_default_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        keep_id: uuid.UUID | None = None,
    ) -> None:
        """
        Unset is_default on the user's addresses (except `keep_id`).
        No commit: runs inside the caller's transaction.
        """
        stmt = update(Address).where(Address.user_id == user_id, Address.is_default == True)
        if keep_id is not None:
            stmt = stmt.where(Address.id != keep_id)
        session.exec(stmt.values(is_default=False))
        session.flush()

    def save_address(self, session: Session, address: Address) -> Address:
        session.add(address)
        session.commit()
        session.refresh(address)
        return address

    def delete_address(self, session: Session, address: Address) -> None:
        session.delete(address)
        session.commit()

    # ----- Saved models -----

    def list_saved_models(self, session: Session, user_id: uuid.UUID) -> list[SavedModel]:
        stmt = (
            select(SavedModel)
            .where(SavedModel.user_id == user_id)
            .order_by(SavedModel.created_at.desc())
        )
        return session.exec(stmt).all()
