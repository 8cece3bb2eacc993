# protoshop/repositories/quote_repo.py
import uuid

from sqlmodel import Session, select

from protoshop.models.quote import Quote


class QuoteRepository:
    """
    Data access layer for custom print quotes.
    """

    def get_by_id(self, session: Session, quote_id: uuid.UUID) -> Quote | None:
        return session.get(Quote, quote_id)

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[Quote]:
        stmt = (
            select(Quote)
            .where(Quote.user_id == user_id)
            .order_by(Quote.created_at.desc())
        )
        return session.exec(stmt).all()

    def list_all(
        self,
        session: Session,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Quote]:
        stmt = select(Quote)
        if status:
            stmt = stmt.where(Quote.status == status)
        stmt = stmt.order_by(Quote.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def save(self, session: Session, quote: Quote) -> Quote:
        session.add(quote)
        session.commit()
        session.refresh(quote)
        return quote
