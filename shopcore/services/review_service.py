from typing import Dict, Optional
from uuid import uuid4
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ..db.session import get_session
from ..models.review import Review
from ..utils.dto import to_review_dto
from ..utils.pagination import normalize_paging, page_meta
from .catalog_service import find_product
from .errors import DuplicateReview, Forbidden, ProductUnavailable, ReviewNotFound, ValidationFailed
from .logging import log_event


def recompute_rating(session: Session, product_id: str) -> None:
    """Rewrite the product's rating aggregate from its reviews."""
    avg, count = (
        session.query(func.avg(Review.rating), func.count(Review.id))
        .filter(Review.product_id == product_id)
        .one()
    )
    product = find_product(session, product_id)
    if product is None:
        return
    product.average_rating = round(float(avg), 1) if count else 0.0
    product.total_reviews = int(count or 0)


class ReviewService:
    def __init__(self, session_factory=get_session, *, on_rating_change=None):
        self._session_factory = session_factory
        self._on_rating_change = on_rating_change

    def _changed(self) -> None:
        if self._on_rating_change:
            self._on_rating_change()

    def list_reviews(self, product_id: str, *, page: int = 1, page_size: int = 10) -> Dict:
        p, ps = normalize_paging(page, page_size)
        with self._session_factory() as session:
            q = session.query(Review).filter(Review.product_id == product_id)
            total = q.count()
            rows = q.order_by(Review.created_at.desc()).offset((p - 1) * ps).limit(ps).all()
            return {"reviews": [to_review_dto(r) for r in rows], "pagination": page_meta(p, ps, total)}

    def create_review(
        self,
        *,
        product_id: str,
        user_id: str,
        rating,
        title: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> Dict:
        try:
            score = int(rating)
        except (TypeError, ValueError):
            raise ValidationFailed("rating must be an integer between 1 and 5")
        if not 1 <= score <= 5:
            raise ValidationFailed("rating must be an integer between 1 and 5")
        with self._session_factory() as session:
            product = find_product(session, product_id)
            if product is None or not product.is_active:
                raise ProductUnavailable()
            exists = (
                session.query(Review.id)
                .filter(Review.product_id == product_id, Review.user_id == user_id)
                .first()
            )
            if exists:
                raise DuplicateReview()
            review = Review(
                id=str(uuid4()),
                product_id=product_id,
                user_id=user_id,
                rating=score,
                title=(title or "").strip() or None,
                comment=(comment or "").strip() or None,
            )
            session.add(review)
            try:
                session.flush()
            except IntegrityError:
                raise DuplicateReview()
            recompute_rating(session, product_id)
            session.flush()
            log_event("info", "review.created", product_id=product_id, user_id=user_id, rating=score)
            result = to_review_dto(review)
        self._changed()
        return result

    def delete_review(self, review_id: str, *, user_id: str, is_admin: bool = False) -> None:
        with self._session_factory() as session:
            review = session.get(Review, review_id) if review_id else None
            if review is None:
                raise ReviewNotFound()
            if review.user_id != user_id and not is_admin:
                raise Forbidden()
            product_id = review.product_id
            session.delete(review)
            session.flush()
            recompute_rating(session, product_id)
            log_event("info", "review.deleted", review_id=review_id, product_id=product_id)
        self._changed()
