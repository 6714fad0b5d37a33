from typing import Dict, Optional, Tuple
import time
from sqlalchemy import or_
from sqlalchemy.orm import Query, Session
from ..db.session import get_session
from ..models.product import Product
from ..models.category import Category
from ..utils.pagination import normalize_paging, page_meta
from ..utils.dto import to_product_dto
from ..utils.validators import ensure_amount

SORT_FIELDS = {
    "name": Product.name,
    "price": Product.base_price,
    "createdAt": Product.created_at,
    "updatedAt": Product.updated_at,
    "averageRating": Product.average_rating,
}


def find_product(session: Session, product_id: str) -> Optional[Product]:
    """Product by id regardless of ``is_active``; callers decide what inactive means."""
    if not product_id:
        return None
    return session.get(Product, product_id)


def _apply_filters(q: Query, query: Optional[str], category: Optional[str], min_price, max_price) -> Query:
    if query:
        pattern = f"%{query}%"
        q = q.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    if category:
        q = q.join(Category, Category.id == Product.category_id).filter(
            or_(Category.slug == category, Category.id == category)
        )
    low = ensure_amount(min_price, "minPrice")
    high = ensure_amount(max_price, "maxPrice")
    if low is not None:
        q = q.filter(Product.base_price >= low)
    if high is not None:
        q = q.filter(Product.base_price <= high)
    return q


class CatalogService:
    """商品目錄查詢

    - 上架商品的搜尋、分類與價格篩選、排序與分頁
    - 單一商品明細
    - 庫存或評分變動時清除列表快取
    """

    _cache_ttl_seconds: int = 60
    _cache_max_entries: int = 256

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory
        # (filters..., page, page_size) -> (stored_at, result)
        self._cache: Dict[Tuple, Tuple[float, Dict]] = {}

    def list_products(
        self,
        *,
        query: Optional[str] = None,
        category: Optional[str] = None,
        min_price=None,
        max_price=None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        page: int = 1,
        page_size: int = 20,
    ) -> Dict:
        p, ps = normalize_paging(page, page_size)
        column = SORT_FIELDS.get(sort_by, Product.created_at)
        ordering = column.asc() if (sort_order or "").lower() == "asc" else column.desc()
        key = (query or "", category or "", str(min_price or ""), str(max_price or ""), str(ordering), p, ps)

        now = time.time()
        self._evict_stale(now)
        hit = self._cache.get(key)
        if hit:
            return hit[1]

        with self._session_factory() as session:
            q = _apply_filters(
                session.query(Product).filter(Product.is_active.is_(True)),
                query,
                category,
                min_price,
                max_price,
            )
            total = q.count()
            rows = q.order_by(ordering, Product.id).offset((p - 1) * ps).limit(ps).all()
            result = {"items": [to_product_dto(r) for r in rows], "pagination": page_meta(p, ps, total)}
        if len(self._cache) >= self._cache_max_entries:
            # dicts keep insertion order, so the first key is the oldest entry
            del self._cache[next(iter(self._cache))]
        self._cache[key] = (now, result)
        return result

    def _evict_stale(self, now: float) -> None:
        stale = [k for k, (stored_at, _) in self._cache.items() if now - stored_at > self._cache_ttl_seconds]
        for k in stale:
            del self._cache[k]

    def get_product(self, product_id: str) -> Dict:
        """Product detail; empty dict when missing or inactive."""
        with self._session_factory() as session:
            product = find_product(session, product_id)
            if product is None or not product.is_active:
                return {}
            return to_product_dto(product)

    def invalidate_cache(self) -> None:
        self._cache.clear()
