"""Public catalog: product search, autocomplete and detail."""

import math
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.db.session import get_async_db
from services.store_service.models import Product, StockStatus
from services.store_service.schemas import (
    ProductListResponse,
    ProductResponse,
    ProductSuggestion,
    SuggestResponse,
)
from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])

SUGGEST_MIN_LENGTH = 2
SUGGEST_LIMIT = 10


def matches_every_word(term: str):
    """Each whitespace-separated word must appear in title, description or category."""
    clauses = []
    for word in term.split():
        pattern = f"%{word}%"
        clauses.append(
            or_(
                Product.title.ilike(pattern),
                Product.description.ilike(pattern),
                Product.category.ilike(pattern),
            )
        )
    return and_(*clauses)


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    q: Optional[str] = Query(None, max_length=255, description="Search text"),
    category: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    in_stock: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db),
):
    """
    List products with optional text search and filters.

    Every word of the search text must appear in the title, description or
    category. Results are ranked exact title match first, then title contains
    the whole text, then everything else.
    """
    query = select(Product)

    if category:
        query = query.where(Product.category == category)
    if min_price is not None:
        query = query.where(Product.final_price >= min_price)
    if max_price is not None:
        query = query.where(Product.final_price <= max_price)
    if in_stock is not None:
        query = query.where(
            Product.stock_status
            == (StockStatus.IN_STOCK if in_stock else StockStatus.OUT_OF_STOCK)
        )

    ordering = [Product.created_at.desc()]
    term = (q or "").strip()
    if term:
        query = query.where(matches_every_word(term))
        relevance = case(
            (func.lower(Product.title) == term.lower(), 0),
            (Product.title.ilike(f"%{term}%"), 1),
            else_=2,
        )
        ordering.insert(0, relevance)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    query = query.order_by(*ordering).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    products = result.scalars().all()

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total else 0,
    )


@router.get("/products/suggest", response_model=SuggestResponse)
async def suggest_products(
    q: str = Query("", max_length=255),
    db: AsyncSession = Depends(get_async_db),
):
    """Autocomplete: newest in-stock products whose title or description contains q."""
    term = q.strip()
    if len(term) < SUGGEST_MIN_LENGTH:
        return SuggestResponse(suggestions=[])

    pattern = f"%{term}%"
    query = (
        select(Product)
        .where(Product.stock_status == StockStatus.IN_STOCK)
        .where(or_(Product.title.ilike(pattern), Product.description.ilike(pattern)))
        .order_by(Product.created_at.desc())
        .limit(SUGGEST_LIMIT)
    )
    result = await db.execute(query)
    return SuggestResponse(
        suggestions=[ProductSuggestion.model_validate(p) for p in result.scalars().all()]
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
