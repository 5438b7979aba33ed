from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services import search_service
from app.utils.response import success

router = APIRouter()


@router.get("/autocomplete", response_model=dict)
def autocomplete(q: str = Query("", max_length=100), db: Session = Depends(get_db)):
    return success(data=search_service.autocomplete(db, q))


@router.get("/", response_model=dict)
def search(
    q: str = Query("", max_length=100),
    size: Optional[str] = None,
    color: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    sort: Literal["relevance", "price_asc", "price_desc"] = "relevance",
    db: Session = Depends(get_db),
):
    data = search_service.search(
        db,
        q=q,
        size=size,
        color=color,
        min_price=min_price,
        max_price=max_price,
        sort=sort,
    )
    return success(data=data)
