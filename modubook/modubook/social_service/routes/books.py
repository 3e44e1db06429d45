"""
Book lookup endpoints backed by the Aladin open API.
"""
import logging
from typing import Any, Dict, Literal

import httpx
from fastapi import APIRouter, HTTPException, Query, status

from ..config import settings
from ..schemas import BookOut, BookSearchResponse

router = APIRouter(prefix="/api/books", tags=["books"])
logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 50

QUERY_TYPES = {
    "title": "Title",
    "author": "Author",
    "isbn": "ISBN",
}


def query_aladin(query: str, query_type: str, max_results: int) -> Dict[str, Any]:
    """
    Call the Aladin ItemSearch API.

    Raises:
        httpx.TimeoutException: upstream did not answer within BOOK_SEARCH_TIMEOUT_SECONDS
        httpx.HTTPError: transport failure or non-2xx status
    """
    params = {
        "ttbkey": settings.ALADIN_API_KEY,
        "Query": query,
        "QueryType": query_type,
        "MaxResults": max_results,
        "start": 1,
        "SearchTarget": "Book",
        "output": "js",
        "Version": "20131101",
    }
    response = httpx.get(settings.ALADIN_API_URL, params=params, timeout=settings.BOOK_SEARCH_TIMEOUT_SECONDS)
    response.raise_for_status()
    return response.json()


def to_book(item: Dict[str, Any]) -> BookOut:
    return BookOut(
        isbn=item.get("isbn13") or item.get("isbn"),
        title=item.get("title"),
        author=item.get("author"),
        publisher=item.get("publisher"),
        cover_image_url=item.get("cover"),
        description=item.get("description"),
        pub_date=item.get("pubDate"),
        link=item.get("link")
    )


def _search(query: str, query_type: str, max_results: int) -> Dict[str, Any]:
    try:
        return query_aladin(query, query_type, max_results)
    except httpx.TimeoutException as e:
        logger.error("[Books] Aladin request timed out: query=%s type=%s", query, query_type)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Book search service is not responding. Please try again later."
        ) from e
    except (httpx.HTTPError, ValueError) as e:
        logger.error("[Books] Aladin request failed: query=%s type=%s error=%s", query, query_type, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Book search service returned an error"
        ) from e


@router.get("/search", response_model=BookSearchResponse)
def search_books(
    query: str = Query(..., min_length=1),
    search_type: Literal["title", "author", "isbn"] = Query("title"),
    max_results: int = Query(10, ge=1)
):
    data = _search(query, QUERY_TYPES[search_type], min(max_results, MAX_SEARCH_RESULTS))

    items = data.get("item") or []
    books = [to_book(item) for item in items]
    return BookSearchResponse(books=books, total_results=data.get("totalResults") or len(books))


@router.get("/{isbn}", response_model=BookOut)
def get_book(isbn: str):
    data = _search(isbn, QUERY_TYPES["isbn"], 1)

    items = data.get("item") or []
    if not items:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return to_book(items[0])
