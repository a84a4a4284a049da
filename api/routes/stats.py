"""
Public statistics and search suggestion endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_catalog_service
from library.catalog import CatalogService
from library.models import BookSuggestion, LibraryStats

router = APIRouter(prefix="/api", tags=["Statistics"])


@router.get("/stats", response_model=LibraryStats)
async def get_stats(catalog: CatalogService = Depends(get_catalog_service)):
    """Counts, language and category breakdowns, recent and popular books."""
    return await catalog.get_stats()


@router.get("/search/suggestions", response_model=List[BookSuggestion])
async def search_suggestions(
    q: Optional[str] = None,
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Up to five title/author matches; empty for queries under two characters."""
    return await catalog.search_suggestions(q)
