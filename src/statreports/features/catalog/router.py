"""API route for the report catalog."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from ..auth.models import User as AuthUser
from ..auth.security import get_current_active_user
from . import service as catalog_service
from .schemas import CatalogResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/catalog",
    tags=["Catalog"],
)

@router.get("", response_model=CatalogResponse)
async def get_catalog(
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
):
    """Lists the products, companies, countries and datasets available for reports."""
    return await catalog_service.get_catalog(current_user=current_user)
