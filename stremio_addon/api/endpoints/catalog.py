"""
Catalog Endpoint
Returns catalogs from the registered catalog handlers
"""
from fastapi import APIRouter, Path, Request

router = APIRouter()


@router.api_route("/catalog/{type}/{id}.json", methods=["GET", "HEAD"])
@router.api_route("/{user_data}/catalog/{type}/{id}.json", methods=["GET", "HEAD"])
async def get_catalog(
    request: Request,
    type: str = Path(..., description="Content type, e.g. movie or series"),
    id: str = Path(..., description="Catalog ID as declared in the manifest"),
):
    """
    Return catalog as {"metas": [...]}

    Args:
        type: Media type the catalog handler is registered for
        id: Catalog identifier
    """
    return await request.app.state.catalog.dispatch(request, type)
