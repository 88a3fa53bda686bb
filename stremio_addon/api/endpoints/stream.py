"""
Stream Endpoint
Returns streams from the registered stream handlers
"""
from fastapi import APIRouter, Path, Request

router = APIRouter()


@router.api_route("/stream/{type}/{id}.json", methods=["GET", "HEAD"])
@router.api_route("/{user_data}/stream/{type}/{id}.json", methods=["GET", "HEAD"])
async def get_streams(
    request: Request,
    type: str = Path(..., description="Content type, e.g. movie or series"),
    id: str = Path(..., description="Media ID, e.g. tt1254207 or tt0903747:1:1"),
):
    """Return streams as {"streams": [...]}"""
    return await request.app.state.stream.dispatch(request, type)
