"""
Root Endpoint
Redirects visitors of "/" to the addon's website
"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/")
async def redirect_root(request: Request):
    redirect_url = request.app.state.addon.options.redirect_url
    logger.debug(f"Responding with redirect to {redirect_url}")
    return RedirectResponse(redirect_url, status_code=301)
