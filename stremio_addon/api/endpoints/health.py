"""
Health Check Endpoint
"""
import logging

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.api_route("/health", methods=["GET", "HEAD"], response_class=PlainTextResponse)
async def health_check():
    """Health check endpoint for monitoring"""
    logger.debug("healthHandler called")
    return "OK"
