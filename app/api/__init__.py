"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import documents, exports, formats

router = APIRouter()

# Format registry listing
router.include_router(formats.router, tags=["formats"])

# Chat turns and conversation exports
router.include_router(exports.router, tags=["exports"])

# Uploaded document modification
router.include_router(documents.router, tags=["documents"])
