"""System health and policy endpoints."""

import logging

from fastapi import APIRouter

from web.endpoints.rooms import get_room_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    engine = get_room_engine()
    return {"isAlive": True, "rooms": len(engine.registry), "evaluator": engine.evaluator.name}


@router.get("/policies")
async def get_policies():
    """Default policy entries applied to rooms created without their own."""
    engine = get_room_engine()
    moderation = engine.config.moderation
    return {
        "enabled": moderation.enabled,
        "policies": [entry.model_dump() for entry in moderation.policies],
        "contestableCategories": engine.config.motion.contestable_categories,
    }
