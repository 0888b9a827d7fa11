from fastapi import APIRouter

from zaffa.api.v1.routes import (
    activity as activity_routes,
    analyses as analyses_routes,
    auth as auth_routes,
    categories as categories_routes,
    households as households_routes,
    imports as imports_routes,
    invitations as invitations_routes,
    items as items_routes,
    me as me_routes,
    meta as meta_routes,
    observability as observability_routes,
)

api_v1_router = APIRouter()

api_v1_router.include_router(meta_routes.router, tags=["meta"])
api_v1_router.include_router(auth_routes.router, prefix="/auth", tags=["auth"])
api_v1_router.include_router(me_routes.router, tags=["profile"])
api_v1_router.include_router(households_routes.router, tags=["households"])
api_v1_router.include_router(invitations_routes.router, tags=["invitations"])
api_v1_router.include_router(categories_routes.router, tags=["categories"])
api_v1_router.include_router(items_routes.router, tags=["items"])
api_v1_router.include_router(analyses_routes.router, tags=["analyses"])
api_v1_router.include_router(imports_routes.router, tags=["import"])
api_v1_router.include_router(activity_routes.router, tags=["activity"])
api_v1_router.include_router(observability_routes.router, tags=["observability"])
