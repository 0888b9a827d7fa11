import os

from fastapi import APIRouter

from zaffa import __version__

router = APIRouter()


@router.get("/meta")
async def meta():
    return {"service": "Zaffa", "api": "v1", "version": __version__, "status": "ok"}


_env = os.getenv("ZAFFA_ENV", "dev").strip().lower()
_enable_test_routes = _env != "prod"


if _enable_test_routes:
    @router.get("/_test/validation")
    async def validation_test(value: int):
        return {"received": value}

    @router.get("/_test/crash")
    async def crash_test():
        raise RuntimeError("boom")
