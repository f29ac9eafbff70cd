from fastapi import APIRouter

router = APIRouter()


@router.get("/")
@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}
