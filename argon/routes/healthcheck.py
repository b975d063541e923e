from fastapi import APIRouter, Request, Response
from sqlalchemy import text

router = APIRouter()


@router.get("/healthcheck")
async def healthcheck(request: Request) -> Response:
    db = request.state.db
    await db.execute(text("SELECT 1"))
    return {"status": "ok"}
