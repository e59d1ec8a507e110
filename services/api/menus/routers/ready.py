import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..db import get_db
from ..infra.redis_client import get_redis

router = APIRouter()
logger = logging.getLogger("menus.ready")


@router.get("/ready")
async def ready(db: Session = Depends(get_db)):
    redis_ok = False
    db_ok = False
    try:
        r = await get_redis()
        await r.ping()
        redis_ok = True
    except Exception as e:
        logger.warning(f"Redis not ready: {e}")
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.warning(f"Database not ready: {e}")
    return {"ok": True, "redis_ok": redis_ok, "db_ok": db_ok}
