# Household Menus API Main Entry Point
import logging
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from .settings import settings
from .services.exceptions import AccessDenied, ConsistencyViolation, CopyFailure, NotFound
from .routers.ready import router as ready_router
from .routers.households import router as households_router
from .routers.collections import router as collections_router
from .routers.recipes import router as recipes_router
from .routers.recipe_ingredients import router as recipe_ingredients_router
from .routers.ingredients import router as ingredients_router

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("menus")

# Rate limiter (per-IP)
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit_default])

app = FastAPI(title="Household Menus API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Fork error mapping ---
# Handlers only shape the response; the transaction was already rolled back
# by the route's atomic block.

@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc), "code": "NOT_FOUND"})


@app.exception_handler(AccessDenied)
async def access_denied_handler(request: Request, exc: AccessDenied):
    return JSONResponse(status_code=403, content={"detail": exc.message, "code": "ACCESS_DENIED"})


@app.exception_handler(CopyFailure)
async def copy_failure_handler(request: Request, exc: CopyFailure):
    logger.error(f"Copy failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Failed to copy resource", "code": "COPY_FAILED"})


@app.exception_handler(ConsistencyViolation)
async def consistency_handler(request: Request, exc: ConsistencyViolation):
    logger.error(f"Consistency violation on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal consistency error", "code": "CONSISTENCY_VIOLATION"})


app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(households_router, prefix="/api", tags=["households"])
app.include_router(collections_router, prefix="/api", tags=["collections"])
app.include_router(recipes_router, prefix="/api", tags=["recipes"])
app.include_router(recipe_ingredients_router, prefix="/api", tags=["recipe-ingredients"])
app.include_router(ingredients_router, prefix="/api/ingredients", tags=["ingredients"])
