"""FastAPI dependencies for the menus API.

Provides:
- Database session dependency
- Household resolution (header → env)

Authentication happens upstream; the gateway forwards the authenticated
household in ``X-Household-Id`` and this service trusts it as given.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .db import get_db
from .models import Household
from .settings import settings


def get_household(
    db: Session = Depends(get_db),
    x_household_id: Optional[str] = Header(None, alias="X-Household-Id"),
) -> Household:
    """Resolve the requesting household.

    Resolution order:
    1. X-Household-Id header (if present):
       - Must be an integer id of an existing household
       - If not found -> 404 (Strict validation)

    2. settings.default_household_id (local development only)

    Returns:
        Household object

    Raises:
        HTTPException 401 if no household was supplied, 404 if it does not exist
    """
    household_id: Optional[int] = None

    # 1. Try header (Strict)
    if x_household_id:
        try:
            household_id = int(x_household_id)
        except ValueError:
            raise HTTPException(status_code=404, detail=f"Household '{x_household_id}' not found")

        household = db.get(Household, household_id)
        if household:
            return household

        # A header that names nothing must never fall back to the default household
        raise HTTPException(status_code=404, detail=f"Household '{x_household_id}' not found")

    # 2. Dev fallback
    if settings.default_household_id is not None:
        household = db.get(Household, settings.default_household_id)
        if household:
            return household

    raise HTTPException(status_code=401, detail="X-Household-Id header required")
