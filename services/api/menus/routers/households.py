from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from ..db import get_db
from ..deps import get_household
from ..models import Household
from ..schemas import HouseholdCreate, HouseholdOut

router = APIRouter(prefix="/households", tags=["households"])


@router.get("/", response_model=List[HouseholdOut])
def list_households(db: Session = Depends(get_db)):
    """List all households sorted by creation date."""
    return db.query(Household).order_by(Household.created_at, Household.id).all()


@router.post("/", response_model=HouseholdOut, status_code=201)
def create_household(
    data: HouseholdCreate,
    db: Session = Depends(get_db)
):
    """Create a new household."""
    household = Household(name=data.name.strip())

    try:
        db.add(household)
        db.commit()
        db.refresh(household)
        return household
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Could not create household")


@router.get("/me", response_model=HouseholdOut)
def get_current_household(household: Household = Depends(get_household)):
    """Return the household resolved for this request."""
    return household
