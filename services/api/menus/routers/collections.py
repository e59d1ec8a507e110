"""Collections API router.

Endpoints:
- GET /api/collections - Collections the household owns or subscribes to
- GET /api/collections/{id} - Collection with its recipes
- PATCH /api/collections/{id} - Update an owned collection
- POST /api/collections/{id}/copy - Take a private copy of a readable collection
- POST /api/collections/{id}/toggle-subscription - Subscribe / unsubscribe
- DELETE /api/collections/{id}/recipes/{recipe_id} - Remove a recipe from an owned collection
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..db import atomic, get_db
from ..deps import get_household
from ..models import Collection, CollectionRecipe, Household
from ..schemas import (
    CollectionDetailOut,
    CollectionEditOut,
    CollectionOut,
    CollectionPatch,
    ForkInfo,
    RecipeListOut,
    SubscriptionToggleOut,
)
from ..services import subscriptions
from ..services.cascade import COLLECTION_COPIED, copy_collection_for_household
from ..services.exceptions import AccessDenied, NotFound
from ..services.membership import require_collection_access
from ..services.ownership import EntityType, can_edit_resource

router = APIRouter()
logger = logging.getLogger("menus.collections")


def _collection_to_out(collection: Collection, access) -> CollectionOut:
    out = CollectionOut.model_validate(collection)
    out.access = access
    return out


def _get_collection(db: Session, collection_id: int) -> Collection:
    collection = db.get(Collection, collection_id)
    if collection is None:
        raise NotFound(EntityType.COLLECTION.value, collection_id)
    return collection


@router.get("/collections", response_model=List[CollectionOut])
def list_collections(
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """List owned collections followed by subscribed ones."""
    subscribed = subscriptions.subscribed_collection_ids(db, household.id)
    rows = db.scalars(
        select(Collection)
        .where(
            Collection.archived.is_(False),
            or_(Collection.household_id == household.id, Collection.id.in_(subscribed)),
        )
        .order_by(Collection.title, Collection.id)
    ).all()

    owned = [_collection_to_out(c, "owned") for c in rows if c.household_id == household.id]
    shared = [_collection_to_out(c, "subscribed") for c in rows if c.household_id != household.id]
    return owned + shared


@router.get("/collections/{collection_id}", response_model=CollectionDetailOut)
def get_collection(
    collection_id: int,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    collection = _get_collection(db, collection_id)
    access = require_collection_access(db, collection.id, household.id)

    out = CollectionDetailOut.model_validate(collection)
    out.access = access
    out.recipes = [RecipeListOut.model_validate(link.recipe) for link in collection.recipe_links]
    return out


@router.patch("/collections/{collection_id}", response_model=CollectionOut)
def update_collection(
    collection_id: int,
    patch: CollectionPatch,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Update collection fields. Shared collections must be copied first."""
    collection = _get_collection(db, collection_id)
    if not can_edit_resource(db, household.id, EntityType.COLLECTION, collection.id):
        raise AccessDenied("You can only edit collections owned by your household")

    with atomic(db):
        for field, value in patch.model_dump(exclude_unset=True).items():
            setattr(collection, field, value)

    db.refresh(collection)
    return _collection_to_out(collection, "owned")


@router.post("/collections/{collection_id}/copy", response_model=CollectionEditOut)
def copy_collection(
    collection_id: int,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Copy a subscribed or public collection into the household.

    The copy links the same recipes; they are forked later, one by one, when
    edited. Copying a collection the household already owns is a no-op.
    """
    with atomic(db):
        result = copy_collection_for_household(db, collection_id, household.id)

    collection = db.get(Collection, result.new_id)
    fork = ForkInfo()
    if result.copied:
        fork = ForkInfo(
            actions_taken=[COLLECTION_COPIED],
            redirect_needed=True,
            new_collection_id=collection.id,
            new_collection_slug=collection.url_slug,
        )
    return CollectionEditOut(collection=_collection_to_out(collection, "owned"), fork=fork)


@router.post("/collections/{collection_id}/toggle-subscription", response_model=SubscriptionToggleOut)
def toggle_subscription(
    collection_id: int,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    with atomic(db):
        if subscriptions.is_subscribed(db, household.id, collection_id):
            subscriptions.unsubscribe(db, household.id, collection_id)
            action, subscribed = "unsubscribed", False
        else:
            subscriptions.subscribe(db, household.id, collection_id)
            action, subscribed = "subscribed", True

    logger.info(f"Household {household.id} {action} collection {collection_id}")
    return SubscriptionToggleOut(action=action, subscribed=subscribed)


@router.delete("/collections/{collection_id}/recipes/{recipe_id}", status_code=204)
def remove_recipe_from_collection(
    collection_id: int,
    recipe_id: int,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Unlink a recipe from an owned collection. The recipe itself is kept."""
    collection = _get_collection(db, collection_id)
    if collection.household_id != household.id:
        raise AccessDenied("You can only remove recipes from collections owned by your household")

    link = db.get(CollectionRecipe, (collection_id, recipe_id))
    if link is None:
        raise NotFound(EntityType.COLLECTION_RECIPE.value, recipe_id)

    with atomic(db):
        db.delete(link)

    return Response(status_code=204)
