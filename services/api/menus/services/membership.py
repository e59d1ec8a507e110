"""Tenant-isolation gate run before any forking decision.

A household may only fork a recipe it has a legitimate path to: the recipe must
sit in a collection the household can read (owned, subscribed, or public when
public collections are readable).
"""

import logging
from typing import Literal, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import (
    Collection,
    CollectionRecipe,
    CollectionSubscription,
    Ingredient,
    Recipe,
    RecipeIngredient,
)
from ..settings import settings
from .exceptions import AccessDenied

logger = logging.getLogger("menus.membership")

AccessLevel = Literal["owned", "subscribed", "public"]


def collection_access_level(db: Session, collection_id: int, household_id: int) -> Optional[AccessLevel]:
    """Return how the household can see the collection, or None if it cannot."""
    row = db.execute(
        select(Collection.household_id, Collection.public, CollectionSubscription.household_id)
        .outerjoin(
            CollectionSubscription,
            (CollectionSubscription.collection_id == Collection.id)
            & (CollectionSubscription.household_id == household_id),
        )
        .where(Collection.id == collection_id)
    ).first()

    if row is None:
        return None

    owner_id, is_public, subscriber_id = row
    if owner_id == household_id:
        return "owned"
    if subscriber_id is not None:
        return "subscribed"
    if is_public and settings.public_collections_readable:
        return "public"
    return None


def validate_household_collection_access(db: Session, collection_id: int, household_id: int) -> bool:
    return collection_access_level(db, collection_id, household_id) is not None


def validate_recipe_in_collection(db: Session, recipe_id: int, collection_id: int, household_id: int) -> bool:
    """True if the recipe is linked into a collection the household can read.

    Collection access is checked first so that link rows inside other
    households' private collections are never probed.
    """
    if not validate_household_collection_access(db, collection_id, household_id):
        return False

    link = db.scalar(
        select(CollectionRecipe.recipe_id).where(
            CollectionRecipe.collection_id == collection_id,
            CollectionRecipe.recipe_id == recipe_id,
        )
    )
    return link is not None


def require_recipe_in_collection(db: Session, recipe_id: int, collection_id: int, household_id: int) -> None:
    if not validate_recipe_in_collection(db, recipe_id, collection_id, household_id):
        logger.warning(
            f"Household {household_id} refused: recipe {recipe_id} not reachable via collection {collection_id}"
        )
        raise AccessDenied("Recipe not found in an accessible collection")


def require_collection_access(db: Session, collection_id: int, household_id: int) -> AccessLevel:
    level = collection_access_level(db, collection_id, household_id)
    if level is None:
        raise AccessDenied("Collection not accessible")
    return level


def _visible_collection_ids(household_id: int):
    """Subquery of collection ids the household can read."""
    subscribed = select(CollectionSubscription.collection_id).where(
        CollectionSubscription.household_id == household_id
    )
    visible = (Collection.household_id == household_id) | Collection.id.in_(subscribed)
    if settings.public_collections_readable:
        visible = visible | Collection.public.is_(True)
    return select(Collection.id).where(visible)


def can_access_recipe(db: Session, recipe_id: int, household_id: int) -> bool:
    """True if the household owns the recipe or can read a collection containing it."""
    owner = db.scalar(select(Recipe.household_id).where(Recipe.id == recipe_id))
    if owner is None:
        return False
    if owner == household_id:
        return True

    link = db.scalar(
        select(CollectionRecipe.collection_id)
        .where(
            CollectionRecipe.recipe_id == recipe_id,
            CollectionRecipe.collection_id.in_(_visible_collection_ids(household_id)),
        )
        .limit(1)
    )
    return link is not None


def can_access_ingredient(db: Session, ingredient_id: int, household_id: int) -> bool:
    """True if the household owns the ingredient or can read a recipe that uses it."""
    owner = db.scalar(select(Ingredient.household_id).where(Ingredient.id == ingredient_id))
    if owner is None:
        return False
    if owner == household_id:
        return True

    readable_recipes = select(Recipe.id).where(Recipe.household_id == household_id).union(
        select(CollectionRecipe.recipe_id).where(
            CollectionRecipe.collection_id.in_(_visible_collection_ids(household_id))
        )
    )
    usage = db.scalar(
        select(RecipeIngredient.id)
        .where(
            RecipeIngredient.ingredient_id == ingredient_id,
            RecipeIngredient.recipe_id.in_(readable_recipes),
        )
        .limit(1)
    )
    return usage is not None
