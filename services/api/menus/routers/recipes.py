"""Recipes API router.

Recipes are addressed through the collection they are viewed in, because that
collection decides how a shared recipe gets forked on edit.

Endpoints:
- GET /api/collections/{collection_id}/recipes/{recipe_id} - Recipe with ingredients
- PATCH /api/collections/{collection_id}/recipes/{recipe_id} - Update recipe details
- DELETE /api/recipes/{recipe_id} - Delete an owned recipe, or unlink a shared one
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import atomic, get_db
from ..deps import get_household
from ..models import Collection, CollectionRecipe, Household, Recipe
from ..schemas import RecipeDeleteOut, RecipeEditOut, RecipeOut, RecipePatch
from ..services.cascade import cascade_copy_with_context
from ..services.cleanup import cleanup_after_recipe_delete
from ..services.exceptions import AccessDenied, NotFound
from ..services.membership import require_recipe_in_collection
from ..services.ownership import EntityType
from .common import fork_info, recipe_to_out

router = APIRouter()
logger = logging.getLogger("menus.recipes")


def _get_recipe(db: Session, recipe_id: int) -> Recipe:
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFound(EntityType.RECIPE.value, recipe_id)
    return recipe


@router.get("/collections/{collection_id}/recipes/{recipe_id}", response_model=RecipeOut)
def get_recipe(
    collection_id: int,
    recipe_id: int,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    recipe = _get_recipe(db, recipe_id)
    require_recipe_in_collection(db, recipe.id, collection_id, household.id)
    return recipe_to_out(db, recipe, household.id)


@router.patch("/collections/{collection_id}/recipes/{recipe_id}", response_model=RecipeEditOut)
def update_recipe(
    collection_id: int,
    recipe_id: int,
    patch: RecipePatch,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Update recipe details, forking the recipe (and collection) if shared."""
    with atomic(db):
        result = cascade_copy_with_context(db, household.id, collection_id, recipe_id)
        recipe = db.get(Recipe, result.new_recipe_id)
        for field, value in patch.model_dump(exclude_unset=True).items():
            setattr(recipe, field, value)

    recipe = db.get(Recipe, result.new_recipe_id)
    return RecipeEditOut(recipe=recipe_to_out(db, recipe, household.id), fork=fork_info(db, result))


@router.delete("/recipes/{recipe_id}", response_model=RecipeDeleteOut)
def delete_recipe(
    recipe_id: int,
    collection_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Delete a recipe the household owns, or take a shared one out of a collection.

    Deleting an owned recipe also removes its ingredient rows and any of the
    household's ingredients nothing uses any more. A shared recipe is never
    deleted; with ``collection_id`` naming an owned collection, it is unlinked
    from that collection instead.
    """
    recipe = _get_recipe(db, recipe_id)

    if recipe.household_id == household.id:
        with atomic(db):
            cleanup = cleanup_after_recipe_delete(db, recipe.id, household.id)
            db.delete(recipe)
        logger.info(f"Household {household.id} deleted recipe {recipe_id}")
        return RecipeDeleteOut(
            deleted=True,
            deleted_orphaned_ingredients=cleanup["deleted_orphaned_ingredients"],
        )

    if collection_id is None:
        raise AccessDenied("You can only delete recipes owned by your household")

    collection = db.get(Collection, collection_id)
    if collection is None or collection.household_id != household.id:
        raise AccessDenied("You can only remove recipes from collections owned by your household")

    link = db.get(CollectionRecipe, (collection_id, recipe_id))
    if link is None:
        raise NotFound(EntityType.COLLECTION_RECIPE.value, recipe_id)

    with atomic(db):
        db.delete(link)
    logger.info(f"Household {household.id} removed shared recipe {recipe_id} from collection {collection_id}")
    return RecipeDeleteOut(removed_from_collection=True, collection_id=collection_id)
