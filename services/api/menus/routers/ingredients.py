"""Ingredients API router.

Editing an ingredient outside a recipe context: a shared ingredient is copied
into the household and the household's own recipes are repointed at the copy.
Recipes the household only subscribes to keep the original.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import atomic, get_db
from ..deps import get_household
from ..models import Household, Ingredient
from ..schemas import CanEditOut, IngredientEditOut, IngredientOut, IngredientPatch
from ..services.cascade import copy_ingredient_for_edit
from ..services.copier import relink_ingredient_in_household_recipes
from ..services.exceptions import AccessDenied, NotFound
from ..services.membership import can_access_ingredient
from ..services.ownership import EntityType, can_edit_resource

router = APIRouter()
logger = logging.getLogger("menus.ingredients")


@router.get("/{ingredient_id}", response_model=IngredientOut)
def get_ingredient(
    ingredient_id: int,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    ingredient = db.get(Ingredient, ingredient_id)
    if ingredient is None:
        raise NotFound(EntityType.INGREDIENT.value, ingredient_id)
    if not ingredient.public and not can_access_ingredient(db, ingredient.id, household.id):
        raise AccessDenied("Ingredient not accessible")
    return ingredient


@router.get("/{ingredient_id}/can-edit", response_model=CanEditOut)
def can_edit_ingredient(
    ingredient_id: int,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Whether the household may edit the ingredient in place (without copying)."""
    return CanEditOut(can_edit=can_edit_resource(db, household.id, EntityType.INGREDIENT, ingredient_id))


@router.patch("/{ingredient_id}", response_model=IngredientEditOut)
def update_ingredient(
    ingredient_id: int,
    patch: IngredientPatch,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    with atomic(db):
        result = copy_ingredient_for_edit(db, ingredient_id, household.id)
        relinked = 0
        if result.copied:
            relinked = relink_ingredient_in_household_recipes(db, household.id, ingredient_id, result.new_id)
            logger.info(
                f"Household {household.id} copied ingredient {ingredient_id} -> {result.new_id}, "
                f"relinked {relinked} recipe ingredients"
            )

        ingredient = db.get(Ingredient, result.new_id)
        for field, value in patch.model_dump(exclude_unset=True).items():
            setattr(ingredient, field, value)

    ingredient = db.get(Ingredient, result.new_id)
    return IngredientEditOut(
        ingredient=IngredientOut.model_validate(ingredient),
        copied=result.copied,
        relinked_recipe_ingredients=relinked,
    )
