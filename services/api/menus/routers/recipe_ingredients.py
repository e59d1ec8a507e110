"""Recipe ingredient rows, edited in the context of a collection.

Every mutation here runs the cascade first, so a household editing a shared
recipe gets its own copy (and a copy of the collection when that is shared too).
The client keeps sending the row ids it saw on the original recipe; they are
mapped onto the fork through ``parent_id``.

Endpoints:
- POST   .../ingredients - Add an ingredient row (Idempotency-Key required)
- PUT    .../ingredients/{recipe_ingredient_id} - Change quantity / measure
- DELETE .../ingredients/{recipe_ingredient_id} - Remove an ingredient row
- PATCH  .../ingredients/{recipe_ingredient_id}/ingredient - Edit the ingredient itself
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..db import atomic, get_db
from ..deps import get_household
from ..infra.idempotency import idempotency_clear_key, idempotency_precheck, idempotency_store_result
from ..models import Household, Ingredient, RecipeIngredient
from ..schemas import (
    IngredientOut,
    IngredientPatch,
    RecipeIngredientCreate,
    RecipeIngredientEditOut,
    RecipeIngredientIngredientEditOut,
    RecipeIngredientUpdate,
)
from ..services.cascade import (
    cascade_copy_ingredient_with_context,
    cascade_copy_with_context,
    resolve_recipe_ingredient,
)
from ..services.exceptions import AccessDenied, NotFound
from ..services.membership import can_access_ingredient
from ..services.ownership import EntityType
from .common import fork_info, recipe_ingredient_to_out

router = APIRouter(prefix="/collections/{collection_id}/recipes/{recipe_id}/ingredients")
logger = logging.getLogger("menus.recipe_ingredients")


@router.post("", response_model=RecipeIngredientEditOut, status_code=201)
async def add_recipe_ingredient(
    collection_id: int,
    recipe_id: int,
    request: Request,
    payload: RecipeIngredientCreate,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Add an ingredient row to the recipe."""
    pre = await idempotency_precheck(request, household_id=household.id, route_key="recipe_ingredient_add")
    if isinstance(pre, JSONResponse):
        return pre
    redis_key, req_hash, _ = pre

    try:
        with atomic(db):
            ingredient = db.get(Ingredient, payload.ingredient_id)
            if ingredient is None:
                raise NotFound(EntityType.INGREDIENT.value, payload.ingredient_id)
            if not can_access_ingredient(db, ingredient.id, household.id) and not ingredient.public:
                raise AccessDenied("Ingredient not accessible")

            result = cascade_copy_with_context(db, household.id, collection_id, recipe_id)
            link = RecipeIngredient(recipe_id=result.new_recipe_id, **payload.model_dump())
            db.add(link)
            db.flush()
            link_id = link.id

        resp = RecipeIngredientEditOut(
            recipe_ingredient=recipe_ingredient_to_out(db.get(RecipeIngredient, link_id)),
            fork=fork_info(db, result),
        )
        await idempotency_store_result(redis_key, req_hash, status=201, body=resp.model_dump(mode="json"))
        return resp
    except Exception:
        await idempotency_clear_key(redis_key)
        raise


@router.put("/{recipe_ingredient_id}", response_model=RecipeIngredientEditOut)
def update_recipe_ingredient(
    collection_id: int,
    recipe_id: int,
    recipe_ingredient_id: int,
    payload: RecipeIngredientUpdate,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Change the quantity of an ingredient row."""
    with atomic(db):
        result = cascade_copy_with_context(db, household.id, collection_id, recipe_id)
        link = resolve_recipe_ingredient(db, result, recipe_ingredient_id)
        link.quantity = payload.quantity
        link.quantity4 = payload.quantity4
        link.measure_id = payload.measure_id
        link_id = link.id

    return RecipeIngredientEditOut(
        recipe_ingredient=recipe_ingredient_to_out(db.get(RecipeIngredient, link_id)),
        fork=fork_info(db, result),
    )


@router.delete("/{recipe_ingredient_id}", response_model=RecipeIngredientEditOut)
def delete_recipe_ingredient(
    collection_id: int,
    recipe_id: int,
    recipe_ingredient_id: int,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Remove an ingredient row. The ingredient itself is kept."""
    with atomic(db):
        result = cascade_copy_with_context(db, household.id, collection_id, recipe_id)
        link = resolve_recipe_ingredient(db, result, recipe_ingredient_id)
        db.delete(link)

    return RecipeIngredientEditOut(recipe_ingredient=None, fork=fork_info(db, result))


@router.patch("/{recipe_ingredient_id}/ingredient", response_model=RecipeIngredientIngredientEditOut)
def update_recipe_ingredient_ingredient(
    collection_id: int,
    recipe_id: int,
    recipe_ingredient_id: int,
    patch: IngredientPatch,
    db: Session = Depends(get_db),
    household: Household = Depends(get_household),
):
    """Edit the ingredient behind a recipe ingredient row.

    Forks as far down as needed: collection, recipe, then the ingredient, and
    points the row on the (possibly new) recipe at the (possibly new) ingredient.
    """
    seen = db.get(RecipeIngredient, recipe_ingredient_id)
    if seen is None:
        raise NotFound(EntityType.RECIPE_INGREDIENT.value, recipe_ingredient_id)
    if seen.recipe_id != recipe_id:
        raise AccessDenied("Ingredient row does not belong to this recipe")

    with atomic(db):
        result = cascade_copy_ingredient_with_context(
            db, household.id, collection_id, recipe_id, seen.ingredient_id
        )
        link = resolve_recipe_ingredient(db, result, recipe_ingredient_id)
        if link.ingredient_id != result.new_ingredient_id:
            link.ingredient_id = result.new_ingredient_id

        ingredient = db.get(Ingredient, result.new_ingredient_id)
        for field, value in patch.model_dump(exclude_unset=True).items():
            setattr(ingredient, field, value)
        link_id = link.id

    link = db.get(RecipeIngredient, link_id)
    return RecipeIngredientIngredientEditOut(
        recipe_ingredient=recipe_ingredient_to_out(link),
        ingredient=IngredientOut.model_validate(db.get(Ingredient, result.new_ingredient_id)),
        fork=fork_info(db, result),
    )
