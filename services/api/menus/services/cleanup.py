import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..models import Ingredient, Recipe, RecipeIngredient

logger = logging.getLogger("menus.cleanup")


def delete_recipe_ingredients(db: Session, recipe_id: int) -> int:
    rows = db.scalars(select(RecipeIngredient).where(RecipeIngredient.recipe_id == recipe_id)).all()
    for row in rows:
        db.delete(row)
    db.flush()
    return len(rows)


def delete_orphaned_ingredients(
    db: Session, household_id: int, exclude_recipe_id: Optional[int] = None
) -> list[int]:
    """Delete the household's ingredients that none of its recipes use any more.

    Recipes of other households may still reference them through links they
    own; those links keep the ingredient alive. ``exclude_recipe_id`` treats a
    recipe that is about to disappear as already gone.
    """
    in_use = select(RecipeIngredient.ingredient_id).join(Recipe, Recipe.id == RecipeIngredient.recipe_id)
    if exclude_recipe_id is not None:
        in_use = in_use.where(Recipe.id != exclude_recipe_id)

    candidates = db.scalars(
        select(Ingredient.id).where(
            Ingredient.household_id == household_id,
            Ingredient.id.not_in(in_use),
        )
    ).all()

    if candidates:
        db.execute(
            delete(Ingredient)
            .where(Ingredient.id.in_(candidates))
            .execution_options(synchronize_session="fetch")
        )
        logger.info(f"Deleted {len(candidates)} orphaned ingredients for household {household_id}")
    return list(candidates)


def cleanup_after_recipe_delete(db: Session, recipe_id: int, household_id: int) -> dict:
    """Remove a deleted recipe's ingredient rows and any ingredients left unused."""
    deleted_rows = delete_recipe_ingredients(db, recipe_id)
    orphaned = delete_orphaned_ingredients(db, household_id, exclude_recipe_id=recipe_id)
    return {
        "deleted_recipe_ingredients": deleted_rows,
        "deleted_orphaned_ingredients": orphaned,
    }
