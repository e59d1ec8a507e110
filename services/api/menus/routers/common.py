"""Helpers shared by the routers that may fork on write."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models import Collection, Recipe, RecipeIngredient
from ..schemas import ForkInfo, RecipeIngredientOut, RecipeOut
from ..services.cascade import CascadeIngredientResult, CascadeResult
from ..services.ownership import EntityType, can_edit_resource


def recipe_url(collection: Collection, recipe: Recipe) -> str:
    return f"/recipes/{collection.id}-{collection.url_slug}/{recipe.id}-{recipe.url_slug}"


def fork_info(db: Session, result: Optional[CascadeResult]) -> ForkInfo:
    """Build the fork report for a response. ``None`` means nothing was forked."""
    if result is None:
        return ForkInfo()

    info = ForkInfo(
        actions_taken=result.actions_taken,
        redirect_needed=result.redirect_needed,
        new_collection_id=result.new_collection_id,
        new_recipe_id=result.new_recipe_id,
        new_collection_slug=result.new_collection_slug,
        new_recipe_slug=result.new_recipe_slug,
    )
    if isinstance(result, CascadeIngredientResult):
        info.new_ingredient_id = result.new_ingredient_id

    if result.redirect_needed:
        collection = db.get(Collection, result.new_collection_id)
        recipe = db.get(Recipe, result.new_recipe_id)
        info.redirect_url = recipe_url(collection, recipe)
    return info


def recipe_ingredient_to_out(link: RecipeIngredient) -> RecipeIngredientOut:
    return RecipeIngredientOut(
        id=link.id,
        recipe_id=link.recipe_id,
        ingredient_id=link.ingredient_id,
        ingredient_name=link.ingredient.name if link.ingredient else None,
        quantity=link.quantity,
        quantity4=link.quantity4,
        measure_id=link.measure_id,
        preparation_id=link.preparation_id,
        primary_ingredient=link.primary_ingredient,
    )


def recipe_to_out(db: Session, recipe: Recipe, household_id: int) -> RecipeOut:
    """Convert Recipe model to RecipeOut with its ingredient rows."""
    return RecipeOut(
        id=recipe.id,
        household_id=recipe.household_id,
        name=recipe.name,
        url_slug=recipe.url_slug,
        image_filename=recipe.image_filename,
        archived=recipe.archived,
        parent_id=recipe.parent_id,
        description=recipe.description,
        prep_time=recipe.prep_time,
        cook_time=recipe.cook_time,
        season_id=recipe.season_id,
        primary_type_id=recipe.primary_type_id,
        secondary_type_id=recipe.secondary_type_id,
        pdf_filename=recipe.pdf_filename,
        ingredients=[recipe_ingredient_to_out(link) for link in recipe.ingredients],
        can_edit=can_edit_resource(db, household_id, EntityType.RECIPE, recipe.id),
    )
