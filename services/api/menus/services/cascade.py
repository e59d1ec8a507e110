"""Cascade copy engine: decides which levels of collection -> recipe -> ingredient
must be forked for an edit, forks them in order, and reports what it did.

Rules:
- An owned level is never forked; forking stops at the first owned ancestor.
- A forked collection keeps linking the original recipes, except the recipe
  being edited, which is forked too and relinked inside the new collection.
- Ingredients are forked only when the ingredient itself is edited.
- Each source entity is forked at most once per ``ForkContext``. A context lives
  for one request; nothing is remembered between requests.

All work happens in the caller's session. Nothing here commits: the route
handler applies its edit and commits once, or everything rolls back together.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..models import Collection, CollectionRecipe, CollectionSubscription, Ingredient, Recipe, RecipeIngredient
from . import copier
from .exceptions import AccessDenied, ConsistencyViolation, NotFound
from .membership import (
    can_access_ingredient,
    can_access_recipe,
    require_collection_access,
    require_recipe_in_collection,
)
from .ownership import EntityType

logger = logging.getLogger("menus.cascade")

COLLECTION_COPIED = "collection_copied"
RECIPE_COPIED = "recipe_copied"
INGREDIENT_COPIED = "ingredient_copied"


@dataclass
class ForkContext:
    """Request-scoped record of forks already made, keyed by (type, source id)."""

    household_id: int
    forks: dict[tuple[EntityType, int], int] = field(default_factory=dict)
    actions: list[str] = field(default_factory=list)

    def resolve(self, entity_type: EntityType, entity_id: int) -> int:
        return self.forks.get((entity_type, entity_id), entity_id)

    def record(self, entity_type: EntityType, source_id: int, new_id: int, action: str) -> None:
        self.forks[(entity_type, source_id)] = new_id
        self.actions.append(action)


@dataclass
class CopyResult:
    new_id: int
    copied: bool


@dataclass
class CascadeResult:
    new_collection_id: int
    new_recipe_id: int
    actions_taken: list[str]
    original_collection_id: int
    original_recipe_id: int
    new_collection_slug: Optional[str] = None
    new_recipe_slug: Optional[str] = None

    @property
    def redirect_needed(self) -> bool:
        return len(self.actions_taken) > 0


@dataclass
class CascadeIngredientResult(CascadeResult):
    new_ingredient_id: int = 0
    original_ingredient_id: int = 0


def _context_for(household_id: int, ctx: Optional[ForkContext]) -> ForkContext:
    if ctx is None:
        return ForkContext(household_id=household_id)
    if ctx.household_id != household_id:
        raise ValueError("ForkContext belongs to a different household")
    return ctx


def _get_or_404(db: Session, model, entity_type: EntityType, entity_id: int):
    row = db.get(model, entity_id)
    if row is None:
        raise NotFound(entity_type.value, entity_id)
    return row


def _drop_subscription(db: Session, household_id: int, collection_id: int) -> None:
    # A household never subscribes to a collection it holds a fork of.
    db.execute(
        delete(CollectionSubscription).where(
            CollectionSubscription.household_id == household_id,
            CollectionSubscription.collection_id == collection_id,
        )
    )


def cascade_copy_with_context(
    db: Session,
    household_id: int,
    collection_id: int,
    recipe_id: int,
    ctx: Optional[ForkContext] = None,
) -> CascadeResult:
    """Make the recipe editable by ``household_id`` in the context of a collection.

    Returns the collection/recipe ids to mutate (originals when already owned)
    and the forks performed by this call.
    """
    ctx = _context_for(household_id, ctx)
    target_collection_id = ctx.resolve(EntityType.COLLECTION, collection_id)
    target_recipe_id = ctx.resolve(EntityType.RECIPE, recipe_id)

    collection = _get_or_404(db, Collection, EntityType.COLLECTION, target_collection_id)
    recipe = _get_or_404(db, Recipe, EntityType.RECIPE, target_recipe_id)
    require_recipe_in_collection(db, target_recipe_id, target_collection_id, household_id)

    actions: list[str] = []
    new_collection_slug = None
    new_recipe_slug = None

    if collection.household_id != household_id:
        forked_collection_id = copier.copy_collection(db, collection.id, household_id)
        ctx.record(EntityType.COLLECTION, collection.id, forked_collection_id, COLLECTION_COPIED)
        actions.append(COLLECTION_COPIED)
        _drop_subscription(db, household_id, collection.id)
        target_collection_id = forked_collection_id
        new_collection_slug = db.get(Collection, forked_collection_id).url_slug

    if recipe.household_id != household_id:
        forked_recipe_id = copier.copy_recipe(db, recipe.id, household_id)
        ctx.record(EntityType.RECIPE, recipe.id, forked_recipe_id, RECIPE_COPIED)
        actions.append(RECIPE_COPIED)
        target_recipe_id = forked_recipe_id
        new_recipe_slug = db.get(Recipe, forked_recipe_id).url_slug

    if target_recipe_id != recipe.id:
        copier.relink_collection_recipe(db, target_collection_id, recipe.id, target_recipe_id)

    if actions:
        link = db.get(CollectionRecipe, (target_collection_id, target_recipe_id))
        if link is None:
            logger.error(
                f"Cascade for household {household_id} left collection {target_collection_id} "
                f"without a link to recipe {target_recipe_id}"
            )
            raise ConsistencyViolation(
                f"Collection {target_collection_id} does not link recipe {target_recipe_id} after fork"
            )
        logger.info(
            f"Cascade for household {household_id}: collection {collection_id}->{target_collection_id}, "
            f"recipe {recipe_id}->{target_recipe_id}, actions={actions}"
        )

    return CascadeResult(
        new_collection_id=target_collection_id,
        new_recipe_id=target_recipe_id,
        actions_taken=actions,
        original_collection_id=collection_id,
        original_recipe_id=recipe_id,
        new_collection_slug=new_collection_slug,
        new_recipe_slug=new_recipe_slug,
    )


def cascade_copy_ingredient_with_context(
    db: Session,
    household_id: int,
    collection_id: int,
    recipe_id: int,
    ingredient_id: int,
    ctx: Optional[ForkContext] = None,
) -> CascadeIngredientResult:
    """Full three-level cascade for editing an ingredient used by a recipe.

    The recipe ingredient row on the returned recipe still references the
    original ingredient; the caller repoints it at ``new_ingredient_id``.
    """
    ctx = _context_for(household_id, ctx)
    base = cascade_copy_with_context(db, household_id, collection_id, recipe_id, ctx)

    target_ingredient_id = ctx.resolve(EntityType.INGREDIENT, ingredient_id)
    ingredient = _get_or_404(db, Ingredient, EntityType.INGREDIENT, target_ingredient_id)

    used_by_recipe = db.scalar(
        select(RecipeIngredient.id)
        .where(
            RecipeIngredient.recipe_id.in_([recipe_id, base.new_recipe_id]),
            RecipeIngredient.ingredient_id.in_([ingredient_id, target_ingredient_id]),
        )
        .limit(1)
    )
    if used_by_recipe is None:
        raise AccessDenied("Ingredient is not used by this recipe")

    actions = list(base.actions_taken)
    if ingredient.household_id != household_id:
        forked_ingredient_id = copier.copy_ingredient(db, ingredient.id, household_id)
        ctx.record(EntityType.INGREDIENT, ingredient.id, forked_ingredient_id, INGREDIENT_COPIED)
        actions.append(INGREDIENT_COPIED)
        target_ingredient_id = forked_ingredient_id
        logger.info(
            f"Household {household_id} forked ingredient {ingredient_id} -> {forked_ingredient_id}"
        )

    return CascadeIngredientResult(
        new_collection_id=base.new_collection_id,
        new_recipe_id=base.new_recipe_id,
        actions_taken=actions,
        original_collection_id=collection_id,
        original_recipe_id=recipe_id,
        new_collection_slug=base.new_collection_slug,
        new_recipe_slug=base.new_recipe_slug,
        new_ingredient_id=target_ingredient_id,
        original_ingredient_id=ingredient_id,
    )


def copy_ingredient_for_edit(
    db: Session,
    ingredient_id: int,
    household_id: int,
    ctx: Optional[ForkContext] = None,
) -> CopyResult:
    """Fork only the ingredient, for a household that already owns the recipe.

    Whether to repoint recipe ingredient rows is left to the caller.
    """
    ctx = _context_for(household_id, ctx)
    target_id = ctx.resolve(EntityType.INGREDIENT, ingredient_id)
    ingredient = _get_or_404(db, Ingredient, EntityType.INGREDIENT, target_id)

    if ingredient.household_id == household_id:
        return CopyResult(new_id=target_id, copied=False)

    if not can_access_ingredient(db, ingredient.id, household_id):
        raise AccessDenied("Ingredient not accessible")

    new_id = copier.copy_ingredient(db, ingredient.id, household_id)
    ctx.record(EntityType.INGREDIENT, ingredient.id, new_id, INGREDIENT_COPIED)
    return CopyResult(new_id=new_id, copied=True)


def copy_collection_for_household(
    db: Session,
    collection_id: int,
    household_id: int,
    ctx: Optional[ForkContext] = None,
) -> CopyResult:
    """Take a private copy of a readable collection; its recipes stay shared."""
    ctx = _context_for(household_id, ctx)
    target_id = ctx.resolve(EntityType.COLLECTION, collection_id)
    collection = _get_or_404(db, Collection, EntityType.COLLECTION, target_id)

    if collection.household_id == household_id:
        return CopyResult(new_id=target_id, copied=False)

    require_collection_access(db, collection.id, household_id)

    new_id = copier.copy_collection(db, collection.id, household_id)
    ctx.record(EntityType.COLLECTION, collection.id, new_id, COLLECTION_COPIED)
    _drop_subscription(db, household_id, collection.id)
    logger.info(f"Household {household_id} copied collection {collection_id} -> {new_id}")
    return CopyResult(new_id=new_id, copied=True)


def copy_recipe_for_edit(
    db: Session,
    recipe_id: int,
    household_id: int,
    ctx: Optional[ForkContext] = None,
) -> CopyResult:
    """Fork a recipe outside any collection context.

    Every collection the household owns that listed the original is repointed
    at the fork.
    """
    ctx = _context_for(household_id, ctx)
    target_id = ctx.resolve(EntityType.RECIPE, recipe_id)
    recipe = _get_or_404(db, Recipe, EntityType.RECIPE, target_id)

    if recipe.household_id == household_id:
        return CopyResult(new_id=target_id, copied=False)

    if not can_access_recipe(db, recipe.id, household_id):
        raise AccessDenied("Recipe not accessible")

    new_id = copier.copy_recipe(db, recipe.id, household_id)
    ctx.record(EntityType.RECIPE, recipe.id, new_id, RECIPE_COPIED)
    relinked = copier.relink_recipe_in_household_collections(db, household_id, recipe.id, new_id)
    logger.info(f"Household {household_id} forked recipe {recipe_id} -> {new_id}, relinked {relinked} collections")
    return CopyResult(new_id=new_id, copied=True)


def resolve_recipe_ingredient(db: Session, result: CascadeResult, recipe_ingredient_id: int) -> RecipeIngredient:
    """Find the recipe ingredient row to mutate after a cascade.

    ``recipe_ingredient_id`` is the row the client saw, which lives on the
    original recipe. If that recipe was forked, the equivalent row on the fork is
    the one whose ``parent_id`` points back at it.
    """
    link = db.get(RecipeIngredient, recipe_ingredient_id)
    if link is None:
        raise NotFound(EntityType.RECIPE_INGREDIENT.value, recipe_ingredient_id)

    if link.recipe_id == result.new_recipe_id:
        return link
    if link.recipe_id != result.original_recipe_id:
        raise AccessDenied("Ingredient row does not belong to this recipe")

    forked = db.scalar(
        select(RecipeIngredient).where(
            RecipeIngredient.recipe_id == result.new_recipe_id,
            RecipeIngredient.parent_id == recipe_ingredient_id,
        )
    )
    if forked is None:
        logger.error(
            f"Recipe {result.new_recipe_id} has no copy of ingredient row {recipe_ingredient_id}"
        )
        raise ConsistencyViolation(
            f"Forked recipe {result.new_recipe_id} is missing its copy of ingredient row {recipe_ingredient_id}"
        )
    return forked
