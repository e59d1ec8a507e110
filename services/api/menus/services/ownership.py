"""Ownership resolution for the collection -> recipe -> ingredient graph.

Every node type has one owner lookup. Collections, recipes and ingredients carry
their own ``household_id``; link rows are owned by their parent (a recipe
ingredient by its recipe, a collection recipe by its collection).

"Not found" and "not owned" are deliberately the same answer here: both mean the
row must not be mutated in place.
"""

from enum import Enum
from typing import Callable, Iterable, Optional

from sqlalchemy import select, Select
from sqlalchemy.orm import Session

from ..models import Collection, CollectionRecipe, Ingredient, Recipe, RecipeIngredient


class EntityType(str, Enum):
    COLLECTION = "collections"
    RECIPE = "recipes"
    INGREDIENT = "ingredients"
    RECIPE_INGREDIENT = "recipe_ingredients"
    COLLECTION_RECIPE = "collection_recipes"


# Tables that carry household_id directly
OWNED_MODELS = {
    EntityType.COLLECTION: Collection,
    EntityType.RECIPE: Recipe,
    EntityType.INGREDIENT: Ingredient,
}


def _direct_owner(model) -> Callable[[object], Select]:
    def stmt(entity_id):
        return select(model.household_id).where(model.id == entity_id)
    return stmt


def _recipe_ingredient_owner(entity_id) -> Select:
    return (
        select(Recipe.household_id)
        .join(RecipeIngredient, RecipeIngredient.recipe_id == Recipe.id)
        .where(RecipeIngredient.id == entity_id)
    )


def _collection_recipe_owner(entity_id) -> Select:
    # Composite key: (collection_id, recipe_id)
    collection_id, recipe_id = entity_id
    return (
        select(Collection.household_id)
        .join(CollectionRecipe, CollectionRecipe.collection_id == Collection.id)
        .where(
            CollectionRecipe.collection_id == collection_id,
            CollectionRecipe.recipe_id == recipe_id,
        )
    )


OWNER_LOOKUPS: dict[EntityType, Callable[[object], Select]] = {
    EntityType.COLLECTION: _direct_owner(Collection),
    EntityType.RECIPE: _direct_owner(Recipe),
    EntityType.INGREDIENT: _direct_owner(Ingredient),
    EntityType.RECIPE_INGREDIENT: _recipe_ingredient_owner,
    EntityType.COLLECTION_RECIPE: _collection_recipe_owner,
}


def get_owner(db: Session, entity_type: EntityType, entity_id) -> Optional[int]:
    """Return the owning household id, or None if the row does not exist."""
    entity_type = EntityType(entity_type)
    return db.scalar(OWNER_LOOKUPS[entity_type](entity_id))


def can_edit_resource(db: Session, household_id: int, entity_type: EntityType, entity_id) -> bool:
    """True only when the row exists and belongs to ``household_id``."""
    owner = get_owner(db, entity_type, entity_id)
    if owner is None:
        return False
    return owner == household_id


def can_edit_multiple_resources(
    db: Session,
    household_id: int,
    entity_type: EntityType,
    entity_ids: Iterable[int],
) -> dict[int, bool]:
    """Bulk variant of can_edit_resource for directly-owned tables.

    Ids that do not exist map to False.
    """
    entity_type = EntityType(entity_type)
    ids = list(entity_ids)
    if not ids:
        return {}
    if entity_type not in OWNED_MODELS:
        raise ValueError(f"Bulk ownership check not supported for {entity_type.value}")

    model = OWNED_MODELS[entity_type]
    permissions = {entity_id: False for entity_id in ids}
    rows = db.execute(select(model.id, model.household_id).where(model.id.in_(ids))).all()
    for row_id, owner in rows:
        permissions[row_id] = owner == household_id
    return permissions
