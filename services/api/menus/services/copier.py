"""Entity copier: low-level duplication primitives for copy-on-write forking.

Each level of the graph forks the same way: duplicate the row under the new
household, then duplicate the child link rows so they point at the *same*
children as the original. Children fork independently, only when they are
edited themselves. The per-type differences live in ``FORK_PLANS``.

Nothing here commits or rolls back. Every primitive flushes so later steps in
the same transaction can read the new rows.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ..models import Collection, CollectionRecipe, Ingredient, Recipe, RecipeIngredient
from ..settings import settings
from .exceptions import CopyFailure, NotFound
from .ownership import EntityType
from .slugs import allocate_fork_slug

logger = logging.getLogger("menus.copier")


@dataclass(frozen=True)
class ForkPlan:
    model: type
    columns: tuple[str, ...]
    slugged: bool = False
    title_column: Optional[str] = None
    overrides: dict = field(default_factory=dict)
    # Child link rows duplicated alongside the entity
    link_model: Optional[type] = None
    link_parent_column: Optional[str] = None
    link_columns: tuple[str, ...] = ()


FORK_PLANS: dict[EntityType, ForkPlan] = {
    EntityType.INGREDIENT: ForkPlan(
        model=Ingredient,
        columns=(
            "name", "fresh", "cost", "stockcode",
            "supermarket_category_id", "pantry_category_id", "public",
        ),
    ),
    EntityType.RECIPE: ForkPlan(
        model=Recipe,
        columns=(
            "name", "description", "prep_time", "cook_time", "season_id",
            "primary_type_id", "secondary_type_id", "image_filename",
            "pdf_filename", "public", "archived",
        ),
        slugged=True,
        link_model=RecipeIngredient,
        link_parent_column="recipe_id",
        link_columns=(
            "ingredient_id", "quantity", "quantity4", "measure_id",
            "preparation_id", "primary_ingredient",
        ),
    ),
    EntityType.COLLECTION: ForkPlan(
        model=Collection,
        columns=("title", "subtitle", "filename", "filename_dark", "show_overlay", "archived"),
        slugged=True,
        title_column="title",
        overrides={"public": False},
        link_model=CollectionRecipe,
        link_parent_column="collection_id",
        link_columns=("recipe_id", "display_order"),
    ),
}


def _copy_links(db: Session, plan: ForkPlan, source_id: int, new_id: int) -> int:
    if plan.link_model is None:
        return 0

    link_model = plan.link_model
    parent_col = getattr(link_model, plan.link_parent_column)
    links = db.scalars(select(link_model).where(parent_col == source_id)).all()

    for link in links:
        values = {col: getattr(link, col) for col in plan.link_columns}
        values[plan.link_parent_column] = new_id
        if hasattr(link_model, "parent_id"):
            values["parent_id"] = link.id
        db.add(link_model(**values))

    db.flush()
    return len(links)


def fork_entity(db: Session, entity_type: EntityType, source, household_id: int):
    """Duplicate ``source`` into ``household_id`` and relink its children.

    Returns the new row, already flushed.
    """
    plan = FORK_PLANS[entity_type]
    values = {col: getattr(source, col) for col in plan.columns}

    if plan.title_column:
        values[plan.title_column] = f"{values[plan.title_column]}{settings.fork_title_suffix}"
    values.update(plan.overrides)

    if plan.slugged:
        slug = allocate_fork_slug(db, plan.model, household_id, source.url_slug, settings.slug_max_attempts)
        if slug is None:
            raise CopyFailure(
                entity_type.value, source.id,
                f"no free slug after {settings.slug_max_attempts} attempts",
            )
        values["url_slug"] = slug

    row = plan.model(household_id=household_id, parent_id=source.id, **values)
    db.add(row)
    try:
        db.flush()
        link_count = _copy_links(db, plan, source.id, row.id)
    except DBAPIError as e:
        raise CopyFailure(entity_type.value, source.id, str(e.orig)) from e

    logger.info(
        f"Forked {entity_type.value} {source.id} -> {row.id} for household {household_id} "
        f"({link_count} links)"
    )
    return row


def _load(db: Session, entity_type: EntityType, entity_id: int):
    row = db.get(FORK_PLANS[entity_type].model, entity_id)
    if row is None:
        raise NotFound(entity_type.value, entity_id)
    return row


def copy_ingredient(db: Session, ingredient_id: int, new_household_id: int) -> int:
    """Fork one ingredient row. Recipe links are left to the caller."""
    source = _load(db, EntityType.INGREDIENT, ingredient_id)
    return fork_entity(db, EntityType.INGREDIENT, source, new_household_id).id


def copy_recipe(db: Session, recipe_id: int, new_household_id: int) -> int:
    """Fork a recipe and its ingredient links (against the original ingredient ids)."""
    source = _load(db, EntityType.RECIPE, recipe_id)
    return fork_entity(db, EntityType.RECIPE, source, new_household_id).id


def copy_collection(db: Session, collection_id: int, new_household_id: int) -> int:
    """Fork a collection and its recipe links (against the original recipe ids)."""
    source = _load(db, EntityType.COLLECTION, collection_id)
    return fork_entity(db, EntityType.COLLECTION, source, new_household_id).id


# --- Relinking ---


def relink_collection_recipe(db: Session, collection_id: int, old_recipe_id: int, new_recipe_id: int) -> bool:
    """Point a collection's link at ``new_recipe_id`` instead of ``old_recipe_id``.

    Inserts the link if the collection had none for the old recipe. Returns True
    if the collection now links the new recipe.
    """
    if old_recipe_id == new_recipe_id:
        return True

    old_link = db.get(CollectionRecipe, (collection_id, old_recipe_id))
    new_link = db.get(CollectionRecipe, (collection_id, new_recipe_id))

    if new_link is not None:
        if old_link is not None:
            db.delete(old_link)
    elif old_link is not None:
        old_link.recipe_id = new_recipe_id
    else:
        db.add(CollectionRecipe(collection_id=collection_id, recipe_id=new_recipe_id, display_order=0))

    db.flush()
    return True


def relink_recipe_in_household_collections(
    db: Session, household_id: int, old_recipe_id: int, new_recipe_id: int
) -> int:
    """Swap the recipe in every collection the household owns. Returns links touched."""
    collection_ids = db.scalars(
        select(CollectionRecipe.collection_id)
        .join(Collection, Collection.id == CollectionRecipe.collection_id)
        .where(Collection.household_id == household_id, CollectionRecipe.recipe_id == old_recipe_id)
    ).all()

    for collection_id in collection_ids:
        relink_collection_recipe(db, collection_id, old_recipe_id, new_recipe_id)
    return len(collection_ids)


def relink_ingredient_in_household_recipes(
    db: Session, household_id: int, old_ingredient_id: int, new_ingredient_id: int
) -> int:
    """Swap the ingredient in every recipe the household owns. Returns rows updated."""
    rows = db.scalars(
        select(RecipeIngredient)
        .join(Recipe, Recipe.id == RecipeIngredient.recipe_id)
        .where(Recipe.household_id == household_id, RecipeIngredient.ingredient_id == old_ingredient_id)
    ).all()

    for row in rows:
        row.ingredient_id = new_ingredient_id
    db.flush()
    return len(rows)
