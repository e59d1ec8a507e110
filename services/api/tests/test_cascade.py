import pytest
from sqlalchemy import func, select

from menus.db import atomic
from menus.models import Collection, CollectionRecipe, CollectionSubscription, Ingredient, Recipe, RecipeIngredient
from menus.services import copier
from menus.services.cascade import (
    ForkContext,
    cascade_copy_ingredient_with_context,
    cascade_copy_with_context,
    copy_collection_for_household,
    copy_ingredient_for_edit,
    copy_recipe_for_edit,
    resolve_recipe_ingredient,
)
from menus.services.exceptions import AccessDenied, ConsistencyViolation, CopyFailure, NotFound
from menus.services.membership import validate_recipe_in_collection

from conftest import add_ingredient_row, link_recipe, make_collection, make_ingredient, make_recipe, subscribe


def _count(db, model):
    return db.scalar(select(func.count()).select_from(model))


def test_owner_edit_is_noop(db_session, shared_graph):
    g = shared_graph
    result = cascade_copy_with_context(db_session, g["a"], g["collection"], g["recipe"])

    assert result.actions_taken == []
    assert result.redirect_needed is False
    assert result.new_collection_id == g["collection"]
    assert result.new_recipe_id == g["recipe"]
    assert result.new_collection_slug is None
    assert result.new_recipe_slug is None
    assert _count(db_session, Collection) == 1
    assert _count(db_session, Recipe) == 2


def test_subscriber_edit_forks_collection_and_recipe(db_session, shared_graph):
    g = shared_graph
    result = cascade_copy_with_context(db_session, g["b"], g["collection"], g["recipe"])
    db_session.commit()

    assert result.actions_taken == ["collection_copied", "recipe_copied"]
    assert result.redirect_needed is True
    assert result.original_collection_id == g["collection"]
    assert result.original_recipe_id == g["recipe"]

    new_collection = db_session.get(Collection, result.new_collection_id)
    new_recipe = db_session.get(Recipe, result.new_recipe_id)
    assert new_collection.household_id == g["b"]
    assert new_collection.title == "Weeknight Dinners (Copy)"
    assert new_collection.public is False
    assert new_collection.parent_id == g["collection"]
    assert new_collection.url_slug == result.new_collection_slug == "weeknight-dinners-copy"
    assert new_recipe.household_id == g["b"]
    assert new_recipe.name == "Chicken Pie"
    assert new_recipe.parent_id == g["recipe"]
    assert new_recipe.url_slug == result.new_recipe_slug == "chicken-pie-copy"

    # New collection links the fork plus the untouched original sibling
    linked = set(db_session.scalars(
        select(CollectionRecipe.recipe_id).where(CollectionRecipe.collection_id == new_collection.id)
    ))
    assert linked == {new_recipe.id, g["other_recipe"]}

    # Ingredient rows duplicated against the same ingredients
    rows = db_session.scalars(select(RecipeIngredient).where(RecipeIngredient.recipe_id == new_recipe.id)).all()
    assert sorted(r.ingredient_id for r in rows) == sorted([g["carrot"], g["chicken"]])
    assert sorted(r.parent_id for r in rows) == sorted([g["carrot_row"], g["chicken_row"]])
    assert _count(db_session, Ingredient) == 2


def test_fork_leaves_originals_untouched(db_session, shared_graph):
    g = shared_graph
    cascade_copy_ingredient_with_context(db_session, g["b"], g["collection"], g["recipe"], g["carrot"])
    db_session.commit()
    db_session.expire_all()

    collection = db_session.get(Collection, g["collection"])
    recipe = db_session.get(Recipe, g["recipe"])
    carrot = db_session.get(Ingredient, g["carrot"])
    assert collection.household_id == g["a"]
    assert collection.title == "Weeknight Dinners"
    assert collection.public is True
    assert recipe.household_id == g["a"]
    assert carrot.household_id == g["a"]

    original_links = set(db_session.scalars(
        select(CollectionRecipe.recipe_id).where(CollectionRecipe.collection_id == g["collection"])
    ))
    assert original_links == {g["recipe"], g["other_recipe"]}
    rows = db_session.scalars(select(RecipeIngredient.ingredient_id).where(RecipeIngredient.recipe_id == g["recipe"])).all()
    assert sorted(rows) == sorted([g["carrot"], g["chicken"]])


def test_other_subscribers_keep_the_original(db_session, shared_graph, household_c):
    g = shared_graph
    collection = db_session.get(Collection, g["collection"])
    collection.public = False
    subscribe(db_session, household_c, collection)
    db_session.commit()

    result = cascade_copy_with_context(db_session, g["b"], g["collection"], g["recipe"])
    db_session.commit()
    db_session.expire_all()

    assert result.actions_taken == ["collection_copied", "recipe_copied"]
    assert validate_recipe_in_collection(db_session, g["recipe"], g["collection"], household_c.id) is True
    assert db_session.get(CollectionSubscription, (household_c.id, g["collection"])) is not None
    assert db_session.get(CollectionSubscription, (g["b"], g["collection"])) is None


def test_minimal_fork_when_collection_owned(db_session, shared_graph, household_b):
    """B's own collection listing A's recipe: only the recipe is forked."""
    g = shared_graph
    own = make_collection(db_session, household_b, "My Favourites", public=False)
    link_recipe(db_session, own, db_session.get(Recipe, g["recipe"]), display_order=5)
    db_session.commit()
    own_id = own.id

    result = cascade_copy_with_context(db_session, g["b"], own_id, g["recipe"])
    db_session.commit()

    assert result.actions_taken == ["recipe_copied"]
    assert result.new_collection_id == own_id
    assert result.new_collection_slug is None
    assert result.new_recipe_slug == "chicken-pie-copy"

    links = db_session.scalars(select(CollectionRecipe).where(CollectionRecipe.collection_id == own_id)).all()
    assert [(link.recipe_id, link.display_order) for link in links] == [(result.new_recipe_id, 5)]
    assert _count(db_session, Collection) == 2


def test_household_a_b_scenario(db_session, household_a, household_b):
    """B edits ingredient 7 of recipe 55 in A's collection 10."""
    collection = make_collection(db_session, household_a, "Family Classics", id=10)
    recipe = make_recipe(db_session, household_a, "Lasagne", id=55)
    ingredient = make_ingredient(db_session, household_a, "Mozzarella", id=7)
    link_recipe(db_session, collection, recipe)
    add_ingredient_row(db_session, recipe, ingredient, quantity="200g", quantity4="400g")
    db_session.add(CollectionSubscription(household_id=household_b.id, collection_id=10))
    db_session.commit()
    b_id = household_b.id

    result = cascade_copy_ingredient_with_context(db_session, b_id, 10, 55, 7)
    db_session.commit()

    assert result.actions_taken == ["collection_copied", "recipe_copied", "ingredient_copied"]
    assert result.redirect_needed is True
    assert result.new_collection_id != 10
    assert result.new_recipe_id != 55
    assert result.new_ingredient_id != 7
    assert result.original_ingredient_id == 7
    for model, new_id in (
        (Collection, result.new_collection_id),
        (Recipe, result.new_recipe_id),
        (Ingredient, result.new_ingredient_id),
    ):
        assert db_session.get(model, new_id).household_id == b_id

    # The collection fork replaces B's subscription
    assert db_session.get(CollectionSubscription, (b_id, 10)) is None
    # A's rows are unchanged
    assert db_session.get(Collection, 10).household_id == household_a.id
    assert db_session.get(Recipe, 55).household_id == household_a.id
    assert db_session.get(Ingredient, 7).household_id == household_a.id


def test_ingredient_cascade_owned_recipe_forks_only_ingredient(db_session, household_a, household_b):
    collection = make_collection(db_session, household_b, "Mine", public=False)
    recipe = make_recipe(db_session, household_b, "Stew")
    shared = make_ingredient(db_session, household_a, "Beef Stock", public=True)
    link_recipe(db_session, collection, recipe)
    add_ingredient_row(db_session, recipe, shared)
    db_session.commit()

    result = cascade_copy_ingredient_with_context(db_session, household_b.id, collection.id, recipe.id, shared.id)

    assert result.actions_taken == ["ingredient_copied"]
    assert result.new_recipe_id == recipe.id
    assert result.new_collection_id == collection.id
    assert db_session.get(Ingredient, result.new_ingredient_id).parent_id == shared.id


def test_ingredient_not_used_by_recipe_is_refused(db_session, shared_graph, household_a):
    g = shared_graph
    stray = make_ingredient(db_session, household_a, "Saffron")
    db_session.commit()

    with pytest.raises(AccessDenied):
        cascade_copy_ingredient_with_context(db_session, g["b"], g["collection"], g["recipe"], stray.id)


def test_context_forks_each_entity_once(db_session, shared_graph):
    g = shared_graph
    ctx = ForkContext(household_id=g["b"])

    first = cascade_copy_ingredient_with_context(db_session, g["b"], g["collection"], g["recipe"], g["carrot"], ctx)
    second = cascade_copy_ingredient_with_context(db_session, g["b"], g["collection"], g["recipe"], g["carrot"], ctx)
    db_session.commit()

    assert second.new_collection_id == first.new_collection_id
    assert second.new_recipe_id == first.new_recipe_id
    assert second.new_ingredient_id == first.new_ingredient_id
    assert second.actions_taken == []
    assert ctx.actions == ["collection_copied", "recipe_copied", "ingredient_copied"]
    assert _count(db_session, Collection) == 2
    assert _count(db_session, Recipe) == 3
    assert _count(db_session, Ingredient) == 3


def test_context_sibling_recipe_reuses_collection_fork(db_session, shared_graph):
    g = shared_graph
    ctx = ForkContext(household_id=g["b"])

    first = cascade_copy_with_context(db_session, g["b"], g["collection"], g["recipe"], ctx)
    second = cascade_copy_with_context(db_session, g["b"], g["collection"], g["other_recipe"], ctx)

    assert second.new_collection_id == first.new_collection_id
    assert second.actions_taken == ["recipe_copied"]
    linked = set(db_session.scalars(
        select(CollectionRecipe.recipe_id).where(CollectionRecipe.collection_id == first.new_collection_id)
    ))
    assert linked == {first.new_recipe_id, second.new_recipe_id}


def test_separate_requests_fork_again(db_session, shared_graph):
    g = shared_graph
    first = cascade_copy_with_context(db_session, g["b"], g["collection"], g["recipe"])
    # Stale ids and a fresh context: the public original is still readable
    second = cascade_copy_with_context(db_session, g["b"], g["collection"], g["recipe"])
    db_session.commit()

    assert second.new_collection_id != first.new_collection_id
    assert second.new_collection_slug == "weeknight-dinners-copy-2"
    assert second.new_recipe_slug == "chicken-pie-copy-2"


def test_context_of_other_household_is_rejected(db_session, shared_graph):
    g = shared_graph
    with pytest.raises(ValueError):
        cascade_copy_with_context(db_session, g["b"], g["collection"], g["recipe"], ForkContext(household_id=g["a"]))


def test_unrelated_household_is_refused_before_forking(db_session, shared_graph, household_c):
    g = shared_graph
    db_session.get(Collection, g["collection"]).public = False
    db_session.commit()

    with pytest.raises(AccessDenied):
        cascade_copy_with_context(db_session, household_c.id, g["collection"], g["recipe"])
    assert _count(db_session, Collection) == 1
    assert _count(db_session, Recipe) == 2


def test_recipe_outside_collection_is_refused(db_session, shared_graph, household_a):
    g = shared_graph
    loose = make_recipe(db_session, household_a, "Unlisted")
    db_session.commit()

    with pytest.raises(AccessDenied):
        cascade_copy_with_context(db_session, g["b"], g["collection"], loose.id)


def test_missing_rows_raise_not_found(db_session, shared_graph):
    g = shared_graph
    with pytest.raises(NotFound):
        cascade_copy_with_context(db_session, g["b"], 9999, g["recipe"])
    with pytest.raises(NotFound):
        cascade_copy_with_context(db_session, g["b"], g["collection"], 9999)


def test_failed_copy_rolls_back_every_fork(db_session, shared_graph, monkeypatch):
    g = shared_graph

    def broken_copy(db, ingredient_id, new_household_id):
        raise CopyFailure("ingredients", ingredient_id, "disk full")

    monkeypatch.setattr(copier, "copy_ingredient", broken_copy)

    with pytest.raises(CopyFailure):
        with atomic(db_session):
            cascade_copy_ingredient_with_context(db_session, g["b"], g["collection"], g["recipe"], g["carrot"])

    assert _count(db_session, Collection) == 1
    assert _count(db_session, Recipe) == 2
    assert _count(db_session, Ingredient) == 2
    assert db_session.get(CollectionSubscription, (g["b"], g["collection"])) is not None


def test_copy_ingredient_for_edit(db_session, shared_graph):
    g = shared_graph
    owned = copy_ingredient_for_edit(db_session, g["carrot"], g["a"])
    assert owned.copied is False
    assert owned.new_id == g["carrot"]

    forked = copy_ingredient_for_edit(db_session, g["carrot"], g["b"])
    assert forked.copied is True
    ingredient = db_session.get(Ingredient, forked.new_id)
    assert ingredient.household_id == g["b"]
    assert ingredient.name == "Carrot"
    assert ingredient.fresh is True
    assert ingredient.parent_id == g["carrot"]


def test_copy_ingredient_for_edit_requires_access(db_session, shared_graph, household_c):
    g = shared_graph
    db_session.get(Collection, g["collection"]).public = False
    db_session.commit()

    with pytest.raises(AccessDenied):
        copy_ingredient_for_edit(db_session, g["carrot"], household_c.id)


def test_copy_recipe_for_edit_relinks_owned_collections(db_session, shared_graph, household_b):
    g = shared_graph
    own = make_collection(db_session, household_b, "Mine", public=False)
    link_recipe(db_session, own, db_session.get(Recipe, g["recipe"]))
    db_session.commit()
    own_id = own.id

    result = copy_recipe_for_edit(db_session, g["recipe"], g["b"])

    assert result.copied is True
    assert db_session.get(CollectionRecipe, (own_id, result.new_id)) is not None
    assert db_session.get(CollectionRecipe, (own_id, g["recipe"])) is None
    # A's collection still lists the original
    assert db_session.get(CollectionRecipe, (g["collection"], g["recipe"])) is not None


def test_copy_collection_for_household(db_session, shared_graph):
    g = shared_graph
    result = copy_collection_for_household(db_session, g["collection"], g["b"])
    db_session.commit()

    assert result.copied is True
    copy = db_session.get(Collection, result.new_id)
    assert copy.household_id == g["b"]
    assert {link.recipe_id for link in copy.recipe_links} == {g["recipe"], g["other_recipe"]}
    assert db_session.get(CollectionSubscription, (g["b"], g["collection"])) is None

    again = copy_collection_for_household(db_session, result.new_id, g["b"])
    assert again.copied is False


def test_resolve_recipe_ingredient_maps_onto_fork(db_session, shared_graph):
    g = shared_graph
    result = cascade_copy_with_context(db_session, g["b"], g["collection"], g["recipe"])

    row = resolve_recipe_ingredient(db_session, result, g["carrot_row"])
    assert row.recipe_id == result.new_recipe_id
    assert row.parent_id == g["carrot_row"]
    assert row.ingredient_id == g["carrot"]


def test_resolve_recipe_ingredient_missing_copy(db_session, shared_graph):
    g = shared_graph
    result = cascade_copy_with_context(db_session, g["b"], g["collection"], g["recipe"])
    fork_row = resolve_recipe_ingredient(db_session, result, g["carrot_row"])
    db_session.delete(fork_row)
    db_session.flush()

    with pytest.raises(ConsistencyViolation):
        resolve_recipe_ingredient(db_session, result, g["carrot_row"])
