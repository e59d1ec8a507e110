from menus.models import Ingredient, RecipeIngredient
from menus.services.cleanup import cleanup_after_recipe_delete, delete_orphaned_ingredients, delete_recipe_ingredients

from conftest import add_ingredient_row, make_ingredient, make_recipe


def test_delete_recipe_ingredients(db_session, shared_graph):
    g = shared_graph
    assert delete_recipe_ingredients(db_session, g["recipe"]) == 2
    assert db_session.get(RecipeIngredient, g["carrot_row"]) is None
    assert db_session.get(RecipeIngredient, g["chicken_row"]) is None


def test_cleanup_removes_only_unused_ingredients(db_session, shared_graph):
    g = shared_graph
    # Carrot is still used by the other recipe, chicken only by this one
    result = cleanup_after_recipe_delete(db_session, g["recipe"], g["a"])
    db_session.commit()

    assert result["deleted_recipe_ingredients"] == 2
    assert result["deleted_orphaned_ingredients"] == [g["chicken"]]
    assert db_session.get(Ingredient, g["carrot"]) is not None
    assert db_session.get(Ingredient, g["chicken"]) is None


def test_cleanup_keeps_ingredients_other_households_use(db_session, household_a, household_b):
    butter = make_ingredient(db_session, household_a, "Butter")
    a_recipe = make_recipe(db_session, household_a, "Shortbread")
    b_recipe = make_recipe(db_session, household_b, "Shortbread Copy")
    add_ingredient_row(db_session, a_recipe, butter)
    add_ingredient_row(db_session, b_recipe, butter)
    db_session.commit()

    result = cleanup_after_recipe_delete(db_session, a_recipe.id, household_a.id)

    assert result["deleted_orphaned_ingredients"] == []
    assert db_session.get(Ingredient, butter.id) is not None


def test_orphan_cleanup_never_touches_other_households(db_session, household_a, household_b):
    a_unused = make_ingredient(db_session, household_a, "Forgotten Spice")
    b_unused = make_ingredient(db_session, household_b, "Leftover Herb")
    db_session.commit()
    a_unused_id, b_unused_id = a_unused.id, b_unused.id

    deleted = delete_orphaned_ingredients(db_session, household_a.id)

    assert deleted == [a_unused_id]
    assert db_session.get(Ingredient, b_unused_id) is not None
