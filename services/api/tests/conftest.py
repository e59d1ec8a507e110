import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import fakeredis
import fakeredis.aioredis

from menus.main import app
from menus.db import Base, get_db
from menus.infra import redis_client
from menus.models import (
    Collection,
    CollectionRecipe,
    CollectionSubscription,
    Household,
    Ingredient,
    Recipe,
    RecipeIngredient,
)
from menus.services.slugs import slugify

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool  # Important for in-memory to share connection across threads/sessions
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """Test client with DB override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Direct database session for setup."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def mock_redis():
    server = fakeredis.FakeServer()
    redis_client._redis_async = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    yield
    redis_client._redis_async = None


# --- Households ---

@pytest.fixture
def household_a(db_session):
    """The household that owns the shared content."""
    hh = Household(name="Household A")
    db_session.add(hh)
    db_session.commit()
    db_session.refresh(hh)
    return hh


@pytest.fixture
def household_b(db_session):
    """A household that subscribes to A's content and edits it."""
    hh = Household(name="Household B")
    db_session.add(hh)
    db_session.commit()
    db_session.refresh(hh)
    return hh


@pytest.fixture
def household_c(db_session):
    """An unrelated household with no access to anything."""
    hh = Household(name="Household C")
    db_session.add(hh)
    db_session.commit()
    db_session.refresh(hh)
    return hh


def headers_for(household):
    return {"X-Household-Id": str(household.id)}


# --- Row builders ---

def make_collection(db, household, title="Weeknight Dinners", public=True, **kwargs):
    collection = Collection(
        household_id=household.id,
        title=title,
        url_slug=kwargs.pop("url_slug", slugify(title)),
        public=public,
        **kwargs,
    )
    db.add(collection)
    db.flush()
    return collection


def make_recipe(db, household, name="Chicken Pie", **kwargs):
    recipe = Recipe(
        household_id=household.id,
        name=name,
        url_slug=kwargs.pop("url_slug", slugify(name)),
        **kwargs,
    )
    db.add(recipe)
    db.flush()
    return recipe


def make_ingredient(db, household, name="Carrot", **kwargs):
    ingredient = Ingredient(household_id=household.id, name=name, **kwargs)
    db.add(ingredient)
    db.flush()
    return ingredient


def link_recipe(db, collection, recipe, display_order=0):
    link = CollectionRecipe(collection_id=collection.id, recipe_id=recipe.id, display_order=display_order)
    db.add(link)
    db.flush()
    return link


def add_ingredient_row(db, recipe, ingredient, quantity="2", quantity4="4", **kwargs):
    row = RecipeIngredient(
        recipe_id=recipe.id,
        ingredient_id=ingredient.id,
        quantity=quantity,
        quantity4=quantity4,
        **kwargs,
    )
    db.add(row)
    db.flush()
    return row


def subscribe(db, household, collection):
    db.add(CollectionSubscription(household_id=household.id, collection_id=collection.id))
    db.flush()


@pytest.fixture
def shared_graph(db_session, household_a, household_b):
    """A's public collection with one recipe using two ingredients; B subscribes.

    Returns a dict of ids so tests never hold on to expired ORM rows.
    """
    collection = make_collection(db_session, household_a, "Weeknight Dinners")
    recipe = make_recipe(db_session, household_a, "Chicken Pie", description="Golden and flaky")
    other_recipe = make_recipe(db_session, household_a, "Tomato Soup")
    carrot = make_ingredient(db_session, household_a, "Carrot", fresh=True)
    chicken = make_ingredient(db_session, household_a, "Chicken Thigh", fresh=True)

    link_recipe(db_session, collection, recipe, display_order=1)
    link_recipe(db_session, collection, other_recipe, display_order=2)
    carrot_row = add_ingredient_row(db_session, recipe, carrot, quantity="2", quantity4="4")
    chicken_row = add_ingredient_row(db_session, recipe, chicken, quantity="500g", quantity4="1kg", primary_ingredient=True)
    add_ingredient_row(db_session, other_recipe, carrot, quantity="1", quantity4="2")
    subscribe(db_session, household_b, collection)
    db_session.commit()

    return {
        "a": household_a.id,
        "b": household_b.id,
        "collection": collection.id,
        "recipe": recipe.id,
        "other_recipe": other_recipe.id,
        "carrot": carrot.id,
        "chicken": chicken.id,
        "carrot_row": carrot_row.id,
        "chicken_row": chicken_row.id,
    }
