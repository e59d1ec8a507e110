"""SQLAlchemy ORM models for the household menus API.

Tables:
- households: Tenant boundary; every collection, recipe and ingredient belongs to one
- collections: Named groupings of recipes, optionally public and subscribable
- collection_subscriptions: Read access to a collection owned by another household
- collection_recipes: Many-to-many join of collections and recipes
- recipes: Core recipe data with household ownership
- ingredients: Household-owned ingredient catalogue
- recipe_ingredients: Quantities of an ingredient used by a recipe

Rows created by the copy-on-write engine record their source in ``parent_id``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    Integer,
    Boolean,
    ForeignKey,
    Index,
    Numeric,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func, false

from .db import Base


class Household(Base):
    """Tenant boundary owning a private set of collections, recipes and ingredients."""
    __tablename__ = "households"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    collections: Mapped[list["Collection"]] = relationship(
        "Collection", back_populates="household", cascade="all, delete-orphan"
    )
    subscriptions: Mapped[list["CollectionSubscription"]] = relationship(
        "CollectionSubscription", back_populates="household", cascade="all, delete-orphan"
    )


class Collection(Base):
    """A named set of recipes, shareable with other households."""
    __tablename__ = "collections"
    __table_args__ = (
        Index("ix_collections_household_id", "household_id"),
        Index("ix_collections_parent_id", "parent_id"),
        UniqueConstraint("household_id", "url_slug", name="uq_collections_household_slug"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    household_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("households.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    subtitle: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Cover images (light/dark), stored by the file collaborator
    filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    filename_dark: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    show_overlay: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    url_slug: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    household: Mapped["Household"] = relationship("Household", back_populates="collections")
    recipe_links: Mapped[list["CollectionRecipe"]] = relationship(
        "CollectionRecipe", back_populates="collection", cascade="all, delete-orphan",
        order_by="CollectionRecipe.display_order"
    )
    subscriptions: Mapped[list["CollectionSubscription"]] = relationship(
        "CollectionSubscription", back_populates="collection", cascade="all, delete-orphan"
    )


class CollectionSubscription(Base):
    """A household's read-only subscription to someone else's collection."""
    __tablename__ = "collection_subscriptions"
    __table_args__ = (
        Index("ix_collection_subscriptions_collection_id", "collection_id"),
    )

    household_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("households.id", ondelete="CASCADE"), primary_key=True
    )
    collection_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True
    )
    subscribed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    household: Mapped["Household"] = relationship("Household", back_populates="subscriptions")
    collection: Mapped["Collection"] = relationship("Collection", back_populates="subscriptions")


class CollectionRecipe(Base):
    """Join row placing a recipe in a collection. Owned by the collection's household."""
    __tablename__ = "collection_recipes"
    __table_args__ = (
        Index("ix_collection_recipes_recipe_collection", "recipe_id", "collection_id"),
        Index("ix_collection_recipes_display_order", "collection_id", "display_order"),
    )

    collection_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True
    )
    recipe_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    collection: Mapped["Collection"] = relationship("Collection", back_populates="recipe_links")
    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="collection_links")


class Recipe(Base):
    """Core recipe with household ownership."""
    __tablename__ = "recipes"
    __table_args__ = (
        Index("ix_recipes_household_id", "household_id"),
        Index("ix_recipes_parent_id", "parent_id"),
        UniqueConstraint("household_id", "url_slug", name="uq_recipes_household_slug"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    household_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("households.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prep_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cook_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Lookup references (seasons, meal types) live outside this service
    season_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    primary_type_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    secondary_type_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    image_filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pdf_filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    url_slug: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    ingredients: Mapped[list["RecipeIngredient"]] = relationship(
        "RecipeIngredient", back_populates="recipe", cascade="all, delete-orphan",
        order_by="RecipeIngredient.id"
    )
    collection_links: Mapped[list["CollectionRecipe"]] = relationship(
        "CollectionRecipe", back_populates="recipe", cascade="all, delete-orphan"
    )


class Ingredient(Base):
    """Household-owned ingredient referenced by recipes."""
    __tablename__ = "ingredients"
    __table_args__ = (
        Index("ix_ingredients_household_id", "household_id"),
        Index("ix_ingredients_parent_id", "parent_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    household_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("households.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    fresh: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    stockcode: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    supermarket_category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    pantry_category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class RecipeIngredient(Base):
    """Quantity of one ingredient in one recipe. Owned by the recipe's household."""
    __tablename__ = "recipe_ingredients"
    __table_args__ = (
        Index("ix_recipe_ingredients_recipe_id", "recipe_id"),
        Index("ix_recipe_ingredients_ingredient_id", "ingredient_id"),
        Index("ix_recipe_ingredients_parent_id", "parent_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipe_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False
    )
    ingredient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ingredients.id"), nullable=False
    )

    quantity: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    quantity4: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # scaled for four servings
    measure_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    preparation_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    primary_ingredient: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Relationships
    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="ingredients")
    ingredient: Mapped["Ingredient"] = relationship("Ingredient")
