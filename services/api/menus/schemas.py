"""Pydantic schemas for the menus API.

Request/response models for:
- Households
- Collections (with subscription state)
- Recipes and their ingredient rows
- Fork reports returned by every edit that may copy-on-write
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, Field, field_validator


# --- Household ---

class HouseholdCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class HouseholdOut(BaseModel):
    id: int
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


# --- Fork report ---

class ForkInfo(BaseModel):
    actions_taken: list[Literal["collection_copied", "recipe_copied", "ingredient_copied"]] = []
    redirect_needed: bool = False
    new_collection_id: Optional[int] = None
    new_recipe_id: Optional[int] = None
    new_ingredient_id: Optional[int] = None
    new_collection_slug: Optional[str] = None
    new_recipe_slug: Optional[str] = None
    redirect_url: Optional[str] = None


# --- Ingredient ---

class IngredientOut(BaseModel):
    id: int
    household_id: int
    name: str
    fresh: bool
    cost: Optional[Decimal]
    stockcode: Optional[str]
    supermarket_category_id: Optional[int]
    pantry_category_id: Optional[int]
    parent_id: Optional[int]

    class Config:
        from_attributes = True


class IngredientPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    fresh: Optional[bool] = None
    cost: Optional[Decimal] = Field(None, ge=0)
    stockcode: Optional[str] = Field(None, max_length=50)
    supermarket_category_id: Optional[int] = None
    pantry_category_id: Optional[int] = None

    @field_validator("name", "fresh")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

class IngredientEditOut(BaseModel):
    ingredient: IngredientOut
    copied: bool
    relinked_recipe_ingredients: int = 0


class CanEditOut(BaseModel):
    can_edit: bool


# --- Recipe Ingredient ---

class RecipeIngredientOut(BaseModel):
    id: int
    recipe_id: int
    ingredient_id: int
    ingredient_name: Optional[str] = None
    quantity: Optional[str]
    quantity4: Optional[str]
    measure_id: Optional[int]
    preparation_id: Optional[int]
    primary_ingredient: bool

    class Config:
        from_attributes = True


class RecipeIngredientUpdate(BaseModel):
    quantity: str = Field(..., min_length=1, max_length=50)
    quantity4: str = Field(..., min_length=1, max_length=50)
    measure_id: Optional[int] = None


class RecipeIngredientCreate(BaseModel):
    ingredient_id: int = Field(..., gt=0)
    quantity: str = Field(..., min_length=1, max_length=50)
    quantity4: str = Field(..., min_length=1, max_length=50)
    measure_id: Optional[int] = None
    preparation_id: Optional[int] = None
    primary_ingredient: bool = False


class RecipeIngredientEditOut(BaseModel):
    recipe_ingredient: Optional[RecipeIngredientOut] = None
    fork: ForkInfo


class RecipeIngredientIngredientEditOut(BaseModel):
    recipe_ingredient: RecipeIngredientOut
    ingredient: IngredientOut
    fork: ForkInfo


# --- Recipe ---

class RecipeListOut(BaseModel):
    id: int
    household_id: int
    name: str
    url_slug: str
    image_filename: Optional[str]
    archived: bool
    parent_id: Optional[int]

    class Config:
        from_attributes = True


class RecipeOut(RecipeListOut):
    description: Optional[str]
    prep_time: Optional[int]
    cook_time: Optional[int]
    season_id: Optional[int]
    primary_type_id: Optional[int]
    secondary_type_id: Optional[int]
    pdf_filename: Optional[str]
    ingredients: list[RecipeIngredientOut] = []
    can_edit: bool = False


class RecipePatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    prep_time: Optional[int] = Field(None, ge=0)
    cook_time: Optional[int] = Field(None, ge=0)
    season_id: Optional[int] = None
    primary_type_id: Optional[int] = None
    secondary_type_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

class RecipeEditOut(BaseModel):
    recipe: RecipeOut
    fork: ForkInfo


class RecipeDeleteOut(BaseModel):
    deleted: bool = False
    removed_from_collection: bool = False
    collection_id: Optional[int] = None
    deleted_orphaned_ingredients: list[int] = []


# --- Collection ---

class CollectionOut(BaseModel):
    id: int
    household_id: int
    title: str
    subtitle: Optional[str]
    filename: Optional[str]
    filename_dark: Optional[str]
    show_overlay: bool
    public: bool
    archived: bool
    url_slug: str
    parent_id: Optional[int]
    access: Optional[Literal["owned", "subscribed", "public"]] = None

    class Config:
        from_attributes = True


class CollectionDetailOut(CollectionOut):
    recipes: list[RecipeListOut] = []


class CollectionPatch(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    subtitle: Optional[str] = None
    show_overlay: Optional[bool] = None
    public: Optional[bool] = None

    @field_validator("title", "show_overlay", "public")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

class CollectionEditOut(BaseModel):
    collection: CollectionOut
    fork: ForkInfo


class SubscriptionToggleOut(BaseModel):
    action: Literal["subscribed", "unsubscribed"]
    subscribed: bool
