"""
Content API — Catalog schemas
"""
from datetime import datetime
from pydantic import BaseModel, Field


# ─── Allergies / dietary preferences / equipment ──────────────────────────────

class NamedItemCreate(BaseModel):
    name: str = Field(..., max_length=255)
    description: str | None = None
    is_active: bool = True


class NamedItemUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    description: str | None = None
    is_active: bool | None = None


class AllergyResponse(BaseModel):
    allergy_id: str
    name: str
    description: str | None
    is_active: bool
    order_number: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DietaryPreferenceResponse(BaseModel):
    preference_id: str
    name: str
    description: str | None
    is_active: bool
    order_number: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EquipmentResponse(BaseModel):
    equipment_id: str
    name: str
    description: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Subscriptions ────────────────────────────────────────────────────────────

class SubscriptionCreate(BaseModel):
    name: str = Field(..., max_length=255)
    description: str | None = None
    tier_level: int
    duration_months: int
    price_usd: float
    is_active: bool = True


class SubscriptionUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    description: str | None = None
    tier_level: int | None = None
    duration_months: int | None = None
    price_usd: float | None = None
    is_active: bool | None = None


class SubscriptionResponse(SubscriptionCreate):
    subscription_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Instructors ──────────────────────────────────────────────────────────────

class InstructorCreate(BaseModel):
    instructor_id: str = Field(..., max_length=64)
    bio: str
    is_featured: bool = False
    specialization: list[str] | None = None
    certifications: list[str] | None = None
    years_experience: int | None = Field(None, ge=0)
    profile_video_url: str | None = None
    social_media_links: dict[str, str] | None = None


class InstructorUpdate(BaseModel):
    bio: str | None = None
    is_featured: bool | None = None
    specialization: list[str] | None = None
    certifications: list[str] | None = None
    years_experience: int | None = Field(None, ge=0)
    profile_video_url: str | None = None
    social_media_links: dict[str, str] | None = None
    rating: float | None = Field(None, ge=0, le=5)


class InstructorResponse(InstructorCreate):
    total_students: int
    total_classes: int
    rating: float | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Recipes ──────────────────────────────────────────────────────────────────

class RecipeCreate(BaseModel):
    recipe_name: str = Field(..., max_length=255)
    description: str
    class_name: str = Field(..., max_length=255)
    prep_time_minutes: int
    cook_time_minutes: int
    servings: int
    instructions: str | None = None
    difficulty: str = "Easy"
    is_premium: bool = False
    is_published: bool = False
    calories_per_serving: int | None = Field(None, ge=0)
    protein_grams: float | None = Field(None, ge=0)
    carbs_grams: float | None = Field(None, ge=0)
    fat_grams: float | None = Field(None, ge=0)
    fiber_grams: float | None = Field(None, ge=0)
    meal_type: str | None = None
    banner_image: str | None = None
    image_url: str = ""
    ingredients: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class RecipeUpdate(BaseModel):
    recipe_name: str | None = Field(None, max_length=255)
    description: str | None = None
    class_name: str | None = Field(None, max_length=255)
    prep_time_minutes: int | None = None
    cook_time_minutes: int | None = None
    servings: int | None = None
    instructions: str | None = None
    difficulty: str | None = None
    is_premium: bool | None = None
    is_published: bool | None = None
    calories_per_serving: int | None = Field(None, ge=0)
    protein_grams: float | None = Field(None, ge=0)
    carbs_grams: float | None = Field(None, ge=0)
    fat_grams: float | None = Field(None, ge=0)
    fiber_grams: float | None = Field(None, ge=0)
    meal_type: str | None = None
    banner_image: str | None = None
    image_url: str | None = None
    ingredients: list[str] | None = None
    tags: list[str] | None = None


class RecipeResponse(RecipeCreate):
    recipe_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RecipeBannerCreate(BaseModel):
    image_url: str
    title: str | None = Field(None, max_length=255)
    subtitle: str | None = Field(None, max_length=255)
    is_active: bool = True


class RecipeBannerUpdate(BaseModel):
    image_url: str | None = None
    title: str | None = Field(None, max_length=255)
    subtitle: str | None = Field(None, max_length=255)
    is_active: bool | None = None


class RecipeBannerResponse(RecipeBannerCreate):
    banner_id: str
    display_order: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
