from pydantic import BaseModel, Field, AliasChoices, validator
from pydantic.alias_generators import to_camel
from typing import Optional, List


def _name_field(locale: str, required: bool = False):
    aliases = AliasChoices(
        f"subcategory_name_{locale}",
        to_camel(f"subcategory_name_{locale}"),
        f"name_{locale}",
        to_camel(f"name_{locale}"),
        *(("name", "subcategory_name", "subcategoryName") if locale == "en" else ())
    )
    if required:
        return Field(..., min_length=1, max_length=255, validation_alias=aliases)
    return Field(None, max_length=255, validation_alias=aliases)


def _description_field(locale: str):
    return Field(
        None,
        max_length=2000,
        validation_alias=AliasChoices(
            f"description_{locale}",
            to_camel(f"description_{locale}"),
            *(("description",) if locale == "en" else ())
        )
    )


class CamelModel(BaseModel):
    """Accepts both snake_case and camelCase keys"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SubcategoryCreate(CamelModel):
    category_id: int = Field(..., gt=0, description="Owning category")
    parent_id: Optional[int] = Field(None, gt=0, description="Parent subcategory, null for a root node")
    subcategory_name_en: str = _name_field("en", required=True)
    subcategory_name_ar: Optional[str] = _name_field("ar")
    subcategory_name_he: Optional[str] = _name_field("he")
    description_en: Optional[str] = _description_field("en")
    description_ar: Optional[str] = _description_field("ar")
    description_he: Optional[str] = _description_field("he")
    image_url: Optional[str] = Field(
        None,
        max_length=500,
        validation_alias=AliasChoices("image_url", "imageUrl", "image", "subcategory_image")
    )
    display_order: int = Field(default=0, ge=0)
    is_active: bool = True
    is_featured: bool = False

    @validator('subcategory_name_en')
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Subcategory name cannot be empty')
        return v.strip()

    @validator('subcategory_name_ar', 'subcategory_name_he', 'description_en', 'description_ar', 'description_he')
    def strip_optional(cls, v):
        if v is not None:
            v = v.strip()
            return v or None
        return v


class SubcategoryUpdate(CamelModel):
    subcategory_name_en: Optional[str] = _name_field("en")
    subcategory_name_ar: Optional[str] = _name_field("ar")
    subcategory_name_he: Optional[str] = _name_field("he")
    description_en: Optional[str] = _description_field("en")
    description_ar: Optional[str] = _description_field("ar")
    description_he: Optional[str] = _description_field("he")
    image_url: Optional[str] = Field(
        None,
        max_length=500,
        validation_alias=AliasChoices("image_url", "imageUrl", "image", "subcategory_image")
    )
    display_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None

    @validator('subcategory_name_en')
    def validate_name(cls, v):
        if v is not None and (not v or not v.strip()):
            raise ValueError('Subcategory name cannot be empty')
        return v.strip() if v else v


class SubcategoryReparent(CamelModel):
    parent_id: Optional[int] = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("parent_id", "parentId", "new_parent_id", "newParentId")
    )


class SubcategoryMove(CamelModel):
    category_id: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("category_id", "categoryId", "new_category_id", "newCategoryId")
    )


class DisplayOrderUpdate(CamelModel):
    display_order: int = Field(..., ge=0)


class ReorderItem(CamelModel):
    subcategory_id: int = Field(..., gt=0, validation_alias=AliasChoices("subcategory_id", "subcategoryId", "id"))
    display_order: int = Field(..., ge=0)


class ReorderRequest(CamelModel):
    items: List[ReorderItem] = Field(
        ...,
        validation_alias=AliasChoices("items", "subcategories", "orders")
    )


class BulkUpdateRequest(CamelModel):
    subcategory_ids: List[int] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("subcategory_ids", "subcategoryIds", "ids")
    )
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    display_order: Optional[int] = Field(None, ge=0)


class BulkDeleteRequest(CamelModel):
    subcategory_ids: List[int] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("subcategory_ids", "subcategoryIds", "ids")
    )
    reassign_products: bool = False
