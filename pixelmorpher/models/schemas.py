from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from datetime import datetime
from typing import Optional, Dict, Any, Literal

from pixelmorpher.constants import CONFIG_KEYS

TransformationTypeKey = Literal["restore", "fill", "remove", "recolor", "removeBackground"]


class RemoveConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    remove_shadow: Optional[bool] = Field(None, alias="removeShadow")
    multiple: Optional[bool] = None


class RecolorConfig(BaseModel):
    prompt: Optional[str] = None
    to: Optional[str] = None
    multiple: Optional[bool] = None


class TransformationConfig(BaseModel):
    """Transformation parameters, serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    restore: Optional[bool] = None
    fill_background: Optional[bool] = Field(None, alias="fillBackground")
    remove: Optional[RemoveConfig] = None
    recolor: Optional[RecolorConfig] = None
    remove_background: Optional[bool] = Field(None, alias="removeBackground")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ImageBase(BaseModel):
    title: str
    public_id: str
    transformation_type: TransformationTypeKey
    width: Optional[int] = None
    height: Optional[int] = None
    config: Optional[Dict[str, Any]] = None
    secure_url: str
    transformation_url: Optional[str] = None
    aspect_ratio: Optional[str] = None
    prompt: Optional[str] = None
    color: Optional[str] = None

    @model_validator(mode="after")
    def check_config_matches_type(self):
        if not self.config:
            return self
        document = TransformationConfig.model_validate(self.config).to_document()
        required_key = CONFIG_KEYS[self.transformation_type]
        if required_key not in document:
            raise ValueError(
                f"config for transformation '{self.transformation_type}' must contain '{required_key}'"
            )
        self.config = document
        return self


class ImageCreate(ImageBase):
    class Config:
        json_schema_extra = {
            "example": {
                "title": "Old portrait",
                "public_id": "pixelmorpher/portrait_1",
                "transformation_type": "restore",
                "width": 800,
                "height": 600,
                "config": {"restore": True},
                "secure_url": "https://res.cloudinary.com/demo/image/upload/pixelmorpher/portrait_1.jpg",
            }
        }


class ImageUpdate(ImageBase):
    id: int


class AuthorOut(BaseModel):
    id: int
    first_name: Optional[str]
    last_name: Optional[str]

    class Config:
        from_attributes = True


class ImageOut(ImageBase):
    id: int
    author_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ImageDetailOut(ImageOut):
    author: AuthorOut


class UserCreate(BaseModel):
    auth_id: str
    email: EmailStr
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    photo: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "auth_id": "109876543210",
                "email": "name@mail.com",
                "username": "TonyStark",
                "first_name": "Tony",
                "last_name": "Stark",
            }
        }


class UserUpdate(BaseModel):
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    photo: Optional[str] = None


class UserOut(BaseModel):
    id: int
    auth_id: str
    email: str
    username: str
    first_name: Optional[str]
    last_name: Optional[str]
    photo: Optional[str]
    credit_balance: int
    plan_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
