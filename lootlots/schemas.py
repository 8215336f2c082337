"""
Pydantic request models for the loot APIs.

Schemas + light validation only. Checks that depend on deployment config
(probability total, allowed option ids) live in the registry.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import NUM_CLASSES


class OptionSettingsIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quantity_per_open: int = Field(0, ge=0, description="Items per open; 0 disables the option")
    capacity: int = Field(0, ge=0, description="Maximum opens; 0 means unlimited")
    class_probabilities: List[int] = Field(default_factory=lambda: [0] * NUM_CLASSES)
    price: int = Field(0, ge=0, description="Unit price in minor currency units")

    @field_validator("class_probabilities")
    @classmethod
    def _six_non_negative(cls, v: List[int]) -> List[int]:
        if len(v) != NUM_CLASSES:
            raise ValueError(f"expected {NUM_CLASSES} class weights, got {len(v)}")
        if any(p < 0 for p in v):
            raise ValueError("class weights must be non-negative")
        return v


class ValidateTableIn(BaseModel):
    class_probabilities: List[int]
    exact: bool = False


class ClassBindingIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token_id: int = Field(..., gt=0)


class OpenIn(BaseModel):
    quantity: int = Field(1, gt=0, strict=True)
    payment: Optional[int] = Field(None, ge=0, strict=True)


class IssueIn(BaseModel):
    recipient: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(1, gt=0)


class WithdrawIn(BaseModel):
    recipient: Optional[str] = Field(None, min_length=1, max_length=64)


class RegisterIn(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    display_name: str = Field(..., min_length=1, max_length=64)

    @field_validator("email")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.strip().lower()


class LoginIn(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)

    @field_validator("email")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.strip().lower()
