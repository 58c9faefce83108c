"""Competency taxonomy models.

A competency groups several behavioral indicators; each indicator is
measured by one or more assessment questions.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from src.models.base import BaseDocument
from src.utils.constants import BigFiveTrait, ContextScope


class Competency(BaseDocument):
    """Top level skill in the competency taxonomy."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    is_active: bool = Field(default=True)

    # External framework mappings
    big_five_category: Optional[str] = Field(default=None)
    onet_code: Optional[str] = Field(default=None)
    esco_uri: Optional[str] = Field(default=None)

    @field_validator("big_five_category", mode="before")
    @classmethod
    def normalize_big_five(cls, value: Any) -> Optional[str]:
        """Store Big Five categories by canonical trait name."""
        if value is None or value == "":
            return None
        try:
            return BigFiveTrait.from_category(str(value)).value
        except ValueError:
            return None

    @property
    def big_five_trait(self) -> Optional[BigFiveTrait]:
        """Big Five trait this competency loads on, if any."""
        if not self.big_five_category:
            return None
        return BigFiveTrait(self.big_five_category)

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("name", 1)]},
            {"keys": [("big_five_category", 1)]},
        ]


class BehavioralIndicator(BaseDocument):
    """Observable behavior through which a competency is measured."""

    competency_id: str = Field(...)
    title: Optional[str] = Field(default=None, max_length=300)
    description: Optional[str] = Field(default=None, max_length=2000)
    weight: float = Field(default=1.0, ge=0.0)
    measurement_type: Optional[str] = Field(default=None)
    context_scope: ContextScope = Field(default=ContextScope.UNIVERSAL)
    observability_level: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True)

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("competency_id", 1), ("is_active", 1)]},
        ]
