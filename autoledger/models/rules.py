"""
Classification Rule Models

A RuleSet is immutable. The rule engine never edits one in place; a
remote update builds a new RuleSet and swaps it in whole.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ClassificationRule(BaseModel):
    """Keywords that map a notification to one category."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    category: str = Field(..., min_length=1)
    keywords: tuple[str, ...] = Field(..., min_length=1)

    @field_validator('keywords')
    @classmethod
    def drop_blank_keywords(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(k.strip() for k in v if k and k.strip())
        if not cleaned:
            raise ValueError("A rule needs at least one non-blank keyword")
        return cleaned


class BankAlias(BaseModel):
    """Keyword found in alert text and the channel name it stands for."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    keyword: str = Field(..., min_length=1)
    canonical_name: str = Field(..., min_length=1)


class RuleSet(BaseModel):
    """One consistent version of both rule lists."""
    model_config = ConfigDict(frozen=True)

    category_rules: tuple[ClassificationRule, ...] = ()
    bank_aliases: tuple[BankAlias, ...] = ()
    version: str = Field(
        default="bundled",
        description="Where this rule set came from"
    )
    updated_at: Optional[datetime] = None
