# apps/ai_recap/models.py
#
# Stored shapes. Field aliases are the JSON names on disk.

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class ArticleReference(BaseModel):
    """One source article as handed to the LLM."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    link: str
    description: str
    pub_date: str = Field(alias="pubDate")  # ISO 8601 / RFC 822, as found in the feed


class DailyRecap(BaseModel):
    """AI-generated recap of one calendar day of a feed."""

    date: str  # YYYY-MM-DD
    html: str
    articles: List[ArticleReference] = []
