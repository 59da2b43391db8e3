from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FeedbackItem(BaseModel):
    content: str
    category: Optional[str] = None
    sentiment: Optional[str] = None


class InsightResult(BaseModel):
    title: str
    summary: str
    key_themes: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class GenerateInsightsRequest(BaseModel):
    feedback: Optional[list[FeedbackItem]] = None


class Profile(BaseModel):
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    onboarded: bool = False
    created_at: datetime
    updated_at: datetime


class SignupRequest(BaseModel):
    email: str = Field(..., min_length=3)
    full_name: str = ""


class SignupResponse(BaseModel):
    user_id: str
    profile: Profile


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    onboarded: Optional[bool] = None


class FeedbackSource(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    source_type: str = "product"
    created_at: datetime
    updated_at: datetime
    feedback_count: int = Field(0, ge=0)


class SourceCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    source_type: str = "product"


class SourceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    source_type: Optional[str] = None


class Feedback(BaseModel):
    id: str
    user_id: str
    source_id: Optional[str] = None
    content: str
    sentiment: Optional[str] = None
    category: Optional[str] = None
    created_at: datetime
    source_name: Optional[str] = None


class FeedbackCreate(BaseModel):
    content: str = Field(..., min_length=1)
    source_id: Optional[str] = None
    category: Optional[str] = None
    sentiment: Optional[str] = None


class Insight(BaseModel):
    id: str
    user_id: str
    title: str
    summary: str
    key_themes: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    feedback_count: int = Field(0, ge=0)
    created_at: datetime


class DashboardStats(BaseModel):
    total_feedback: int = Field(..., ge=0)
    total_sources: int = Field(..., ge=0)
    total_insights: int = Field(..., ge=0)
    recent_feedback: list[Feedback]


class ImportResponse(BaseModel):
    imported: int = Field(..., ge=0)
    feedback: list[Feedback]
