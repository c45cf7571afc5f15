"""Pydantic models and enums for the VenturePilot stage pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class VentureStage(str, Enum):
    """Enumerate the pipeline stages in their fixed order."""

    IDEATION = "ideation"
    VALIDATION = "validation"
    BRANDING = "branding"
    MVP = "mvp"
    DEPLOY = "deploy"
    LAUNCH = "launch"
    FEEDBACK = "feedback"
    OPS = "ops"

    @property
    def order(self) -> int:
        """Return a human-friendly order index for the stage."""
        return list(VentureStage).index(self) + 1


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ChatMessage(BaseModel):
    """A single transcript entry; only ``role`` and ``content`` ever leave the process."""

    model_config = ConfigDict(extra="ignore")

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class StageResult(CamelModel):
    """Normalized output of a free-text stage reply."""

    reply: str
    refined_idea: Optional[str] = None
    next_stage: Optional[VentureStage] = None
    plan: Optional[str] = None


class Canvas(BaseModel):
    """Structured idea representation returned by the idea stage."""

    summary: str
    requirements: List[str] = Field(default_factory=list)
    questions: List[str] = Field(default_factory=list)


class Branding(CamelModel):
    name: str = ""
    tagline: str = ""
    colors: List[str] = Field(default_factory=list)
    logo_desc: str = ""


class MvpFeature(BaseModel):
    feature: str
    description: str


class MvpSpec(CamelModel):
    """The ``mvp`` block of an extracted plan; mirrors ``MVP_PLAN_SCHEMA``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    features: List[MvpFeature] = Field(..., min_length=1)
    technology: str = Field(..., min_length=1)
    target_audience: Optional[str] = None
    business_model: Optional[str] = None
    launch_plan: Optional[str] = None
    visual_style: Optional[str] = None
    user_flow: Optional[str] = None
    data_flow: Optional[str] = None
    key_components: List[str] = Field(default_factory=list)
    example_interactions: List[str] = Field(default_factory=list)


class BackendEndpoint(BaseModel):
    path: str
    method: str
    description: str


class MvpPlan(CamelModel):
    mvp: MvpSpec
    backend_endpoints: List[BackendEndpoint] = Field(default_factory=list)


class Takeaways(CamelModel):
    refined_idea: Optional[str] = None
    validation_summary: Optional[str] = None
    branding: Optional[Branding] = None
    final_plan: Optional[str] = None


class VentureIdea(CamelModel):
    """Caller-owned venture record; the core reads and copies it, never stores it."""

    id: str
    title: str = ""
    messages: List[ChatMessage] = Field(default_factory=list)
    current_stage: VentureStage = VentureStage.IDEATION
    takeaways: Takeaways = Field(default_factory=Takeaways)
    validation: Optional[str] = None
    branding: Optional[Branding] = None
    pages_url: Optional[str] = None
    repo_url: Optional[str] = None
    deployed: bool = False


class StageDefinition(BaseModel):
    """Expose metadata that describes a stage to the UI."""

    id: VentureStage
    label: str
    description: str
    order: int
