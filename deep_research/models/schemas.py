from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

MAX_KEY_EXCERPTS = 5


# --- Structured completion results ---


class ClarifyWithUser(BaseModel):
    need_clarification: bool = Field(
        description="Whether the user needs to be asked a clarification question.",
    )
    question: str = Field(
        default="",
        description="The question to ask the user when clarification is needed.",
    )
    verification: str = Field(
        default="",
        description="Message confirming sufficient information was received and research will begin.",
    )


class ResearchBrief(BaseModel):
    research_brief: str = Field(
        description="A single research brief that will guide the research process.",
    )


class WebpageSummary(BaseModel):
    summary: str = Field(description="Concise summary of the webpage content.")
    key_excerpts: list[str] = Field(
        default_factory=list,
        description="Up to 5 important quotes or excerpts from the page.",
    )

    @field_validator("key_excerpts")
    @classmethod
    def keep_first_excerpts(cls, v: list[str]) -> list[str]:
        """Keep only the first excerpts when the model returns too many."""
        return v[:MAX_KEY_EXCERPTS]


class ResearchReport(BaseModel):
    report: str = Field(description="The final Markdown research report.")


# --- Tool arguments ---


class SearchToolInput(BaseModel):
    query: str = Field(min_length=1, description="The search query to use for web search.")


class ReflectionToolInput(BaseModel):
    reflection: str = Field(
        description=(
            "Reflection on research progress: what was found, what is missing, "
            "and whether to search again or finish."
        ),
    )
