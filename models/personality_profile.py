from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


CommunicationStyle = Literal["direct", "collaborative", "analytical", "supportive", "results-oriented"]
WorkStyle = Literal["independent", "team-oriented", "leadership", "mentorship", "innovative"]
DecisionMaking = Literal["data-driven", "intuitive", "consensus-building", "quick-decisive", "thorough-analytical"]
NetworkingMotivation = Literal["deal-making", "knowledge-sharing", "relationship-building", "mentorship", "innovation"]


class BigFive(BaseModel):
    openness: int = Field(ge=0, le=100)
    conscientiousness: int = Field(ge=0, le=100)
    extraversion: int = Field(ge=0, le=100)
    agreeableness: int = Field(ge=0, le=100)
    neuroticism: int = Field(ge=0, le=100)

    model_config = ConfigDict(extra="forbid")


class PersonalityProfile(BaseModel):
    """LLM structured output: personality enrichment for one member."""

    big_five: BigFive = Field(alias="bigFive")
    communication_style: CommunicationStyle = Field(alias="communicationStyle")
    work_style: WorkStyle = Field(alias="workStyle")
    decision_making: DecisionMaking = Field(alias="decisionMaking")
    networking_motivation: NetworkingMotivation = Field(alias="networkingMotivation")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


DEFAULT_PERSONALITY = PersonalityProfile(
    big_five=BigFive(
        openness=50,
        conscientiousness=50,
        extraversion=50,
        agreeableness=50,
        neuroticism=50,
    ),
    communication_style="collaborative",
    work_style="team-oriented",
    decision_making="data-driven",
    networking_motivation="relationship-building",
)
