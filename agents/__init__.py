"""
LLM-backed agents.

Each agent lives in its own package with agent.py, prompts.py and, where
its output needs checking, validation.py. All agents share one LLMClient
built at process start.
"""

from dataclasses import dataclass

from agents.assessment.agent import AssessmentAgent
from agents.base import BaseAgent, LLMClient, LLMError, LLMResponseError
from agents.jd_parser.agent import JobDescriptionAgent
from agents.scoring.agent import ScoringAgent


@dataclass
class AgentSuite:
    jd_parser: JobDescriptionAgent
    assessment: AssessmentAgent
    scoring: ScoringAgent


def build_agents(llm: LLMClient) -> AgentSuite:
    return AgentSuite(
        jd_parser=JobDescriptionAgent(llm),
        assessment=AssessmentAgent(llm),
        scoring=ScoringAgent(llm),
    )


__all__ = [
    "AgentSuite",
    "AssessmentAgent",
    "BaseAgent",
    "JobDescriptionAgent",
    "LLMClient",
    "LLMError",
    "LLMResponseError",
    "ScoringAgent",
    "build_agents",
]
