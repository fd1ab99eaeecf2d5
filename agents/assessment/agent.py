"""Assessment generation agent."""

from agents.assessment.prompts import ASSESSMENT_SYSTEM_PROMPT, build_generation_prompt
from agents.assessment.validation import GeneratedAssessment, validate_generated_assessment
from agents.base import BaseAgent, LLMClient, StructuredResult


class AssessmentAgent(BaseAgent):
    """Generates a 3-stage, 12-question assessment from a hiring schema."""

    def __init__(self, llm: LLMClient):
        super().__init__(
            name="assessment_generator",
            instructions=ASSESSMENT_SYSTEM_PROMPT,
            llm=llm,
        )

    async def generate(self, schema: dict) -> StructuredResult[GeneratedAssessment]:
        """Generate an assessment; the result may still be invalid after retries."""
        return await self.run_structured(
            build_generation_prompt(schema),
            GeneratedAssessment,
            validate_generated_assessment,
        )
