"""Job description dissection agent."""

from agents.base import BaseAgent, LLMClient, StructuredResult
from agents.jd_parser.prompts import JD_PARSER_SYSTEM_PROMPT, build_jd_prompt
from agents.jd_parser.validation import ParsedJD, validate_parsed_jd


class JobDescriptionAgent(BaseAgent):
    """Turns raw job description text into a validated hiring schema."""

    def __init__(self, llm: LLMClient):
        super().__init__(
            name="jd_parser",
            instructions=JD_PARSER_SYSTEM_PROMPT,
            llm=llm,
        )

    async def dissect(self, description: str) -> StructuredResult[ParsedJD]:
        """Dissect a job description.

        Args:
            description: raw JD text

        Returns:
            Parsed schema, its validation result and the raw model text.
            An invalid schema is returned, not raised; callers persist it
            flagged as invalid.
        """
        return await self.run_structured(
            build_jd_prompt(description),
            ParsedJD,
            validate_parsed_jd,
            max_output_tokens=2048,
        )
