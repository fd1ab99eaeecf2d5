"""Job description dissection prompt templates."""

from agents.common.prompts import ANALYTICAL_TONE, JSON_OUTPUT
from agents.jd_parser.validation import MAX_COMPETENCIES, VALID_FUNCTIONS, VALID_SENIORITY

JD_PARSER_SYSTEM_PROMPT = f"""{ANALYTICAL_TONE}

You are an expert hiring analyst. You dissect job descriptions into a
structured hiring schema in three passes:
1. Role classification: function, seniority, decision style
2. Competency extraction: the weighted abstract skills that separate strong
   candidates from weak ones
3. Tooling and constraints: context, not signal

{JSON_OUTPUT}"""


def _quoted(values: list[str]) -> str:
    return ", ".join(f'"{value}"' for value in values)


def build_jd_prompt(description: str) -> str:
    return f"""Dissect the following job description into a structured hiring schema.

Rules:
- Ignore generic HR fluff and cultural statements.
- Focus on what would differentiate a strong candidate from a weak one.
- Limit core competencies to a maximum of {MAX_COMPETENCIES}.
- Assign weights that sum to 1.0.
- Competencies are abstract skills; tools belong in "tools".
- "function" must be one of: {_quoted(VALID_FUNCTIONS)}
- "seniority" must be one of: {_quoted(VALID_SENIORITY)}
- confidence_score should be between 0 and 1

Output JSON schema:
{{
  "function": "",
  "role_family": "",
  "seniority": "",
  "decision_context": "",
  "core_competencies": [
    {{ "name": "", "weight": 0 }}
  ],
  "tools": [],
  "constraints": [],
  "confidence_score": 0
}}

Job Description:
{description}"""
