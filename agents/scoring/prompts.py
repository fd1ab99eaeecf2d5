"""Subjective scoring prompt templates."""

import json

from agents.common.prompts import JSON_OUTPUT, SCORING_SCALE

SCORING_SYSTEM_PROMPT = f"""You are a consistent, deterministic assessment scorer.
You grade a candidate's answers per stage against what the question is meant to reveal.

{SCORING_SCALE}

{JSON_OUTPUT}"""


def build_scoring_prompt(stage_indexes: list[int], qa_pairs: list[dict]) -> str:
    stages = ", ".join(str(index) for index in stage_indexes)
    return f"""Evaluate the candidate's answers as a whole and per stage.

Rules:
- Provide a score (0-10) and 1-sentence feedback for EACH of the following stages: {stages}.
- Provide an explanation paragraph summarizing the candidate's overall strengths and weaknesses based on the provided answers.

Output JSON:
{{
  "stages": [ {{ "stage_index": 1, "score": 0.0, "feedback": "" }} ],
  "explanation": ""
}}

Questions and Answers:
{json.dumps(qa_pairs, indent=2)}"""
