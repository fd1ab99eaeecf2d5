"""Assessment generation prompt templates."""

import json

from agents.common.prompts import JSON_OUTPUT

ASSESSMENT_SYSTEM_PROMPT = f"""You are an expert assessment designer and hiring analyst.
You build staged assessments with progressive cognitive escalation: each
stage asks more of the candidate than the one before.

{JSON_OUTPUT}"""


def build_generation_prompt(schema: dict) -> str:
    return f"""Given the parsed hiring schema below (JSON), generate a 12-question assessment grouped into 3 stages (stage_index 1..3). Follow these rules exactly:
- Each stage must contain exactly 4 questions.
- Stage 1 MUST contain exactly 4 mcq questions.
- Stage 2 MUST contain exactly 4 mcq questions.
- Stage 3 MUST contain exactly 4 short_structured questions.
- Question fields:
  - question_type: one of ["mcq","short_structured","hybrid_choice_justification"]
  - prompt_text: string
  - options: for mcq, 4 options each with "id", "label", and exactly one with "is_correct": true; otherwise []
  - char_limit: integer for short_structured (300-400), null for mcq
  - scoring_hint: 1-2 line string describing how to grade answers qualitatively
  - internal_intent: one of ["baseline","application","judgment","depth"]
- MCQ style: detailed, scenario-specific situational problems where the candidate must analyze the context to choose the best option. Never ask definition questions.
- Short structured style: subjective, experience-based questions rather than textbook answers.
- Keep prompts compact. Do not include difficulty labels in candidate-facing text.
- For MCQ options, use ids "a", "b", "c", "d".

Output JSON structure:
{{
  "duration_seconds": 1800,
  "stages": [
    {{ "stage_index": 1, "questions": [ {{ "question_type": "", "prompt_text": "", "options": [], "char_limit": null, "scoring_hint": "", "internal_intent": "baseline" }} ] }},
    {{ "stage_index": 2, "questions": [ ... ] }},
    {{ "stage_index": 3, "questions": [ ... ] }}
  ]
}}

Parsed schema:
{json.dumps(schema, indent=2)}"""
