"""Subjective answer scoring agent."""

import logging

from pydantic import BaseModel, Field

from agents.base import BaseAgent, LLMClient, LLMResponseError
from agents.scoring.prompts import SCORING_SYSTEM_PROMPT, build_scoring_prompt
from core.scoring import StageScore, SubjectiveScoring
from database.models.assessments import Question, QuestionType
from database.models.test_instances import Answer

logger = logging.getLogger(__name__)

NO_ANSWER = "(no answer)"


class LLMStageScore(BaseModel):
    stage_index: int
    score: float = Field(ge=0, le=10)
    feedback: str = ""


class LLMScoringOutput(BaseModel):
    stages: list[LLMStageScore]
    explanation: str = ""


def build_qa_pairs(
    stage_questions: dict[int, list[Question]],
    answers: dict[str, Answer],
) -> list[dict]:
    pairs = []
    for stage_index in sorted(stage_questions):
        for question in stage_questions[stage_index]:
            answer = answers.get(question.id)
            pair = {
                "stage": stage_index,
                "type": QuestionType(question.question_type).value,
                "prompt": question.prompt_text,
                "answer": _answer_text(question, answer),
            }
            if question.options:
                pair["options"] = [
                    {"id": option.get("id"), "label": option.get("label")}
                    for option in question.options
                ]
            pairs.append(pair)
    return pairs


def _answer_text(question: Question, answer: Answer | None) -> str:
    if answer is None:
        return NO_ANSWER
    parts = []
    if answer.selected_option_id:
        parts.append(f"Selected option: {answer.selected_option_id}")
    if answer.answer_text:
        parts.append(answer.answer_text)
    return "\n".join(parts) or NO_ANSWER


class ScoringAgent(BaseAgent):
    """Scores stages that contain free-text answers."""

    def __init__(self, llm: LLMClient):
        super().__init__(
            name="scoring",
            instructions=SCORING_SYSTEM_PROMPT,
            llm=llm,
        )

    async def score_stages(
        self,
        stage_questions: dict[int, list[Question]],
        answers: dict[str, Answer],
    ) -> SubjectiveScoring:
        """
        One model call for all given stages.

        Raises:
            LLMError: the call failed
            LLMResponseError: unparseable output, or a requested stage missing
        """
        stage_indexes = sorted(stage_questions)
        raw = await self.run(build_scoring_prompt(stage_indexes, build_qa_pairs(stage_questions, answers)))
        output = self.parse(raw, LLMScoringOutput)

        by_stage = {stage.stage_index: stage for stage in output.stages}
        missing = [index for index in stage_indexes if index not in by_stage]
        if missing:
            raise LLMResponseError(f"LLM scoring omitted stages {missing}", raw)

        return SubjectiveScoring(
            stages=[
                StageScore(
                    stage_index=index,
                    score=by_stage[index].score,
                    feedback=by_stage[index].feedback,
                )
                for index in stage_indexes
            ],
            explanation=output.explanation,
            raw_response=raw,
        )
