"""
Hybrid scoring of a submitted test instance.

Stages made only of multiple-choice questions are scored here by exact
match against the marked-correct option. Any stage with a free-text question
is handed to a subjective scorer (the LLM) in a single call. Stage scores
are averaged and mapped onto a recommendation.
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Protocol, Sequence

from core.lifecycle import SCORED_STAGES
from database.models.assessments import Question, QuestionType
from database.models.test_instances import Answer, Recommendation

logger = logging.getLogger(__name__)

ADVANCE_THRESHOLD = 7.0
HOLD_THRESHOLD = 5.0

DETERMINISTIC_EXPLANATION = (
    "Assessment evaluated successfully based on objective multiple choice scoring."
)
DETERMINISTIC_RAW_RESPONSE = "Deterministic scoring only. No LLM call required."


@dataclass
class StageScore:
    stage_index: int
    score: float
    feedback: str


@dataclass
class SubjectiveScoring:
    """What the subjective scorer returns for the stages it was given."""

    stages: list[StageScore]
    explanation: str
    raw_response: str


@dataclass
class ScoringOutcome:
    stages: list[StageScore]
    overall_score: float
    recommendation: Recommendation
    explanation: str
    raw_response: str
    used_llm: bool = False
    llm_stage_indexes: list[int] = field(default_factory=list)

    def breakdown(self) -> dict:
        return {
            "stages": [asdict(stage) for stage in self.stages],
            "overall_score": self.overall_score,
            "recommendation": self.recommendation.value,
            "explanation": self.explanation,
            "llm_stages": self.llm_stage_indexes,
        }


class SubjectiveScorer(Protocol):
    async def score_stages(
        self,
        stage_questions: dict[int, list[Question]],
        answers: dict[str, Answer],
    ) -> SubjectiveScoring:
        ...


def round_half_up(value: float, digits: int = 1) -> float:
    """Round like a person would: 6.75 -> 6.8, 6.25 -> 6.3."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def recommend(overall_score: float) -> Recommendation:
    """Each band includes its lower bound."""
    if overall_score >= ADVANCE_THRESHOLD:
        return Recommendation.ADVANCE
    if overall_score >= HOLD_THRESHOLD:
        return Recommendation.HOLD
    return Recommendation.REJECT


def partition_by_stage(questions: Sequence[Question]) -> dict[int, list[Question]]:
    """Questions of the scored stages, keyed by stage, in position order."""
    stages: dict[int, list[Question]] = defaultdict(list)
    for question in sorted(questions, key=lambda q: (q.stage_index, q.position)):
        if question.stage_index in SCORED_STAGES:
            stages[question.stage_index].append(question)
    return dict(stages)


def is_objective_stage(questions: Sequence[Question]) -> bool:
    return bool(questions) and all(
        question.question_type == QuestionType.MCQ for question in questions
    )


def score_mcq_stage(
    stage_index: int,
    questions: Sequence[Question],
    answers: dict[str, Answer],
) -> StageScore:
    """Unanswered questions count as incorrect."""
    total = len(questions)
    correct = 0
    for question in questions:
        answer = answers.get(question.id)
        expected = question.correct_option_id
        if answer is not None and expected is not None and answer.selected_option_id == expected:
            correct += 1

    return StageScore(
        stage_index=stage_index,
        score=round_half_up(correct / total * 10, 1),
        feedback=(
            f"Candidate answered {correct} out of {total} multiple choice questions correctly."
        ),
    )


def aggregate(stage_scores: Sequence[StageScore]) -> float:
    total = sum(stage.score for stage in stage_scores)
    return round_half_up(total / max(1, len(stage_scores)), 1)


async def score_submission(
    questions: Sequence[Question],
    answers: Sequence[Answer],
    scorer: Optional[SubjectiveScorer],
) -> ScoringOutcome:
    """
    Score one submission.

    Args:
        questions: the assessment's full question set, with correct markers
        answers: the candidate's answers
        scorer: subjective scorer, only called when a stage needs it

    Returns:
        The merged, aggregated outcome. Errors from the scorer propagate.
    """
    answers_by_question = {answer.question_id: answer for answer in answers}
    stages = partition_by_stage(questions)

    deterministic: list[StageScore] = []
    subjective_stages: dict[int, list[Question]] = {}
    for stage_index, stage_questions in stages.items():
        if is_objective_stage(stage_questions):
            deterministic.append(score_mcq_stage(stage_index, stage_questions, answers_by_question))
        else:
            subjective_stages[stage_index] = stage_questions

    explanation = DETERMINISTIC_EXPLANATION
    raw_response = DETERMINISTIC_RAW_RESPONSE
    llm_scores: list[StageScore] = []

    if subjective_stages:
        if scorer is None:
            raise RuntimeError("A subjective scorer is required for free-text stages")
        logger.info(f"Sending stages {sorted(subjective_stages)} to the subjective scorer")
        result = await scorer.score_stages(subjective_stages, answers_by_question)
        llm_scores = [stage for stage in result.stages if stage.stage_index in subjective_stages]
        explanation = result.explanation or explanation
        raw_response = result.raw_response

    merged = sorted(deterministic + llm_scores, key=lambda stage: stage.stage_index)
    overall = aggregate(merged)

    return ScoringOutcome(
        stages=merged,
        overall_score=overall,
        recommendation=recommend(overall),
        explanation=explanation,
        raw_response=raw_response,
        used_llm=bool(subjective_stages),
        llm_stage_indexes=sorted(subjective_stages),
    )
