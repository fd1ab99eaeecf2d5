"""
Candidate flow through the API: invite redemption, stage gating, autosave,
advancing, time limits, ending early, scoring and HR review.
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from agents.base import LLMError
from database.models.test_instances import Answer, TestInstance
from database.types import utcnow


def _correct_answers(questions, option_id="a"):
    return [{"question_id": question["id"], "selected_option_id": option_id} for question in questions]


async def _advance(client, instance_id, questions, option_id="a"):
    response = await client.post(
        f"/api/v1/test-instances/{instance_id}/answers",
        json={"answers": _correct_answers(questions, option_id), "advance": True},
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestInviteRedemption:

    @pytest.mark.asyncio
    async def test_verify_then_start(self, client, hr_headers, create_published_assessment):
        ids = await create_published_assessment()
        invite = (
            await client.post(f"/api/v1/assessments/{ids['assessment_id']}/invites", headers=hr_headers)
        ).json()
        assert invite["url"] == f"https://assess.example.com/test/invite?token={invite['token']}"

        response = await client.get("/api/v1/invites/verify", params={"token": invite["token"]})
        assert response.status_code == 200
        assert response.json()["valid"] is True

        response = await client.post("/api/v1/invites/start", json={"token": invite["token"]})
        assert response.status_code == 201
        started = response.json()
        assert started["current_stage"] == 1
        assert len(started["questions"]) == 4
        for question in started["questions"]:
            assert "scoring_hint" not in question
            assert all("is_correct" not in option for option in question["options"])

    @pytest.mark.asyncio
    async def test_single_use_invite_redeems_once(self, client, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])

        response = await client.post("/api/v1/invites/start", json={"token": started["invite"]["token"]})

        assert response.status_code == 410
        assert response.json()["error"]["code"] == "INVITE_ALREADY_USED"

    @pytest.mark.asyncio
    async def test_multi_use_invite(self, client, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"], single_use=False)

        response = await client.post("/api/v1/invites/start", json={"token": started["invite"]["token"]})

        assert response.status_code == 201
        assert response.json()["instance_id"] != started["instance_id"]

    @pytest.mark.asyncio
    async def test_unknown_token(self, client):
        response = await client.get("/api/v1/invites/verify", params={"token": "nope"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "INVITE_INVALID"

    @pytest.mark.asyncio
    async def test_closed_assessment_refuses_redemption(self, client, hr_headers, create_published_assessment):
        ids = await create_published_assessment()
        invite = (
            await client.post(f"/api/v1/assessments/{ids['assessment_id']}/invites", headers=hr_headers)
        ).json()
        await client.post(f"/api/v1/assessments/{ids['assessment_id']}/close", headers=hr_headers)

        response = await client.post("/api/v1/invites/start", json={"token": invite["token"]})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ASSESSMENT_NOT_ACTIVE"


class TestStageAccess:

    @pytest.mark.asyncio
    async def test_future_stage_locked(self, client, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])

        response = await client.get(f"/api/v1/test-instances/{started['instance_id']}/stages/2")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "STAGE_LOCKED"

    @pytest.mark.asyncio
    async def test_earlier_stage_readable_with_saved_answers(
        self, client, create_published_assessment, start_instance
    ):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        await _advance(client, started["instance_id"], started["questions"])

        response = await client.get(f"/api/v1/test-instances/{started['instance_id']}/stages/1")

        assert response.status_code == 200
        body = response.json()
        assert body["current_stage"] == 2
        assert len(body["answers"]) == 4

    @pytest.mark.asyncio
    async def test_answer_for_other_stage_rejected(self, client, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        stage_two = (await _advance(client, started["instance_id"], started["questions"]))["questions"]

        # Back on stage 2, a stage-1 question id is out of bounds
        response = await client.post(
            f"/api/v1/test-instances/{started['instance_id']}/answers",
            json={"answers": _correct_answers(started["questions"][:1])},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"
        assert stage_two[0]["stage_index"] == 2

    @pytest.mark.asyncio
    async def test_unknown_option_rejected(self, client, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])

        response = await client.post(
            f"/api/v1/test-instances/{started['instance_id']}/answers",
            json={"answers": _correct_answers(started["questions"][:1], option_id="z")},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_stage_index(self, client, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])

        response = await client.get(f"/api/v1/test-instances/{started['instance_id']}/stages/5")

        assert response.status_code == 400


class TestAnswers:

    @pytest.mark.asyncio
    async def test_autosave_is_idempotent(self, client, session, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        payload = {"answers": _correct_answers(started["questions"][:1])}

        for _ in range(2):
            response = await client.post(f"/api/v1/test-instances/{started['instance_id']}/answers", json=payload)
            assert response.status_code == 200
            assert response.json() == {"status": "saved", "current_stage": 1, "saved": 1}

        count = (
            await session.execute(
                select(func.count()).select_from(Answer).where(Answer.instance_id == started["instance_id"])
            )
        ).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_later_save_wins(self, client, session, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        instance_id = started["instance_id"]
        question_id = started["questions"][0]["id"]

        for option_id in ("b", "c"):
            await client.post(
                f"/api/v1/test-instances/{instance_id}/answers",
                json={"answers": [{"question_id": question_id, "selected_option_id": option_id}]},
            )

        stage = (await client.get(f"/api/v1/test-instances/{instance_id}/stages/1")).json()
        assert [answer["selected_option_id"] for answer in stage["answers"]] == ["c"]


class TestCompletion:

    @pytest.mark.asyncio
    async def test_final_advance_submits_and_scores(self, client, hr_headers, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        instance_id = started["instance_id"]

        stage_two = await _advance(client, instance_id, started["questions"])
        assert stage_two["status"] == "advanced"
        stage_three = await _advance(client, instance_id, stage_two["questions"])
        assert stage_three["current_stage"] == 3

        result = await _advance(client, instance_id, stage_three["questions"])

        assert result["status"] == "submitted"
        assert result["reason"] == "completed"
        assert result["current_stage"] == 3
        assert result["scoring_status"] == "scored"

        submission = (await client.get(f"/api/v1/submissions/{instance_id}", headers=hr_headers)).json()
        assert submission["overall_score"] == 10.0
        assert submission["recommendation"] == "Advance"
        assert submission["effective_recommendation"] == "Advance"
        assert [stage["stage_index"] for stage in submission["stages"]] == [1, 2, 3]

        results = (await client.get(f"/api/v1/jobs/{ids['job_id']}/results", headers=hr_headers)).json()
        assert [row["id"] for row in results["submissions"]] == [instance_id]

    @pytest.mark.asyncio
    async def test_wrong_answers_reject(self, client, hr_headers, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        instance_id = started["instance_id"]

        questions = started["questions"]
        for _ in range(3):
            result = await _advance(client, instance_id, questions, option_id="b")
            questions = result.get("questions", [])

        submission = (await client.get(f"/api/v1/submissions/{instance_id}", headers=hr_headers)).json()
        assert submission["overall_score"] == 0.0
        assert submission["recommendation"] == "Reject"

    @pytest.mark.asyncio
    async def test_no_writes_after_submission(self, client, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        instance_id = started["instance_id"]
        await client.post(f"/api/v1/test-instances/{instance_id}/end")

        response = await client.post(
            f"/api/v1/test-instances/{instance_id}/answers",
            json={"answers": _correct_answers(started["questions"])},
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ALREADY_SUBMITTED"

    @pytest.mark.asyncio
    async def test_end_early(self, client, hr_headers, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        instance_id = started["instance_id"]
        await client.post(
            f"/api/v1/test-instances/{instance_id}/answers",
            json={"answers": _correct_answers(started["questions"])},
        )

        response = await client.post(f"/api/v1/test-instances/{instance_id}/end")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "submitted"
        assert body["current_stage"] == 1
        assert body["scoring_status"] == "scored"

        # Stage 1 perfect, stages 2 and 3 unanswered
        submission = (await client.get(f"/api/v1/submissions/{instance_id}", headers=hr_headers)).json()
        assert submission["overall_score"] == pytest.approx(3.3)

        again = await client.post(f"/api/v1/test-instances/{instance_id}/end")
        assert again.status_code == 403

    @pytest.mark.asyncio
    async def test_time_up_mid_stage_two(self, client, session, hr_headers, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        instance_id = started["instance_id"]
        stage_two = await _advance(client, instance_id, started["questions"])

        await session.execute(
            update(TestInstance)
            .where(TestInstance.id == instance_id)
            .values(started_at=utcnow() - timedelta(hours=2))
        )
        await session.commit()

        response = await client.post(
            f"/api/v1/test-instances/{instance_id}/answers",
            json={"answers": _correct_answers(stage_two["questions"][:2])},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "submitted"
        assert body["reason"] == "time_expired"
        assert body["current_stage"] == 2
        assert body["scoring_status"] == "scored"

        # Answers sent with the late request are kept: 4 from stage 1, 2 from stage 2
        saved = (
            await session.execute(
                select(func.count()).select_from(Answer).where(Answer.instance_id == instance_id)
            )
        ).scalar_one()
        assert saved == 6


class TestScoringFailure:

    @pytest.mark.asyncio
    async def test_llm_failure_marks_error(self, client, llm, hr_headers, create_published_assessment, start_instance):
        ids = await create_published_assessment(stage_types={2: "short_structured"})
        started = await start_instance(ids["assessment_id"])
        instance_id = started["instance_id"]
        llm.queue(LLMError("LLM call timed out after 60s"))

        response = await client.post(f"/api/v1/test-instances/{instance_id}/end")

        assert response.status_code == 200
        assert response.json()["scoring_status"] == "error"
        submission = (await client.get(f"/api/v1/submissions/{instance_id}", headers=hr_headers)).json()
        assert submission["overall_score"] is None
        assert submission["scoring_error"]["type"] == "LLMError"

    @pytest.mark.asyncio
    async def test_llm_scores_free_text_stage(self, client, llm, hr_headers, create_published_assessment, start_instance):
        ids = await create_published_assessment(stage_types={2: "short_structured"})
        started = await start_instance(ids["assessment_id"])
        instance_id = started["instance_id"]
        stage_two = await _advance(client, instance_id, started["questions"])
        await client.post(
            f"/api/v1/test-instances/{instance_id}/answers",
            json={
                "answers": [
                    {"question_id": question["id"], "answer_text": "I would add an index and measure."}
                    for question in stage_two["questions"]
                ],
                "advance": True,
            },
        )
        llm.queue({"stages": [{"stage_index": 2, "score": 7.0, "feedback": "Solid"}], "explanation": "ok"})

        response = await client.post(f"/api/v1/test-instances/{instance_id}/end")

        assert response.json()["scoring_status"] == "scored"
        submission = (await client.get(f"/api/v1/submissions/{instance_id}", headers=hr_headers)).json()
        # (10 + 7 + 0) / 3
        assert submission["overall_score"] == 5.7
        assert submission["recommendation"] == "Hold"


class TestOverride:

    @pytest.mark.asyncio
    async def test_override_changes_effective_only(self, client, hr_headers, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        instance_id = started["instance_id"]
        await client.post(f"/api/v1/test-instances/{instance_id}/end")
        before = (await client.get(f"/api/v1/submissions/{instance_id}", headers=hr_headers)).json()

        response = await client.post(
            f"/api/v1/submissions/{instance_id}/override",
            json={"recommendation": "Advance"},
            headers=hr_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "effective_recommendation": "Advance"}
        after = (await client.get(f"/api/v1/submissions/{instance_id}", headers=hr_headers)).json()
        assert after["hr_override"] == "Advance"
        assert after["recommendation"] == before["recommendation"] == "Reject"
        assert after["overall_score"] == before["overall_score"]

    @pytest.mark.asyncio
    async def test_override_requires_submission(self, client, hr_headers, create_published_assessment, start_instance):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])

        response = await client.post(
            f"/api/v1/submissions/{started['instance_id']}/override",
            json={"recommendation": "Hold"},
            headers=hr_headers,
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_override_scoped_to_owner(
        self, client, other_hr_headers, create_published_assessment, start_instance
    ):
        ids = await create_published_assessment()
        started = await start_instance(ids["assessment_id"])
        await client.post(f"/api/v1/test-instances/{started['instance_id']}/end")

        response = await client.post(
            f"/api/v1/submissions/{started['instance_id']}/override",
            json={"recommendation": "Hold"},
            headers=other_hr_headers,
        )

        assert response.status_code == 404
