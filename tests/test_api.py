import asyncio
import json
from datetime import timedelta

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from conftest import NOW, PASSWORD
from models import ContentStatus, ContentType, UserRole
from routers.submissions import get_notifier
from server import app
from time_utils import get_clock

API = "/api/v1"


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def __call__(self, to, subject, template, context):
        self.calls.append((to, template))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(notifier):
    app.dependency_overrides[get_clock] = lambda: (lambda: NOW)
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _competition_form(**overrides):
    data = {
        "title": "Video Storytelling Cup",
        "type": "VIDEO",
        "description": "Tell a story in five minutes",
        "start_date": (NOW - timedelta(days=1)).isoformat(),
        "end_date": (NOW + timedelta(days=20)).isoformat(),
        "submission_deadline": (NOW + timedelta(days=10)).isoformat(),
        "winner_count": 1,
        "parameters": [{"parameterName": "Story", "weight": 100}],
    }
    data.update(overrides)
    return {"data": json.dumps(data)}


def _submission_form(slug, content_type="VIDEO", field="videoData"):
    return {
        "data": json.dumps({
            "competition_slug": slug,
            "type": content_type,
            field: {"title": "A day at the workshop", "duration": 240},
        })
    }


def test_health(client):
    assert client.get(f"{API}/health").json() == {"status": "ok"}


def test_login_returns_token(client, make):
    user = make.user(UserRole.STAFF, email="staff@example.com")

    response = client.post(f"{API}/auth/login", json={"email": "STAFF@example.com", "password": PASSWORD})

    assert response.status_code == 200
    assert response.json()["uuid"] == user.uuid
    assert client.post(f"{API}/auth/login", json={"email": "staff@example.com", "password": "nope"}).status_code == 401


def test_staff_creates_and_reads_competition(client, make, headers_for):
    staff = make.user(UserRole.STAFF)

    created = client.post(f"{API}/competitions", data=_competition_form(), headers=headers_for(staff))

    assert created.status_code == 200
    body = created.json()
    assert body["status"] == "success"
    assert body["data"]["slug"] == "video-storytelling-cup"

    detail = client.get(f"{API}/competitions/{body['data']['uuid']}").json()["data"]
    assert detail["title"] == "Video Storytelling Cup"
    assert detail["parameters"][0]["name"] == "Story"

    listing = client.get(f"{API}/competitions/active").json()
    assert [row["uuid"] for row in listing["data"]] == [body["data"]["uuid"]]


def test_only_staff_can_create_competition(client, make, headers_for):
    student = make.student()
    response = client.post(f"{API}/competitions", data=_competition_form(), headers=headers_for(student.user))
    assert response.status_code == 403
    assert response.json()["statusCode"] == 403


def test_invalid_competition_form_is_422(client, make, headers_for):
    staff = make.user(UserRole.STAFF)
    response = client.post(
        f"{API}/competitions",
        data=_competition_form(winner_count=0),
        headers=headers_for(staff),
    )
    assert response.status_code == 422
    assert response.json()["path"] == f"{API}/competitions"


def test_submit_flow_with_error_envelopes(client, make, headers_for):
    competition = make.competition(content_type=ContentType.VIDEO)
    student = make.student()
    headers = headers_for(student.user)

    created = client.post(f"{API}/competitions/submit", data=_submission_form(competition.slug), headers=headers)
    assert created.status_code == 200
    assert created.json()["data"]["competition_slug"] == competition.slug

    duplicate = client.post(f"{API}/competitions/submit", data=_submission_form(competition.slug), headers=headers)
    assert duplicate.status_code == 409
    body = duplicate.json()
    assert body["statusCode"] == 409
    assert body["path"] == f"{API}/competitions/submit"
    assert "timestamp" in body

    other = make.student()
    mismatch = client.post(
        f"{API}/competitions/submit",
        data=_submission_form(competition.slug, "AUDIO", "audioData"),
        headers=headers_for(other.user),
    )
    assert mismatch.status_code == 400


def test_submit_after_deadline(client, make, headers_for):
    competition = make.competition(content_type=ContentType.VIDEO, submission_deadline=NOW - timedelta(minutes=1))
    student = make.student()

    response = client.post(f"{API}/competitions/submit", data=_submission_form(competition.slug), headers=headers_for(student.user))

    assert response.status_code == 400
    assert response.json()["message"] == "Submission deadline has passed."


def test_approve_and_reject_endpoints(client, make, headers_for, notifier, db):
    staff = make.user(UserRole.STAFF)
    competition = make.competition()
    first = make.submission(competition, status=ContentStatus.PENDING)
    second = make.submission(competition, status=ContentStatus.PENDING)

    approved = client.patch(f"{API}/submissions/{first.uuid}/approve", headers=headers_for(staff))
    rejected = client.patch(
        f"{API}/submissions/{second.uuid}/reject",
        json={"reason": "Off topic"},
        headers=headers_for(staff),
    )

    assert approved.json()["data"]["content_status"] == "APPROVED"
    assert rejected.json()["data"]["content_status"] == "REJECTED"
    assert [template for _, template in notifier.calls] == ["submission-approved", "submission-rejected"]


def test_content_status_endpoint(client, make, headers_for):
    staff = make.user(UserRole.STAFF)
    content = make.content(status=ContentStatus.PENDING)

    response = client.patch(f"{API}/contents/{content.uuid}/status", json={"status": "APPROVED"}, headers=headers_for(staff))
    assert response.json() == {"uuid": content.uuid, "status": "APPROVED"}

    missing = client.patch(f"{API}/contents/nope/status", json={"status": "APPROVED"}, headers=headers_for(staff))
    assert missing.status_code == 404


def test_judge_scoring_endpoint(client, make, headers_for):
    competition = make.competition(weights=(100,))
    judge = make.judge(competition)
    submission = make.submission(competition)
    parameter_uuid = competition.parameters[0].uuid
    url = f"{API}/judges/{judge.user.uuid}/submission"
    headers = headers_for(judge.user)

    out_of_range = client.patch(
        url,
        json={"submission_uuid": submission.uuid, "parameter_scores": [{"parameter_uuid": parameter_uuid, "score": 6}]},
        headers=headers,
    )
    assert out_of_range.status_code == 422

    body = {"submission_uuid": submission.uuid, "parameter_scores": [{"parameter_uuid": parameter_uuid, "score": 4}]}
    assert client.patch(url, json=body, headers=headers).status_code == 200

    again = client.patch(url, json=body, headers=headers)
    assert again.status_code == 409
    assert again.json()["message"] == "You have already rated this submission"

    summary = client.get(f"{API}/judges/summary/{competition.uuid}", headers=headers).json()["data"]
    assert summary["scoredSubmissions"] == 1


def test_determine_winners_endpoint_and_listing(client, make, headers_for):
    staff = make.user(UserRole.STAFF)
    competition = make.competition(
        end_date=NOW - timedelta(days=1),
        submission_deadline=NOW - timedelta(days=2),
        weights=(100,),
        winner_count=1,
    )
    judge = make.judge(competition)
    submission = make.submission(competition)
    make.score(judge, submission, competition.parameters[0], 5)

    determined = client.post(f"{API}/competitions/{competition.uuid}/winners/determine", headers=headers_for(staff))
    assert determined.status_code == 200

    winners = client.get(f"{API}/competitions/{competition.uuid}/winners").json()["data"]
    assert [(row["rank"], row["submission_uuid"]) for row in winners] == [(1, submission.uuid)]

    repeat = client.post(f"{API}/competitions/{competition.uuid}/winners/determine", headers=headers_for(staff))
    assert repeat.status_code == 409


def test_standings_export_is_xlsx(client, make, headers_for):
    staff = make.user(UserRole.STAFF)
    competition = make.competition()
    make.submission(competition)

    response = client.get(f"{API}/competitions/{competition.uuid}/standings/export", headers=headers_for(staff))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert response.content[:2] == b"PK"


def test_only_offloading_handlers_run_on_the_event_loop():
    coroutine_routes = {
        route.path
        for route in app.routes
        if isinstance(route, APIRoute) and asyncio.iscoroutinefunction(route.endpoint)
    }

    assert coroutine_routes == {
        f"{API}/health",
        f"{API}/competitions/{{competition_uuid}}/winners/determine",
        f"{API}/submissions/{{submission_uuid}}/approve",
        f"{API}/submissions/{{submission_uuid}}/reject",
    }
