from datetime import timedelta

import pytest
from openpyxl import load_workbook
from pydantic import ValidationError as PydanticValidationError

from competition_service import (
    build_standings_workbook,
    create_competition,
    get_competition_detail,
    get_standings,
    get_winners,
    list_active_competitions,
    list_all_competitions,
    list_competitions_by_type,
    list_finished_competitions,
    remove_competition,
    update_competition,
)
from errors import NotFoundError, ValidationError
from models import Competition, ContentStatus, ContentType, EvaluationParameter, Judge, Winner
from schemas import CompetitionCreate, CompetitionUpdate


def _create_payload(now, **overrides):
    data = {
        "title": "Podcast Festival 2026",
        "type": "AUDIO",
        "description": "Show us your best podcast episode",
        "start_date": now.isoformat(),
        "end_date": (now + timedelta(days=30)).isoformat(),
        "submission_deadline": (now + timedelta(days=20)).isoformat(),
        "winner_count": 2,
        "parameters": [{"parameterName": "Content", "weight": 60}, {"parameterName": "Delivery", "weight": 40}],
    }
    data.update(overrides)
    return CompetitionCreate.model_validate(data)


def test_create_competition_with_parameters_and_judges(db, make, now):
    judge = make.judge()

    result = create_competition(db, _create_payload(now, judges=[judge.user.uuid]))

    competition = db.query(Competition).filter(Competition.uuid == result["data"]["uuid"]).one()
    assert competition.slug == "podcast-festival-2026"
    assert [(p.name, p.weight) for p in competition.parameters] == [("Content", 60), ("Delivery", 40)]
    db.refresh(judge)
    assert judge.competition_id == competition.id


def test_create_competition_slug_collision_gets_suffix(db, now):
    create_competition(db, _create_payload(now))
    second = create_competition(db, _create_payload(now))
    third = create_competition(db, _create_payload(now))

    assert second["data"]["slug"] == "podcast-festival-2026-1"
    assert third["data"]["slug"] == "podcast-festival-2026-2"


def test_create_competition_with_unknown_judge_persists_nothing(db, now):
    with pytest.raises(NotFoundError):
        create_competition(db, _create_payload(now, judges=["not-a-judge"]))

    assert db.query(Competition).count() == 0
    assert db.query(EvaluationParameter).count() == 0


def test_deadline_after_end_date_is_rejected(now):
    with pytest.raises(PydanticValidationError):
        _create_payload(now, submission_deadline=(now + timedelta(days=31)).isoformat())


def test_update_validates_merged_schedule(db, make, now):
    competition = make.competition()

    with pytest.raises(ValidationError):
        update_competition(db, competition.uuid, CompetitionUpdate(end_date=now + timedelta(days=1)))


def test_update_title_regenerates_slug_and_replaces_parameters(db, make):
    competition = make.competition()

    update_competition(
        db,
        competition.uuid,
        CompetitionUpdate.model_validate({
            "title": "Renamed Festival",
            "parameters": [{"parameterName": "Creativity", "weight": 100}],
        }),
    )

    db.refresh(competition)
    assert competition.slug == "renamed-festival"
    assert [p.name for p in competition.parameters] == ["Creativity"]


def test_parameters_are_locked_once_scored(db, make):
    competition = make.competition(weights=(100,))
    judge = make.judge(competition)
    submission = make.submission(competition)
    make.score(judge, submission, competition.parameters[0], 3)

    with pytest.raises(ValidationError):
        update_competition(
            db,
            competition.uuid,
            CompetitionUpdate.model_validate({"parameters": [{"parameterName": "New", "weight": 50}]}),
        )


def test_update_relinks_judges(db, make):
    first = make.competition()
    second = make.competition()
    judge = make.judge(first)

    update_competition(db, second.uuid, CompetitionUpdate(judges=[judge.user.uuid]))

    db.refresh(judge)
    assert judge.competition_id == second.id


def test_list_filters(db, make, now):
    running = make.competition(title="Running video contest", content_type=ContentType.VIDEO)
    finished = make.competition(title="Finished audio contest", end_date=now - timedelta(days=1), submission_deadline=now - timedelta(days=2))

    assert {row["uuid"] for row in list_all_competitions(db)["data"]} == {running.uuid, finished.uuid}
    assert [row["uuid"] for row in list_active_competitions(db, now)["data"]] == [running.uuid]
    assert [row["uuid"] for row in list_finished_competitions(db, now)["data"]] == [finished.uuid]
    assert [row["uuid"] for row in list_competitions_by_type(db, ContentType.VIDEO)["data"]] == [running.uuid]
    assert [row["uuid"] for row in list_all_competitions(db, search="AUDIO")["data"]] == [finished.uuid]


def test_list_pagination_envelope(db, make):
    for _ in range(3):
        make.competition()

    page = list_all_competitions(db, page=2, limit=2)

    assert len(page["data"]) == 1
    assert page["totalPages"] == 2
    assert page["lastPage"] == 2
    assert page["page"] == 2


def test_detail_filters_submissions_by_status(db, make):
    competition = make.competition()
    judge = make.judge(competition)
    approved = make.submission(competition)
    make.submission(competition, status=ContentStatus.PENDING)
    db.add(Winner(competition_id=competition.id, submission_id=approved.id, rank=1, final_score=3.2))
    db.commit()

    data = get_competition_detail(db, competition.slug)["data"]
    assert [row["uuid"] for row in data["submissions"]] == [approved.uuid]
    assert data["judges"][0]["uuid"] == judge.user.uuid
    assert data["winners"][0]["rank"] == 1

    pending = get_competition_detail(db, competition.slug, status_filter=ContentStatus.PENDING)["data"]
    assert len(pending["submissions"]) == 1

    with pytest.raises(NotFoundError):
        get_competition_detail(db, competition.slug, content_type=ContentType.VIDEO)


def test_winners_are_listed_by_rank(db, make):
    competition = make.competition()
    first = make.submission(competition)
    second = make.submission(competition)
    db.add_all([
        Winner(competition_id=competition.id, submission_id=first.id, rank=2, final_score=2.0),
        Winner(competition_id=competition.id, submission_id=second.id, rank=1, final_score=3.0),
    ])
    db.commit()

    data = get_winners(db, competition.uuid)["data"]
    assert [(row["rank"], row["submission_uuid"]) for row in data] == [(1, second.uuid), (2, first.uuid)]


def test_standings_rank_approved_submissions_and_export(db, make):
    competition = make.competition(title="Audio Cup", weights=(100,))
    judge = make.judge(competition)
    low = make.submission(competition)
    high = make.submission(competition)
    make.submission(competition, status=ContentStatus.REJECTED)
    make.score(judge, low, competition.parameters[0], 1)
    make.score(judge, high, competition.parameters[0], 4)

    standings = get_standings(db, competition.uuid)
    assert [row["submission_uuid"] for row in standings] == [high.uuid, low.uuid]
    assert standings[0]["rank"] == 1
    assert standings[0]["final_score"] == pytest.approx(3.2)

    sheet = load_workbook(build_standings_workbook("Audio Cup", standings)).active
    assert sheet["B1"].value == "Audio Cup"
    assert sheet["A4"].value == 1
    assert sheet["E4"].value == pytest.approx(3.2)


def test_remove_competition_unlinks_judges(db, make):
    competition = make.competition()
    judge = make.judge(competition)
    make.submission(competition)

    remove_competition(db, competition.uuid)

    assert db.query(Competition).count() == 0
    assert db.query(Judge).filter(Judge.id == judge.id).one().competition_id is None
