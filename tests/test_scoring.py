import pytest

from errors import NotFoundError
from scoring import (
    blend_final_score,
    calculate_final_score,
    competition_standings,
    normalized_judge_score,
    rank_scored,
)


def test_normalized_score_uses_configured_weights():
    assert normalized_judge_score([(40, 3.0), (60, 4.0)]) == pytest.approx(3.6)


def test_normalized_score_tolerates_weights_not_summing_to_100():
    assert normalized_judge_score([(30, 5.0), (30, 5.0)]) == pytest.approx(5.0)


def test_normalized_score_counts_unscored_parameter_as_zero():
    assert normalized_judge_score([(50, 4.0), (50, None)]) == pytest.approx(2.0)


def test_normalized_score_without_parameters_is_zero():
    assert normalized_judge_score([]) == 0.0


def test_blend_defaults_missing_public_rating_to_zero():
    assert blend_final_score(3.6, None) == pytest.approx(2.88)
    assert blend_final_score(3.6, 5) == pytest.approx(3.88)


def test_calculate_final_score_from_stored_scores(db, make):
    competition = make.competition(weights=(40, 60))
    first, second = competition.parameters
    judge_a = make.judge(competition)
    judge_b = make.judge(competition)
    submission = make.submission(competition)

    make.score(judge_a, submission, first, 2)
    make.score(judge_b, submission, first, 4)
    make.score(judge_a, submission, second, 4)
    make.score(judge_b, submission, second, 4)
    make.rating(submission.content, 5)
    make.rating(submission.content, 5)

    assert calculate_final_score(db, submission.uuid) == pytest.approx(3.88)


def test_calculate_final_score_is_repeatable(db, make):
    competition = make.competition(weights=(30, 30))
    judge = make.judge(competition)
    submission = make.submission(competition)
    for parameter in competition.parameters:
        make.score(judge, submission, parameter, 5)

    first = calculate_final_score(db, submission.uuid)
    second = calculate_final_score(db, submission.uuid)
    assert first == second == pytest.approx(4.0)


def test_scores_from_other_submissions_are_ignored(db, make):
    competition = make.competition(weights=(100,))
    judge = make.judge(competition)
    target = make.submission(competition)
    other = make.submission(competition)
    make.score(judge, other, competition.parameters[0], 5)

    assert calculate_final_score(db, target.uuid) == 0.0


def test_calculate_final_score_unknown_submission(db):
    with pytest.raises(NotFoundError):
        calculate_final_score(db, "missing")


def test_rank_scored_keeps_input_order_for_ties():
    ranked = rank_scored([("a", 3.0), ("b", 4.0), ("c", 3.0)])
    assert [name for name, _ in ranked] == ["b", "a", "c"]


def test_competition_standings_orders_by_score(db, make):
    competition = make.competition(weights=(100,))
    judge = make.judge(competition)
    low = make.submission(competition)
    high = make.submission(competition)
    make.score(judge, low, competition.parameters[0], 2)
    make.score(judge, high, competition.parameters[0], 5)

    standings = competition_standings(db, competition.submissions)
    assert [submission.uuid for submission, _ in standings] == [high.uuid, low.uuid]
    assert standings[0][1] == pytest.approx(4.0)
