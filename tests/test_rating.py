import pytest

from helpdesk.core.roles import Role
from helpdesk.models import UNRANKED, Review
from helpdesk.repositories import Reviews
from helpdesk.services.rating import Placement, ScoringPolicy, calculate_rating

POLICY = ScoringPolicy(min_lists=3, prior=0.5, smoothing=1.0)


def test_placement_validity_and_weights():
    assert Placement(1, 1).is_valid
    assert Placement(2, 2).is_valid
    assert not Placement(3, 2).is_valid
    assert not Placement(0, 4).is_valid
    assert not Placement(UNRANKED, 5).is_valid

    assert Placement(1, 4).contribution == 1
    assert Placement(2, 2).contribution == 0.5
    assert Placement(4, 4).contribution == 0.25

    assert Placement(1, 1).size_weight(0.5) == pytest.approx(2 / 3)
    assert Placement(3, 3).size_weight(0) == 1
    assert Placement(1, 100).size_weight(0.5) > Placement(1, 2).size_weight(0.5)


def test_longer_list_outranks_single_entry_list():
    tiny = [Placement(1, 1)] * 3
    big = [Placement(1, 100)] * 3
    assert POLICY.smoothed(big) > POLICY.smoothed(tiny)


def test_zero_size_bias_weighs_lists_equally():
    flat = ScoringPolicy(min_lists=3, prior=0.5, smoothing=1.0, size_bias=0)
    assert flat.smoothed([Placement(1, 1)] * 3) == pytest.approx(flat.smoothed([Placement(1, 100)] * 3))


def test_regression_fixture_scores_four():
    placements = [Placement(1, 1), Placement(2, 2), Placement(3, 2)]
    assert POLICY.score(placements) == 4


def test_not_enough_lists_is_unrated():
    assert POLICY.score([]) == 0
    assert POLICY.score([Placement(1, 1), Placement(1, 3)]) == 0


def test_invalid_placements_count_towards_minimum_only():
    # 三个无效名次：满足最少列表数，但只剩先验
    placements = [Placement(UNRANKED, 2), Placement(5, 3), Placement(0, 1)]
    assert POLICY.smoothed(placements) == pytest.approx(0.5)
    assert POLICY.score(placements) == 3


def test_score_bounds():
    top = [Placement(1, 10)] * 50
    bottom = [Placement(10, 10)] * 50
    assert POLICY.score(top) == 5
    assert POLICY.score(bottom) == 1


def test_smoothing_pulls_towards_prior():
    few = [Placement(1, 1)] * 3
    many = [Placement(1, 1)] * 30
    assert POLICY.smoothed(few) < POLICY.smoothed(many) < 1


def test_policy_from_settings_defaults():
    policy = ScoringPolicy.from_settings()
    assert policy == POLICY
    assert calculate_rating([Placement(1, 1), Placement(2, 2), Placement(3, 2)]) == 4


def test_aggregated_rating_from_trusted_lists(session, make_user):
    x = make_user("reviewerx", Role.REVIEWER)
    filler = make_user("reviewery", Role.REVIEWER)
    owner_a = make_user("ownera", Role.STUDENT)
    owner_b = make_user("ownerb", Role.STUDENT)
    owner_c = make_user("ownerc", Role.STUDENT)

    reviews = Reviews(session)
    # A: [X]                  -> X rank 1 of 1
    reviews.create(Review(reviewer_id=x.id, user_id=owner_a.id, rating=1))
    # B: [filler, X]          -> X rank 2 of 2
    reviews.create(Review(reviewer_id=filler.id, user_id=owner_b.id, rating=1))
    reviews.create(Review(reviewer_id=x.id, user_id=owner_b.id, rating=2))
    # C: [filler, X@3]        -> X rank 3 of 2, ignored
    reviews.create(Review(reviewer_id=filler.id, user_id=owner_c.id, rating=1))
    reviews.create(Review(reviewer_id=x.id, user_id=owner_c.id, rating=3))
    session.commit()

    assert sorted((p.position, p.list_size) for p in reviews.placements_of(x.id)) == [(1, 1), (2, 2), (3, 2)]
    assert reviews.calculate_aggregated_rating(x.id) == 4
    assert reviews.calculate_aggregated_rating(filler.id) == 0
