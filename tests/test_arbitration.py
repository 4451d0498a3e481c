"""
Ownership arbitration: strengthen, contest, reinforce, claim-over, create.
"""

import pytest

from turf_engine.territory import MAX_STRENGTH, OwnershipArbiter, Transition
from turf_engine.tracking import ActivityMode

from helpers import T0, make_territory, points_from_offsets, square_polygon

OVERLAPPING = square_polygon(10, 10, 30)
FAR_AWAY = square_polygon(5000, 5000, 30)


def claim(arbiter, territories, owner_id, polygon=OVERLAPPING, territory_id="new"):
    return arbiter.arbitrate(
        territories,
        polygon,
        owner_id=owner_id,
        mode=ActivityMode.WALK,
        territory_id=territory_id,
        created_at=T0 + 1000,
    )


def strengths(territory):
    return {o.owner_id: o.strength for o in territory.owners}


class TestExclusiveStrengthening:

    def test_second_capture_adds_point_two(self):
        result = claim(OwnershipArbiter(), (make_territory("t1", [("alice", 1.0)]),), "alice")

        assert result.created is None
        assert strengths(result.territories[0]) == {"alice": pytest.approx(1.2)}
        assert result.transitions == (("t1", Transition.STRENGTHENED),)

    def test_repeated_captures_clamp_at_two(self):
        arbiter = OwnershipArbiter()
        territories = (make_territory("t1", [("alice", 1.0)]),)
        for _ in range(6):
            territories = claim(arbiter, territories, "alice").territories

        assert territories[0].owners[0].strength == MAX_STRENGTH
        assert len(territories) == 1

    def test_clamp_applies_with_asymmetric_policy(self):
        result = claim(OwnershipArbiter(uniform_clamp=False), (make_territory("t1", [("alice", 1.9)]),), "alice")
        assert strengths(result.territories[0]) == {"alice": 2.0}


class TestContestAndClaimOver:

    def test_contest_then_claim_over(self):
        arbiter = OwnershipArbiter()
        territories = (make_territory("t1", [("alice", 1.0)]),)

        first = claim(arbiter, territories, "bob")
        assert strengths(first.territories[0]) == {"alice": 1.0, "bob": 0.5}
        assert first.territories[0].is_contested
        assert first.transitions == (("t1", Transition.CONTESTED),)

        second = claim(arbiter, first.territories, "bob")
        assert strengths(second.territories[0]) == {"alice": 1.0, "bob": 1.0}
        assert second.transitions == (("t1", Transition.REINFORCED),)

        third = claim(arbiter, second.territories, "bob")
        assert strengths(third.territories[0]) == {"bob": 1.0}
        assert third.transitions == (("t1", Transition.CLAIMED_OVER),)

    def test_claim_over_needs_more_than_combined_incumbents(self):
        territory = make_territory("t1", [("alice", 0.8), ("carol", 0.8), ("bob", 1.0)])
        result = claim(OwnershipArbiter(), (territory,), "bob")
        assert strengths(result.territories[0]) == {"alice": 0.8, "carol": 0.8, "bob": 1.5}

    def test_claim_over_needs_minimum_strength(self):
        """0.3 + 0.5 beats a 0.2 incumbent but stays under 1.0."""
        territory = make_territory("t1", [("alice", 0.2), ("bob", 0.3)])
        result = claim(OwnershipArbiter(), (territory,), "bob")
        assert strengths(result.territories[0]) == {"alice": 0.2, "bob": pytest.approx(0.8)}
        assert result.transitions == (("t1", Transition.REINFORCED),)

    def test_contest_owner_order_is_kept(self):
        territory = make_territory("t1", [("alice", 2.0), ("bob", 1.0)])
        result = claim(OwnershipArbiter(), (territory,), "bob")
        assert [o.owner_id for o in result.territories[0].owners] == ["alice", "bob"]


class TestClampPolicy:
    """Reinforcing past the cap while incumbents still outweigh the claimant."""

    def territory(self):
        return make_territory("t1", [("alice", 2.0), ("carol", 0.5), ("bob", 1.8)])

    def test_uniform_clamp_caps_reinforcement(self):
        result = claim(OwnershipArbiter(uniform_clamp=True), (self.territory(),), "bob")
        assert strengths(result.territories[0])["bob"] == 2.0

    def test_asymmetric_policy_lets_reinforcement_exceed_cap(self):
        result = claim(OwnershipArbiter(uniform_clamp=False), (self.territory(),), "bob")
        assert strengths(result.territories[0])["bob"] == pytest.approx(2.3)


class TestCreation:

    def test_no_overlap_creates_one_territory(self):
        existing = (make_territory("t1", [("alice", 1.5)]), make_territory("t2", [("bob", 1.0)]))
        result = claim(OwnershipArbiter(), existing, "carol", polygon=FAR_AWAY, territory_id="t3")

        assert result.created is not None
        assert result.created.id == "t3"
        assert strengths(result.created) == {"carol": 1.0}
        assert result.created.created_at == T0 + 1000
        assert result.territories == (result.created,) + existing
        assert result.changed == ()
        assert not result.overlapped

    def test_empty_collection(self):
        result = claim(OwnershipArbiter(), (), "alice", territory_id="first")
        assert [t.id for t in result.territories] == ["first"]

    def test_bounding_box_overlap_is_enough(self):
        """Disjoint triangles whose boxes intersect still count as overlapping."""
        lower_left = tuple(points_from_offsets([(0, 0), (100, 0), (0, 100)]))
        upper_right = tuple(points_from_offsets([(100, 100), (100, 10), (10, 100)]))
        existing = (make_territory("t1", [("alice", 1.0)], polygon=lower_left),)

        result = claim(OwnershipArbiter(), existing, "alice", polygon=upper_right)

        assert result.created is None
        assert strengths(result.territories[0]) == {"alice": pytest.approx(1.2)}

    def test_input_is_not_mutated(self):
        existing = (make_territory("t1", [("alice", 1.0)]),)
        claim(OwnershipArbiter(), existing, "alice")
        assert existing[0].owners[0].strength == 1.0


class TestMultipleOverlaps:

    def test_every_overlapping_territory_is_arbitrated(self):
        mine = make_territory("t1", [("alice", 1.0)], polygon=square_polygon(0, 0, 30))
        theirs = make_territory("t2", [("bob", 1.0)], polygon=square_polygon(20, 20, 30))
        far = make_territory("t3", [("bob", 1.0)], polygon=FAR_AWAY)

        result = claim(OwnershipArbiter(), (mine, theirs, far), "alice")

        assert result.created is None
        assert [t.id for t in result.territories] == ["t1", "t2", "t3"]
        assert dict(result.transitions) == {"t1": Transition.STRENGTHENED, "t2": Transition.CONTESTED}
        assert [t.id for t in result.changed] == ["t1", "t2"]
        assert result.territories[2] is far

    def test_ownerless_territory_blocks_creation(self):
        empty = make_territory("t1", [])
        result = claim(OwnershipArbiter(), (empty,), "alice")

        assert result.created is None
        assert result.territories == (empty,)
        assert result.changed == ()
        assert result.transitions == (("t1", Transition.UNTOUCHED),)
