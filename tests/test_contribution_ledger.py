import threading
from datetime import date, timedelta

import pytest

from app.models.contribution import GroupInventoryContribution
from app.services import contribution_ledger
from app.services.results import ForbiddenError, Reason, Rejected
from conftest import NOW


def _rejected(result, reason):
    assert isinstance(result, Rejected), result
    assert result.reason is reason
    return result


class TestContribute:
    def test_batch_lives_in_one_group_at_a_time(self, db, seed, world):
        other = seed.group("Lade", world["north_admin"])
        seed.membership(other, world["north"])
        batch_id = world["north_batch"].id

        first = contribution_ledger.contribute(db, batch_id, world["group"].id, "kari@nordmann.no", now=NOW)
        assert isinstance(first, GroupInventoryContribution)
        assert first.household_id == world["north"].id
        assert first.contributed_at == NOW

        second = contribution_ledger.contribute(db, batch_id, other.id, "kari@nordmann.no", now=NOW)
        assert _rejected(second, Reason.CONFLICT).detail == contribution_ledger.ALREADY_CONTRIBUTED

        assert contribution_ledger.retract_batch(db, batch_id, "kari@nordmann.no") is True

        third = contribution_ledger.contribute(db, batch_id, other.id, "kari@nordmann.no", now=NOW)
        assert isinstance(third, GroupInventoryContribution)
        assert third.group_id == other.id

    def test_unknown_batch_and_group(self, db, world):
        _rejected(
            contribution_ledger.contribute(db, 9999, world["group"].id, "kari@nordmann.no", now=NOW),
            Reason.NOT_FOUND,
        )
        _rejected(
            contribution_ledger.contribute(db, world["north_batch"].id, 9999, "kari@nordmann.no", now=NOW),
            Reason.NOT_FOUND,
        )

    def test_already_contributed_is_reported_before_membership(self, db, seed, world):
        seed.contribution(world["group"], world["north"], world["north_batch"])

        # east is not a member, but the batch conflict is reported first
        result = contribution_ledger.contribute(db, world["north_batch"].id, world["group"].id, "anne@ostby.no", now=NOW)

        _rejected(result, Reason.CONFLICT)

    def test_non_member_is_forbidden(self, db, world):
        result = contribution_ledger.contribute(db, world["east_batch"].id, world["group"].id, "anne@ostby.no", now=NOW)

        _rejected(result, Reason.FORBIDDEN)

    def test_foreign_batch_is_forbidden(self, db, world):
        result = contribution_ledger.contribute(db, world["south_batch"].id, world["group"].id, "kari@nordmann.no", now=NOW)

        _rejected(result, Reason.FORBIDDEN)
        assert not contribution_ledger.is_contributed(db, world["south_batch"].id)

    def test_any_household_member_can_contribute(self, db, world):
        result = contribution_ledger.contribute(db, world["north_batch"].id, world["group"].id, "ola@nordmann.no", now=NOW)

        assert isinstance(result, GroupInventoryContribution)

    def test_concurrent_contributions_have_one_winner(self, db, seed, session_factory, world):
        other = seed.group("Lade", world["north_admin"])
        seed.membership(other, world["north"])
        batch_id = world["north_batch"].id
        group_ids = [world["group"].id, other.id, world["group"].id, other.id]
        barrier = threading.Barrier(len(group_ids))
        results = []

        def worker(group_id):
            session = session_factory()
            try:
                barrier.wait()
                results.append(contribution_ledger.contribute(session, batch_id, group_id, "kari@nordmann.no", now=NOW))
            finally:
                session.close()

        threads = [threading.Thread(target=worker, args=(gid,)) for gid in group_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(isinstance(r, GroupInventoryContribution) for r in results) == 1
        assert all(r.reason is Reason.CONFLICT for r in results if isinstance(r, Rejected))
        db.expire_all()
        assert contribution_ledger.is_contributed(db, batch_id)


class TestCustom:
    def test_member_adds_manual_entry(self, db, world):
        result = contribution_ledger.contribute_custom(
            db, world["group"].id, "  Firewood  ", date(2027, 1, 1), "per@sorli.no", now=NOW
        )

        assert isinstance(result, GroupInventoryContribution)
        assert result.product_batch_id is None
        assert result.custom_name == "Firewood"
        assert result.household_id == world["south"].id

    def test_many_custom_entries_coexist(self, db, world):
        for name in ("Candles", "Matches"):
            assert isinstance(
                contribution_ledger.contribute_custom(db, world["group"].id, name, None, "per@sorli.no", now=NOW),
                GroupInventoryContribution,
            )

    def test_non_member_rejected(self, db, world):
        result = contribution_ledger.contribute_custom(db, world["group"].id, "Candles", None, "anne@ostby.no", now=NOW)

        _rejected(result, Reason.FORBIDDEN)


class TestRetract:
    def test_missing_contribution_returns_false(self, db, world):
        assert contribution_ledger.retract(db, 12345, "kari@nordmann.no") is False
        assert contribution_ledger.retract_batch(db, world["north_batch"].id, "kari@nordmann.no") is False

    def test_other_household_cannot_retract(self, db, seed, world):
        c = seed.contribution(world["group"], world["north"], world["north_batch"])

        with pytest.raises(ForbiddenError):
            contribution_ledger.retract(db, c.id, "per@sorli.no")
        with pytest.raises(ForbiddenError):
            contribution_ledger.retract_batch(db, world["north_batch"].id, "per@sorli.no")

        assert contribution_ledger.is_contributed(db, world["north_batch"].id)

    def test_owner_retracts_by_id(self, db, seed, world):
        c = seed.contribution(world["group"], world["north"], world["north_batch"])

        assert contribution_ledger.retract(db, c.id, "ola@nordmann.no") is True
        assert contribution_ledger.get_contribution_for_batch(db, world["north_batch"].id) is None


class TestQueries:
    def test_total_units_sums_contributed_batches(self, db, seed, world):
        pt = world["north_type"]
        extra = seed.batch(pt, number=30)
        seed.batch(pt, number=100)  # never contributed
        seed.contribution(world["group"], world["north"], world["north_batch"])
        seed.contribution(world["group"], world["north"], extra)

        assert contribution_ledger.total_units_for_product_type(db, pt.id, world["group"].id) == 42

    @pytest.mark.parametrize("which", ["product_type", "group"])
    def test_total_units_unknown_ids_are_zero(self, db, world, which):
        pt_id = 9999 if which == "product_type" else world["north_type"].id
        group_id = 9999 if which == "group" else world["group"].id

        assert contribution_ledger.total_units_for_product_type(db, pt_id, group_id) == 0

    def test_total_units_empty_group_is_zero(self, db, world):
        assert contribution_ledger.total_units_for_product_type(db, world["north_type"].id, world["group"].id) == 0

    def test_product_types_visible_to_members(self, db, seed, world):
        rice = seed.product_type(world["south"], name="Rice", unit="kg", category="food")
        seed.contribution(world["group"], world["south"], seed.batch(rice, number=5))
        seed.contribution(world["group"], world["north"], world["north_batch"])

        names = [pt.name for pt in contribution_ledger.list_contributed_product_types(
            db, world["group"].id, "kari@nordmann.no", now=NOW
        )]
        assert names == ["Rice", "Water north"]

        found = contribution_ledger.list_contributed_product_types(
            db, world["group"].id, "kari@nordmann.no", search="ric", now=NOW
        )
        assert [pt.name for pt in found] == ["Rice"]

        paged = contribution_ledger.list_contributed_product_types(
            db, world["group"].id, "kari@nordmann.no", page=1, size=1, now=NOW
        )
        assert [pt.name for pt in paged] == ["Water north"]

    def test_listing_requires_membership(self, db, world):
        _rejected(
            contribution_ledger.list_contributed_product_types(db, world["group"].id, "anne@ostby.no", now=NOW),
            Reason.FORBIDDEN,
        )
        _rejected(
            contribution_ledger.list_contributed_batches(
                db, world["group"].id, world["north_type"].id, "anne@ostby.no", now=NOW
            ),
            Reason.FORBIDDEN,
        )
        _rejected(
            contribution_ledger.list_contributed_product_types(db, 9999, "kari@nordmann.no", now=NOW),
            Reason.NOT_FOUND,
        )

    def test_batches_ordered_by_expiry(self, db, seed, world):
        pt = world["north_type"]
        late = seed.batch(pt, number=1, expiration_time=NOW + timedelta(days=300))
        soon = seed.batch(pt, number=2, expiration_time=NOW + timedelta(days=3))
        seed.contribution(world["group"], world["north"], late)
        seed.contribution(world["group"], world["north"], soon)

        rows = contribution_ledger.list_contributed_batches(db, world["group"].id, pt.id, "per@sorli.no", now=NOW)

        assert [batch.id for batch, _ in rows] == [soon.id, late.id]
        assert all(product_type.id == pt.id for _, product_type in rows)

    def test_is_batch_contributed(self, db, seed, world):
        batch_id = world["north_batch"].id

        assert contribution_ledger.is_batch_contributed(db, batch_id, "kari@nordmann.no") is False
        seed.contribution(world["group"], world["north"], world["north_batch"])
        assert contribution_ledger.is_batch_contributed(db, batch_id, "kari@nordmann.no") is True
        assert contribution_ledger.is_batch_contributed(db, 9999, "kari@nordmann.no") is False
        _rejected(contribution_ledger.is_batch_contributed(db, batch_id, "per@sorli.no"), Reason.FORBIDDEN)
