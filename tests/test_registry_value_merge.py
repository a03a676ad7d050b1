"""
Value mutation and merge tests.
"""

import pytest

from conftest import ADMIN, ALICE, BOB, MALLORY
from registry.hardening import (
    AssetNotFound,
    ErrorCode,
    InsufficientValue,
    InvalidValue,
    UnauthorizedAdmin,
    UnauthorizedAsset,
)


@pytest.fixture
def pair(registry):
    """Two admin-owned assets: 1 holds 10, 2 holds 5."""
    first = registry.create_single(ADMIN, 10)
    second = registry.create_single(ADMIN, 5)
    return registry, first, second


class TestModifyValue:

    def test_any_caller_overwrites(self, owned_by_alice):
        registry, asset_id = owned_by_alice

        registry.modify_value(MALLORY, asset_id, 99)

        assert registry.get_value(asset_id) == 99

    def test_zero_rejected(self, owned_by_alice):
        registry, asset_id = owned_by_alice

        with pytest.raises(InvalidValue):
            registry.modify_value(ALICE, asset_id, 0)

        assert registry.get_value(asset_id) == 10

    def test_missing_asset(self, registry):
        with pytest.raises(AssetNotFound):
            registry.modify_value(ALICE, 1, 5)

    def test_works_on_deactivated_asset(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.deactivate(ALICE, asset_id)
        registry.modify_value(ALICE, asset_id, 3)
        assert registry.get_value(asset_id) == 3


class TestReduceValue:

    def test_admin_reduces(self, owned_by_alice):
        registry, asset_id = owned_by_alice

        registry.reduce_value(ADMIN, asset_id, 4)

        assert registry.get_value(asset_id) == 6

    def test_reduce_by_zero_is_noop(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.reduce_value(ADMIN, asset_id, 0)
        assert registry.get_value(asset_id) == 10

    def test_reduce_to_exactly_zero(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.reduce_value(ADMIN, asset_id, 10)
        assert registry.get_value(asset_id) == 0

    def test_insufficient_value_leaves_value_unchanged(self, owned_by_alice):
        registry, asset_id = owned_by_alice

        with pytest.raises(InsufficientValue) as exc:
            registry.reduce_value(ADMIN, asset_id, 11)

        assert exc.value.code == ErrorCode.INSUFFICIENT_VALUE
        assert int(exc.value.code) == 203
        assert registry.get_value(asset_id) == 10

    def test_negative_amount_rejected(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        with pytest.raises(InvalidValue):
            registry.reduce_value(ADMIN, asset_id, -1)

    def test_owner_cannot_reduce(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        with pytest.raises(UnauthorizedAdmin):
            registry.reduce_value(ALICE, asset_id, 1)


class TestRedeem:

    def test_owner_redeems_to_zero(self, owned_by_alice):
        registry, asset_id = owned_by_alice

        registry.redeem(ALICE, asset_id)

        assert registry.get_value(asset_id) == 0
        assert registry.exists(asset_id)

    def test_non_owner_rejected(self, owned_by_alice):
        registry, asset_id = owned_by_alice

        with pytest.raises(UnauthorizedAsset):
            registry.redeem(BOB, asset_id)

        assert registry.get_value(asset_id) == 10

    def test_redeem_deactivated_asset(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.deactivate(ALICE, asset_id)
        registry.redeem(ALICE, asset_id)
        assert registry.get_value(asset_id) == 0


class TestCombine:
    """combine adds the source into the target and deletes the source."""

    def test_combine_sums_and_deletes_source(self, pair):
        registry, first, second = pair

        assert registry.combine(MALLORY, first, second) == 15

        assert registry.get_value(second) == 15
        assert not registry.exists(first)
        assert registry.existing_count() == 1
        assert registry.total_created() == 2

    def test_second_combine_fails(self, pair):
        registry, first, second = pair
        registry.combine(ALICE, first, second)

        with pytest.raises(AssetNotFound) as exc:
            registry.combine(ALICE, first, second)

        assert int(exc.value.code) == 201
        assert registry.get_value(second) == 15

    def test_deleted_id_never_reissued(self, pair):
        registry, first, second = pair
        registry.combine(ADMIN, first, second)

        assert registry.create_single(ADMIN, 1) == 3

    def test_notes_of_source_remain_as_orphans(self, pair):
        registry, first, second = pair
        registry.add_information(ADMIN, first, "legacy")

        registry.combine(ADMIN, first, second)

        assert registry.ledger.note_of(first) == "legacy"
        with pytest.raises(AssetNotFound):
            registry.get_notes(first)

    def test_missing_target(self, pair):
        registry, first, _ = pair

        with pytest.raises(AssetNotFound):
            registry.combine(ADMIN, first, 40)

        assert registry.exists(first)
        assert registry.get_value(first) == 10

    def test_self_merge_rejected(self, pair):
        registry, first, _ = pair

        with pytest.raises(InvalidValue):
            registry.combine(ADMIN, first, first)

        assert registry.exists(first)
        assert registry.get_value(first) == 10


class TestConsolidate:

    def test_consolidate_keeps_source_at_zero(self, pair):
        registry, first, second = pair

        assert registry.consolidate(ADMIN, first, second) == 15

        assert registry.get_value(first) == 0
        assert registry.get_value(second) == 15
        assert registry.exists(first)
        assert registry.existing_count() == 2

    def test_consolidate_requires_admin(self, pair):
        registry, first, second = pair

        with pytest.raises(UnauthorizedAdmin):
            registry.consolidate(ALICE, first, second)

        assert registry.get_value(first) == 10
        assert registry.get_value(second) == 5

    def test_consolidate_missing_source(self, pair):
        registry, _, second = pair
        with pytest.raises(AssetNotFound):
            registry.consolidate(ADMIN, 9, second)

    def test_consolidate_self_rejected(self, pair):
        registry, first, _ = pair
        with pytest.raises(InvalidValue):
            registry.consolidate(ADMIN, first, first)

    def test_merge_audit_details(self, pair):
        registry, first, second = pair
        registry.consolidate(ADMIN, first, second)

        event = registry.audit.get_events(resource_id=f"{first}->{second}")[-1]
        assert event.details["moved"] == 10
        assert event.details["destructive"] is False
