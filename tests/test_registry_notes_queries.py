"""
Notes, dormancy and read-only query tests.
"""

import pytest

from conftest import ADMIN, ALICE, BOB
from registry.config import RegistryConfig
from registry.hardening import (
    AssetNotFound,
    InvalidValue,
    UnauthorizedAdmin,
    UnauthorizedAsset,
)
from registry.lifecycle import AssetState
from registry.queries import AssetDetail
from registry.registry import AssetRegistry


class TestNotes:

    def test_owner_adds_and_replaces(self, owned_by_alice):
        registry, asset_id = owned_by_alice

        registry.add_information(ALICE, asset_id, "first")
        registry.add_information(ALICE, asset_id, "second")

        assert registry.get_notes(asset_id) == "second"

    def test_note_at_limit_accepted(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.add_information(ALICE, asset_id, "n" * 256)
        assert len(registry.get_notes(asset_id)) == 256

    def test_note_over_limit_rejected(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.add_information(ALICE, asset_id, "keep")

        with pytest.raises(InvalidValue):
            registry.add_information(ALICE, asset_id, "n" * 257)

        assert registry.get_notes(asset_id) == "keep"

    def test_empty_note_is_stored(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.add_information(ALICE, asset_id, "")
        assert registry.get_notes(asset_id) == ""

    def test_non_owner_cannot_annotate(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        with pytest.raises(UnauthorizedAsset):
            registry.add_information(BOB, asset_id, "hi")
        assert registry.get_notes(asset_id) is None

    def test_remove_information(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.add_information(ALICE, asset_id, "x")

        assert registry.remove_information(ALICE, asset_id) is True
        assert registry.get_notes(asset_id) is None
        assert registry.remove_information(ALICE, asset_id) is False

    def test_purge_is_admin_only(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.add_information(ALICE, asset_id, "x")

        with pytest.raises(UnauthorizedAdmin):
            registry.purge_information(ALICE, asset_id)
        assert registry.purge_information(ADMIN, asset_id) is True
        assert registry.get_notes(asset_id) is None

    def test_purge_missing_asset(self, registry):
        with pytest.raises(AssetNotFound):
            registry.purge_information(ADMIN, 5)

    def test_configured_note_limit(self):
        config = RegistryConfig()
        config.limits.max_note_length.set(4)
        registry = AssetRegistry(ADMIN, config=config)
        asset_id = registry.create_single(ADMIN, 1)

        registry.add_information(ADMIN, asset_id, "abcd")
        with pytest.raises(InvalidValue):
            registry.add_information(ADMIN, asset_id, "abcde")


class TestDormancy:

    def test_mark_dormant_sets_sentinel_note(self, owned_by_alice):
        registry, asset_id = owned_by_alice

        registry.mark_dormant(ALICE, asset_id)

        assert registry.is_dormant(asset_id)
        assert registry.get_notes(asset_id) == "DORMANT"

    def test_dormancy_does_not_touch_lifecycle(self, owned_by_alice):
        registry, asset_id = owned_by_alice

        registry.mark_dormant(ALICE, asset_id)

        assert registry.get_status(asset_id) is False
        assert registry.can_transfer(asset_id, ALICE)
        registry.transfer(BOB, asset_id, ALICE, BOB)
        assert registry.is_dormant(asset_id)

    def test_restore_active_clears_dormant_marker(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.mark_dormant(ALICE, asset_id)

        assert registry.restore_active(ALICE, asset_id) is True

        assert registry.get_notes(asset_id) is None
        assert not registry.is_dormant(asset_id)

    def test_restore_active_keeps_other_notes(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.add_information(ALICE, asset_id, "unrelated")

        assert registry.restore_active(ALICE, asset_id) is False

        assert registry.get_notes(asset_id) == "unrelated"
        assert not registry.is_dormant(asset_id)

    def test_dormant_note_overwrites_text(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.add_information(ALICE, asset_id, "hello")
        registry.mark_dormant(ALICE, asset_id)
        assert registry.get_notes(asset_id) == "DORMANT"

    def test_is_dormant_false_for_missing(self, registry):
        assert registry.is_dormant(12) is False

    def test_non_owner_cannot_mark_dormant(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        with pytest.raises(UnauthorizedAsset):
            registry.mark_dormant(ADMIN, asset_id)


class TestQueries:

    def test_missing_id_lookups_raise(self, registry):
        for query in (registry.get_value, registry.get_holder, registry.get_status,
                      registry.get_state, registry.get_notes, registry.get_details):
            with pytest.raises(AssetNotFound):
                query(1)

    def test_predicates_false_for_missing(self, registry):
        assert registry.exists(1) is False
        assert registry.can_transfer(1, ADMIN) is False
        assert registry.can_deactivate(1, ADMIN) is False

    def test_can_transfer_requires_owner(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        assert registry.can_transfer(asset_id, ALICE)
        assert not registry.can_transfer(asset_id, BOB)

    def test_get_details(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.add_information(ALICE, asset_id, "note")

        detail = registry.get_details(asset_id)

        assert detail == AssetDetail(asset_id, ALICE, 10, False, "note")
        assert detail.state is AssetState.ACTIVE
        assert detail.to_dict()["owner"] == ALICE

    def test_reads_are_idempotent(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        before = registry.ledger.to_dict()

        first = registry.get_details(asset_id)
        second = registry.get_details(asset_id)

        assert first == second
        assert registry.ledger.to_dict() == before

    def test_counts(self, registry):
        registry.create_multiple(ADMIN, [1, 2, 3])
        registry.combine(ADMIN, 1, 2)

        assert registry.total_created() == 3
        assert registry.current_count() == registry.total_created()
        assert registry.existing_count() == 2

    def test_list_assets_by_owner(self, owned_by_alice):
        registry, asset_id = owned_by_alice
        registry.create_single(ADMIN, 2)

        assert [d.asset_id for d in registry.list_assets()] == [1, 2]
        assert [d.asset_id for d in registry.list_assets(owner=ALICE)] == [asset_id]


class TestGetRange:

    def test_range_window(self, registry):
        registry.create_multiple(ADMIN, [1, 2, 3, 4])

        details = registry.get_range(2, 2)

        assert [d.asset_id for d in details] == [2, 3]
        assert [d.value for d in details] == [2, 3]

    def test_zero_count_is_empty(self, registry):
        assert registry.get_range(1, 0) == []

    def test_window_past_counter_fails(self, registry):
        registry.create_multiple(ADMIN, [1, 2])
        with pytest.raises(AssetNotFound):
            registry.get_range(1, 3)

    def test_window_over_deleted_asset_fails(self, registry):
        registry.create_multiple(ADMIN, [1, 2, 3])
        registry.combine(ADMIN, 2, 3)

        with pytest.raises(AssetNotFound) as exc:
            registry.get_range(1, 3)
        assert exc.value.asset_id == 2

    def test_count_over_limit_rejected(self, registry):
        with pytest.raises(InvalidValue):
            registry.get_range(1, 101)

    @pytest.mark.parametrize("start", [0, -1, "1"])
    def test_bad_start_rejected(self, registry, start):
        with pytest.raises(InvalidValue):
            registry.get_range(start, 1)

    def test_full_window(self, registry):
        registry.create_multiple(ADMIN, [1] * 100)
        assert len(registry.get_range(1, 100)) == 100
