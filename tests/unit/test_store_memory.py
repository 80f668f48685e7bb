"""Unit tests for relquery.store.memory and the link maintenance in relquery.store.links."""
from __future__ import annotations

import threading

import pytest

from relquery import Engine
from relquery.errors import (
    EntityNotFoundError,
    InvalidValueError,
    SchemaNotReadyError,
    UnknownAttributeError,
    UnknownTypeError,
)
from relquery.schema.registry import SchemaRegistry
from relquery.schema.types import EntityType, ScalarAttribute, ScalarType
from relquery.store.base import Entity
from relquery.store.links import normalize_relation_value
from relquery.store.memory import MemoryState, MemoryStore


def _names(entities: list[Entity]) -> list[str]:
    return [e.values["name"] for e in entities]


# ===========================================================================
# Entity
# ===========================================================================


class TestEntity:
    def test_equality_uses_type_and_id(self) -> None:
        assert Entity("stamp", 1, {"name": "1946"}) == Entity("stamp", 1, {"name": "changed"})
        assert Entity("stamp", 1) != Entity("collector", 1)

    def test_hash_uses_type_and_id(self) -> None:
        assert len({Entity("stamp", 1, {"name": "a"}), Entity("stamp", 1, {"name": "b"})}) == 1

    def test_to_dict(self) -> None:
        assert Entity("stamp", 3, {"name": "1948"}).to_dict() == {"id": 3, "name": "1948"}

    def test_get_reads_values_then_refs(self) -> None:
        entity = Entity("stamp", 1, {"name": "1946"}, {"collector": 2})
        assert entity.get("name") == "1946"
        assert entity.get("collector") == 2
        assert entity.get("missing", "x") == "x"

    def test_repr(self) -> None:
        assert repr(Entity("stamp", 7)) == "Entity(stamp#7)"


# ===========================================================================
# Create, update, delete
# ===========================================================================


class TestWrites:
    def test_ids_start_at_one_per_type(self, empty_engine: Engine) -> None:
        assert empty_engine.create("stamp", {"name": "a"}).id == 1
        assert empty_engine.create("stamp", {"name": "b"}).id == 2
        assert empty_engine.create("collector", {"name": "c"}).id == 1

    def test_ids_are_not_reused(self, empty_engine: Engine) -> None:
        first = empty_engine.create("stamp", {"name": "a"})
        empty_engine.delete("stamp", first.id)
        assert empty_engine.create("stamp", {"name": "b"}).id == 2

    def test_missing_scalars_are_null(self, empty_engine: Engine) -> None:
        collector = empty_engine.create("collector", {"name": "Emma"})
        assert collector.values == {"name": "Emma", "age": None}

    def test_id_in_data_is_ignored(self, empty_engine: Engine) -> None:
        assert empty_engine.create("stamp", {"id": 99, "name": "a"}).id == 1

    def test_writes_freeze_the_registry_by_default(self) -> None:
        registry = SchemaRegistry()
        registry.register(EntityType("stamp", (ScalarAttribute("name"),)))
        MemoryStore(registry).create("stamp", {"name": "a"})
        assert registry.is_frozen

    def test_writes_respect_auto_freeze_off(self) -> None:
        registry = SchemaRegistry()
        registry.register(EntityType("stamp", (ScalarAttribute("name"),)))
        store = MemoryStore(registry, auto_freeze=False)
        with pytest.raises(SchemaNotReadyError):
            store.create("stamp", {"name": "a"})
        with pytest.raises(SchemaNotReadyError):
            store.update("stamp", 1, {"name": "b"})
        with pytest.raises(SchemaNotReadyError):
            store.delete("stamp", 1)
        assert not registry.is_frozen
        registry.freeze()
        assert store.create("stamp", {"name": "a"}).id == 1

    def test_unknown_type(self, empty_engine: Engine) -> None:
        with pytest.raises(UnknownTypeError):
            empty_engine.create("album", {})

    def test_unknown_attribute(self, empty_engine: Engine) -> None:
        with pytest.raises(UnknownAttributeError):
            empty_engine.create("stamp", {"colour": "red"})

    def test_wrong_scalar_type(self, empty_engine: Engine) -> None:
        with pytest.raises(InvalidValueError) as exc_info:
            empty_engine.create("collector", {"name": "Emma", "age": "old"})
        assert exc_info.value.attribute == "age"

    def test_update_merges_scalars(self, engine: Engine) -> None:
        updated = engine.update("collector", 1, {"age": 26})
        assert updated.values == {"name": "Bernard", "age": 26}

    def test_update_missing_entity(self, empty_engine: Engine) -> None:
        with pytest.raises(EntityNotFoundError) as exc_info:
            empty_engine.update("stamp", 5, {"name": "x"})
        assert exc_info.value.entity_id == 5

    def test_delete_returns_entity(self, engine: Engine) -> None:
        deleted = engine.delete("stamp", 1)
        assert deleted.values["name"] == "1946"
        assert engine.get("stamp", 1) is None

    def test_delete_missing_entity(self, empty_engine: Engine) -> None:
        with pytest.raises(EntityNotFoundError):
            empty_engine.delete("stamp", 1)

    def test_failed_write_leaves_state_untouched(self, engine: Engine) -> None:
        with pytest.raises(InvalidValueError):
            engine.update("collector", 1, {"stamps": [1, 99]})
        assert [e.id for e in engine.resolve(engine.get("collector", 1), "stamps")] == [1, 2]


class TestScalarConstraints:
    @pytest.fixture()
    def store(self) -> MemoryStore:
        registry = SchemaRegistry()
        registry.register(
            EntityType(
                "stamp",
                (
                    ScalarAttribute("code", ScalarType.STRING, required=True, unique=True),
                    ScalarAttribute("name"),
                ),
            )
        )
        return MemoryStore(registry)

    def test_required_on_create(self, store: MemoryStore) -> None:
        with pytest.raises(InvalidValueError, match="required"):
            store.create("stamp", {"name": "1946"})

    def test_required_not_checked_for_omitted_update(self, store: MemoryStore) -> None:
        created = store.create("stamp", {"code": "A"})
        assert store.update("stamp", created.id, {"name": "x"}).values["code"] == "A"

    def test_required_cannot_be_cleared(self, store: MemoryStore) -> None:
        created = store.create("stamp", {"code": "A"})
        with pytest.raises(InvalidValueError):
            store.update("stamp", created.id, {"code": None})

    def test_unique_on_create(self, store: MemoryStore) -> None:
        store.create("stamp", {"code": "A"})
        with pytest.raises(InvalidValueError, match="already used"):
            store.create("stamp", {"code": "A"})

    def test_unique_allows_updating_self(self, store: MemoryStore) -> None:
        created = store.create("stamp", {"code": "A"})
        assert store.update("stamp", created.id, {"code": "A"}).values["code"] == "A"

    def test_store_freezes_registry_on_first_write(self, store: MemoryStore) -> None:
        store.create("stamp", {"code": "A"})
        assert store.registry.is_frozen


# ===========================================================================
# normalize_relation_value
# ===========================================================================


class TestNormalizeRelationValue:
    @pytest.fixture()
    def collector(self, stamp_collector_types: list[EntityType]) -> EntityType:
        return stamp_collector_types[1]

    def test_collection_accepts_ids_entities_and_mappings(self, collector: EntityType) -> None:
        relation = collector.relation("stamps")
        value = [1, Entity("stamp", 2), {"id": 3}]
        assert normalize_relation_value(collector, relation, value) == (1, 2, 3)

    def test_collection_dedupes_in_order(self, collector: EntityType) -> None:
        relation = collector.relation("stamps")
        assert normalize_relation_value(collector, relation, [2, 1, 2]) == (2, 1)

    def test_collection_wraps_single_id(self, collector: EntityType) -> None:
        assert normalize_relation_value(collector, collector.relation("stamps"), 4) == (4,)

    def test_collection_none_is_empty(self, collector: EntityType) -> None:
        assert normalize_relation_value(collector, collector.relation("stamps"), None) == ()

    def test_single_accepts_one_element_list(self, collector: EntityType) -> None:
        relation = collector.relation("stamps_one_way")
        assert normalize_relation_value(collector, relation, [5]) == 5
        assert normalize_relation_value(collector, relation, []) is None

    def test_single_rejects_several_ids(self, collector: EntityType) -> None:
        with pytest.raises(InvalidValueError, match="at most one"):
            normalize_relation_value(collector, collector.relation("stamps_one_way"), [1, 2])

    def test_rejects_bool_and_strings(self, collector: EntityType) -> None:
        with pytest.raises(InvalidValueError):
            normalize_relation_value(collector, collector.relation("stamps_one_way"), True)
        with pytest.raises(InvalidValueError):
            normalize_relation_value(collector, collector.relation("stamps"), "1")

    def test_rejects_entity_of_wrong_type(self, collector: EntityType) -> None:
        with pytest.raises(InvalidValueError, match="expected a 'stamp' entity"):
            normalize_relation_value(collector, collector.relation("stamps"), [Entity("collector", 1)])


# ===========================================================================
# Link maintenance
# ===========================================================================


class TestOneToOneLinks:
    def test_partner_points_back(self, engine: Engine) -> None:
        stamp = engine.get("stamp", 2)
        assert _names(engine.resolve(stamp, "collector_one_one")) == ["Isabelle"]

    def test_taking_a_partner_clears_its_previous_owner(self, engine: Engine) -> None:
        engine.update("collector", 3, {"stamps_one_one": 1})
        bernard = engine.get("collector", 1)
        assert engine.resolve(bernard, "stamps_one_one") == []
        assert _names(engine.resolve(engine.get("stamp", 1), "collector_one_one")) == ["Emma"]

    def test_switching_partner_releases_the_old_one(self, engine: Engine) -> None:
        engine.update("collector", 3, {"stamps_one_one": 1})
        assert engine.resolve(engine.get("stamp", 3), "collector_one_one") == []

    def test_write_from_inverse_side(self, engine: Engine) -> None:
        engine.update("stamp", 3, {"collector_one_one": 1})
        assert _names(engine.resolve(engine.get("collector", 1), "stamps_one_one")) == ["1948"]
        assert engine.resolve(engine.get("collector", 3), "stamps_one_one") == []

    def test_clearing(self, engine: Engine) -> None:
        engine.update("collector", 1, {"stamps_one_one": None})
        assert engine.resolve(engine.get("stamp", 1), "collector_one_one") == []


class TestOneToManyLinks:
    def test_foreign_keys_are_set_on_targets(self, engine: Engine) -> None:
        assert _names(engine.resolve(engine.get("stamp", 2), "collector")) == ["Isabelle"]
        assert _names(engine.resolve(engine.get("stamp", 1), "collector")) == ["Emma"]

    def test_rewriting_moves_foreign_keys(self, engine: Engine) -> None:
        engine.update("collector", 1, {"stamps_one_many": [2]})
        assert _names(engine.resolve(engine.get("collector", 1), "stamps_one_many")) == ["1947"]
        assert _names(engine.resolve(engine.get("collector", 2), "stamps_one_many")) == ["1948"]

    def test_rewriting_releases_dropped_targets(self, engine: Engine) -> None:
        engine.update("collector", 2, {"stamps_one_many": []})
        assert engine.resolve(engine.get("stamp", 2), "collector") == []
        assert engine.resolve(engine.get("stamp", 3), "collector") == []

    def test_write_from_many_to_one_side(self, engine: Engine) -> None:
        engine.update("stamp", 3, {"collector": 1})
        assert _names(engine.resolve(engine.get("collector", 1), "stamps_one_many")) == ["1948"]
        assert _names(engine.resolve(engine.get("collector", 2), "stamps_one_many")) == ["1947"]


class TestManyToManyLinks:
    def test_both_sides_agree(self, engine: Engine) -> None:
        assert _names(engine.resolve(engine.get("collector", 3), "stamps_m2m")) == ["1946", "1947"]
        assert _names(engine.resolve(engine.get("stamp", 1), "collectors")) == ["Bernard", "Emma"]

    def test_write_from_non_dominant_side(self, engine: Engine) -> None:
        engine.update("stamp", 3, {"collectors": [2, 3]})
        assert _names(engine.resolve(engine.get("collector", 2), "stamps_m2m")) == ["1948"]
        assert _names(engine.resolve(engine.get("collector", 3), "stamps_m2m")) == ["1946", "1947", "1948"]

    def test_rewrite_replaces_only_own_links(self, engine: Engine) -> None:
        engine.update("collector", 3, {"stamps_m2m": [3]})
        assert _names(engine.resolve(engine.get("collector", 1), "stamps_m2m")) == ["1946"]
        assert _names(engine.resolve(engine.get("stamp", 1), "collectors")) == ["Bernard"]

    def test_join_records_live_on_dominant_side(self, engine: Engine) -> None:
        state: MemoryState = engine.store._state  # noqa: SLF001
        assert set(state.joins) == {("collector", "stamps_m2m")}


class TestDeleteUnlinks:
    def test_many_way_ids_are_removed(self, engine: Engine) -> None:
        engine.delete("stamp", 2)
        assert engine.get("collector", 1).refs["stamps"] == (1,)

    def test_join_pairs_are_removed(self, engine: Engine) -> None:
        engine.delete("collector", 3)
        assert _names(engine.resolve(engine.get("stamp", 1), "collectors")) == ["Bernard"]
        assert engine.resolve(engine.get("stamp", 2), "collectors") == []


# ===========================================================================
# Snapshots
# ===========================================================================


class TestSnapshots:
    def test_snapshot_does_not_see_later_writes(self, engine: Engine) -> None:
        snapshot = engine.snapshot()
        engine.create("stamp", {"name": "1949"})
        engine.delete("collector", 1)
        assert len(snapshot.entities("stamp")) == 3
        assert snapshot.get("collector", 1) is not None

    def test_resolve_against_old_snapshot(self, engine: Engine) -> None:
        snapshot = engine.snapshot()
        bernard = engine.get("collector", 1)
        engine.update("collector", 1, {"stamps": []})
        assert len(engine.resolver.resolve(bernard, "stamps", snapshot)) == 2
        assert engine.count(bernard, "stamps") == 0

    def test_referencing(self, engine: Engine) -> None:
        assert [e.id for e in engine.snapshot().referencing("stamp", "collector", 2)] == [2, 3]

    def test_joined_from_both_sides(self, engine: Engine) -> None:
        snapshot = engine.snapshot()
        assert snapshot.joined("collector", "stamps_m2m", 3, from_dominant=True) == [1, 2]
        assert snapshot.joined("collector", "stamps_m2m", 1, from_dominant=False) == [1, 3]

    def test_concurrent_creates_get_distinct_ids(self, empty_engine: Engine) -> None:
        empty_engine.freeze()
        ids: list[int] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(20):
                created = empty_engine.create("stamp", {"name": "x"})
                with lock:
                    ids.append(created.id)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert sorted(ids) == list(range(1, 81))
        assert len(empty_engine.all("stamp")) == 80
