"""
Tests for RuleStore, the key-value backends and SettingsStore.
"""

import asyncio
import json

import pytest

from webtailor.errors import PersistenceError
from webtailor.models.schemas import Action, ActionOutcome, ExecutionPlan, Rule
from webtailor.rule_store import (
    RULES_KEY,
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    RuleStore,
    SettingsStore,
)


def make_rule(command="always hide ads", timestamp=1_000.0):
    return Rule(
        command=command,
        execution_plan=ExecutionPlan(actions=[Action(tool="applyCSS", parameters={"css": "a{}", "description": "A"})]),
        results=[ActionOutcome(tool="hideElements", success=True, result={"css": "a{}"})],
        timestamp=timestamp,
    )


class BrokenStore(KeyValueStore):
    """Backend whose reads and/or writes always fail."""

    def __init__(self, fail_reads=True, fail_writes=True):
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.writes = 0

    async def get(self, keys):
        if self.fail_reads:
            raise PersistenceError("read", OSError("disk gone"))
        return {}

    async def set(self, mapping):
        self.writes += 1
        if self.fail_writes:
            raise PersistenceError("write", OSError("read-only"))


class TestRuleStore:

    @pytest.mark.asyncio
    async def test_cap_evicts_smallest_timestamp(self):
        backend = MemoryStore()
        store = RuleStore(backend, max_rules=10)
        timestamps = [50.0, 10.0, 90.0, 30.0, 70.0, 20.0, 80.0, 40.0, 60.0, 100.0, 6.0]
        for i, ts in enumerate(timestamps):
            await store.save("example.com", make_rule(f"rule {i}", ts))

        rules = await store.load("example.com")
        assert len(rules) == 10
        assert 6.0 not in [r.timestamp for r in rules]
        assert len(backend.data[RULES_KEY]["example.com"]) == 10

    @pytest.mark.asyncio
    async def test_cap_drops_oldest_even_when_newest_is_last(self):
        store = RuleStore(MemoryStore(), max_rules=3)
        for ts in (1.0, 2.0, 3.0, 4.0):
            await store.save("example.com", make_rule(timestamp=ts))
        assert sorted(r.timestamp for r in await store.load("example.com")) == [2.0, 3.0, 4.0]

    @pytest.mark.asyncio
    async def test_no_dedup_by_command(self):
        store = RuleStore(MemoryStore())
        await store.save("example.com", make_rule("same", 1.0))
        await store.save("example.com", make_rule("same", 2.0))
        assert len(await store.load("example.com")) == 2

    @pytest.mark.asyncio
    async def test_origins_are_independent(self):
        store = RuleStore(MemoryStore())
        await store.save("a.com", make_rule())
        assert await store.load("b.com") == []
        assert store.origins() == ["a.com"]
        assert store.has_rules("a.com") and not store.has_rules("b.com")

    @pytest.mark.asyncio
    async def test_clear_writes_through(self):
        backend = MemoryStore()
        store = RuleStore(backend)
        await store.save("a.com", make_rule())
        await store.save("b.com", make_rule())

        await store.clear("a.com")

        assert await store.load("a.com") == []
        assert list(backend.data[RULES_KEY]) == ["b.com"]

    @pytest.mark.asyncio
    async def test_survives_restart_through_json_file(self, tmp_path):
        path = str(tmp_path / "storage.json")
        first = RuleStore(JsonFileStore(path))
        await first.save("example.co.uk", make_rule(timestamp=123.5))

        second = RuleStore(JsonFileStore(path))
        await second.load_all()

        [rule] = await second.load("example.co.uk")
        assert rule == make_rule(timestamp=123.5)
        with open(path, encoding="utf-8") as f:
            assert "example.co.uk" in json.load(f)[RULES_KEY]

    @pytest.mark.asyncio
    async def test_write_failure_keeps_in_memory_state(self):
        backend = BrokenStore(fail_reads=False)
        store = RuleStore(backend)

        written = await store.save("example.com", make_rule())

        assert written is False
        assert backend.writes == 1
        assert len(await store.load("example.com")) == 1

    @pytest.mark.asyncio
    async def test_read_failure_starts_empty(self):
        store = RuleStore(BrokenStore())
        await store.load_all()
        assert store.loaded
        assert store.origins() == []

    @pytest.mark.asyncio
    async def test_malformed_rules_are_dropped_on_load(self):
        good = make_rule().model_dump(mode="json")
        store = RuleStore(MemoryStore({RULES_KEY: {"example.com": [good, {"command": 3}]}}))
        await store.load_all()
        assert len(await store.load("example.com")) == 1

    @pytest.mark.asyncio
    async def test_save_before_load_all_keeps_stored_origins(self):
        stored = make_rule("dark mode", 5.0).model_dump(mode="json")
        backend = MemoryStore({RULES_KEY: {"other.org": [stored]}})
        store = RuleStore(backend)

        assert await store.save("example.com", make_rule())

        assert store.loaded
        assert sorted(backend.data[RULES_KEY]) == ["example.com", "other.org"]
        assert backend.data[RULES_KEY]["other.org"] == [stored]

    @pytest.mark.asyncio
    async def test_clear_before_load_all_keeps_stored_origins(self):
        stored = make_rule().model_dump(mode="json")
        backend = MemoryStore({RULES_KEY: {"a.com": [stored], "b.com": [stored]}})

        assert await RuleStore(backend).clear("a.com")

        assert backend.data[RULES_KEY] == {"b.com": [stored]}

    @pytest.mark.asyncio
    async def test_zero_cap_is_respected(self):
        store = RuleStore(MemoryStore(), max_rules=0)
        assert store.max_rules == 0

        await store.save("example.com", make_rule())

        assert await store.load("example.com") == []
        assert not store.has_rules("example.com")


class TestJsonFileStore:

    @pytest.mark.asyncio
    async def test_missing_file_reads_empty(self, tmp_path):
        assert await JsonFileStore(str(tmp_path / "none.json")).get(["apiKey"]) == {}

    @pytest.mark.asyncio
    async def test_set_merges_keys(self, tmp_path):
        store = JsonFileStore(str(tmp_path / "nested" / "storage.json"))
        await store.set({"apiKey": "k"})
        await store.set({"globalPromptText": "dark mode"})
        assert await store.get(["apiKey", "globalPromptText", "other"]) == {
            "apiKey": "k", "globalPromptText": "dark mode",
        }

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_persistence_error(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            await JsonFileStore(str(path)).get([RULES_KEY])

    @pytest.mark.asyncio
    async def test_concurrent_rule_and_settings_writes_all_land(self, tmp_path):
        path = str(tmp_path / "storage.json")
        backend = JsonFileStore(path)
        store = RuleStore(backend)
        settings_store = SettingsStore(backend)

        for i in range(40):
            await asyncio.gather(
                store.save(f"o{i}.com", make_rule(f"rule {i}")),
                settings_store.update(global_prompt=f"g{i}"),
            )

        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert len(data[RULES_KEY]) == 40
        assert data["globalPromptText"] == "g39"
        assert [p.name for p in tmp_path.iterdir()] == ["storage.json"]


class TestSettingsStore:

    @pytest.mark.asyncio
    async def test_update_and_load(self):
        settings_store = SettingsStore(MemoryStore())
        assert await settings_store.load() == {"apiKey": "", "globalPromptText": ""}

        await settings_store.update(api_key="  key-1 ", global_prompt="larger text ")

        assert await settings_store.api_key() == "key-1"
        assert await settings_store.global_prompt() == "larger text"

    @pytest.mark.asyncio
    async def test_load_failure_reads_as_unset(self):
        assert await SettingsStore(BrokenStore()).load() == {"apiKey": "", "globalPromptText": ""}
