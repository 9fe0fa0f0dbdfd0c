"""Unit tests for the JSON-file-backed SettingsStore."""

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
import pytest_check as check

from chatrelay.models.schemas import KnowledgeFile, KnowledgeUrl, SettingsUpdate
from chatrelay.relay.config import RelayConfig
from chatrelay.store.settings_store import (
    SettingsConflictError,
    SettingsStore,
    default_settings_factory,
)


def reopen(store: SettingsStore, config: RelayConfig) -> SettingsStore:
    return SettingsStore(store.path, defaults=default_settings_factory(config))


class TestSettingsStoreDefaults:
    """Tests for a fresh store."""

    def test_defaults_without_file(self, settings_store: SettingsStore) -> None:
        settings = settings_store.get()

        check.equal(settings.api_key, "")
        check.equal(settings.model_name, "test-model")
        check.equal(settings.system_prompt, "You are a test assistant.")
        check.equal(settings.revision, 0)
        check.is_false(settings_store.path.exists())

    def test_get_returns_copy(self, settings_store: SettingsStore) -> None:
        """Mutating a returned object does not change the store."""
        settings = settings_store.get()
        settings.api_key = "mutated"

        assert settings_store.get().api_key == ""


class TestSettingsStoreUpdate:
    """Tests for partial updates and persistence."""

    def test_partial_update_keeps_other_fields(self, settings_store: SettingsStore) -> None:
        settings_store.update(SettingsUpdate(api_key="sk-1", temperature=0.2))
        settings = settings_store.update(SettingsUpdate(model_name="gpt-4"))

        check.equal(settings.api_key, "sk-1")
        check.equal(settings.temperature, 0.2)
        check.equal(settings.model_name, "gpt-4")

    def test_null_fields_are_ignored(self, settings_store: SettingsStore) -> None:
        settings_store.update(SettingsUpdate(api_key="sk-1"))
        settings = settings_store.update(SettingsUpdate.model_validate({"apiKey": None}))

        assert settings.api_key == "sk-1"

    def test_update_bumps_revision_and_timestamp(self, settings_store: SettingsStore) -> None:
        first = settings_store.update(SettingsUpdate(api_key="sk-1"))
        second = settings_store.update(SettingsUpdate(api_key="sk-2"))

        check.equal(first.revision, 1)
        check.equal(second.revision, 2)
        check.greater(second.last_updated, 0)

    def test_persists_across_instances(
        self, settings_store: SettingsStore, relay_config: RelayConfig
    ) -> None:
        settings_store.update(SettingsUpdate(api_key="sk-1", system_prompt="Be brief."))

        reloaded = reopen(settings_store, relay_config).get()

        check.equal(reloaded.api_key, "sk-1")
        check.equal(reloaded.system_prompt, "Be brief.")
        check.equal(reloaded.revision, 1)

    def test_file_is_versioned_camel_case(self, settings_store: SettingsStore) -> None:
        settings_store.update(SettingsUpdate(api_key="sk-1"))

        raw = json.loads(settings_store.path.read_text(encoding="utf-8"))

        check.equal(raw["version"], 2)
        check.equal(raw["data"]["apiKey"], "sk-1")
        check.is_in("knowledgeBaseFiles", raw["data"])

    def test_matching_revision_is_accepted(self, settings_store: SettingsStore) -> None:
        current = settings_store.update(SettingsUpdate(api_key="sk-1"))

        settings = settings_store.update(SettingsUpdate(api_key="sk-2", revision=current.revision))

        assert settings.api_key == "sk-2"

    def test_stale_revision_is_rejected(self, settings_store: SettingsStore) -> None:
        """A writer that missed a newer write gets a conflict, not an overwrite."""
        settings_store.update(SettingsUpdate(api_key="sk-1"))
        settings_store.update(SettingsUpdate(api_key="sk-2"))

        with pytest.raises(SettingsConflictError) as exc_info:
            settings_store.update(SettingsUpdate(api_key="sk-stale", revision=1))

        check.equal(exc_info.value.current, 2)
        check.equal(exc_info.value.expected, 1)
        check.equal(settings_store.get().api_key, "sk-2")

    def test_concurrent_writers_serialize(self, settings_store: SettingsStore) -> None:
        """Every concurrent write gets its own revision."""
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda i: settings_store.update(SettingsUpdate(api_key=f"k{i}")), range(40)))

        assert settings_store.get().revision == 40

    def test_reset_restores_defaults(self, settings_store: SettingsStore) -> None:
        settings_store.update(SettingsUpdate(api_key="sk-1", model_name="gpt-4"))

        settings = settings_store.reset()

        check.equal(settings.api_key, "")
        check.equal(settings.model_name, "test-model")
        check.equal(settings.revision, 2)


class TestSettingsStoreKnowledge:
    """Tests for knowledge file and link management."""

    def test_add_and_remove_file(self, settings_store: SettingsStore) -> None:
        settings_store.add_knowledge_file(KnowledgeFile(id="f1", filename="a.txt", content="A"))

        check.equal([f.id for f in settings_store.get().knowledge_base_files], ["f1"])
        check.is_true(settings_store.remove_knowledge_file("f1"))
        check.equal(settings_store.get().knowledge_base_files, [])

    def test_remove_missing_file(self, settings_store: SettingsStore) -> None:
        assert settings_store.remove_knowledge_file("missing") is False

    def test_add_and_remove_url(self, settings_store: SettingsStore) -> None:
        settings_store.add_knowledge_url(KnowledgeUrl(id="u1", url="https://koi.test", title="Koi"))

        check.equal(len(settings_store.get().knowledge_base_urls), 1)
        check.is_true(settings_store.remove_knowledge_url("u1"))
        check.is_false(settings_store.remove_knowledge_url("u1"))


class TestSettingsStoreLegacyFile:
    """Tests for loading files written by older versions."""

    def test_loads_unversioned_file(self, tmp_path: Path) -> None:
        """A bare settings object with the old single knowledge field is upgraded."""
        path = tmp_path / "settings.json"
        path.write_text(
            json.dumps(
                {
                    "apiKey": "sk-old",
                    "knowledgeBaseContent": "Old knowledge",
                    "knowledgeFileName": "old.txt",
                    "lastUpdated": 99,
                }
            ),
            encoding="utf-8",
        )

        settings = SettingsStore(path).get()

        check.equal(settings.api_key, "sk-old")
        check.equal(len(settings.knowledge_base_files), 1)
        check.equal(settings.knowledge_base_files[0].filename, "old.txt")
        check.equal(settings.knowledge_base_files[0].content, "Old knowledge")
        check.equal(settings.knowledge_base_urls, [])
