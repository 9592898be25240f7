import pytest

from forge_core.domain.exceptions import ApiError, BusinessError, ValidationError
from forge_core.domain.models import ModelDescriptor, ProviderKind, Purpose
from forge_core.domain.preferences import GEMINI_MODEL_KEY
from forge_core.engine.model_store import ModelAssignmentStore
from forge_core.infrastructure.storage.json_store import JsonPreferenceStore
from forge_core.providers.gemini_client import GeminiAdapter, GeminiClient

from fakes import FakeAdapter, MemoryPreferences


class SettingsStub:
    gemini_api_key = "gemini-key-123456"
    gemini_base_url = "https://example.test/v1beta"
    gemini_model = "gemini-2.5-flash"
    http_timeout = 1.0


def _copilot_models():
    return [
        ModelDescriptor(id="gpt-4o", name="GPT-4o", vendor="copilot", family="gpt-4o"),
        ModelDescriptor(id="gpt-4.1", name="GPT-4.1", vendor="copilot", family="gpt-4.1"),
    ]


def test_hydrates_from_preferences():
    prefs = MemoryPreferences({"ai.modelOverride.chat": "gpt-4.1", "ai.modelOverride.agent": "  "})
    store = ModelAssignmentStore(prefs)
    assert store.get_model_assignments() == {"chat": "gpt-4.1"}


def test_set_and_clear_write_through():
    prefs = MemoryPreferences()
    store = ModelAssignmentStore(prefs)
    store.set_model("summary", "gpt-4.1")
    assert prefs.data["ai.modelOverride.summary"] == "gpt-4.1"
    store.set_model(Purpose.SUMMARY, "")
    assert "ai.modelOverride.summary" not in prefs.data
    assert prefs.writes == [("ai.modelOverride.summary", "gpt-4.1"), ("ai.modelOverride.summary", None)]
    assert store.get_model_assignments() == {}


def test_assignments_are_a_copy():
    store = ModelAssignmentStore(MemoryPreferences())
    store.set_model("chat", "gpt-4o")
    snapshot = store.get_model_assignments()
    snapshot["chat"] = "tampered"
    assert store.get_model_assignments() == {"chat": "gpt-4o"}


def test_unknown_purpose_rejected():
    store = ModelAssignmentStore(MemoryPreferences())
    with pytest.raises(ValidationError):
        store.set_model("translate", "gpt-4o")


def test_override_used_when_in_catalog():
    store = ModelAssignmentStore(MemoryPreferences({"ai.modelOverride.chat": "gpt-4.1"}))
    adapter = FakeAdapter(ProviderKind.COPILOT, supports_tools=True, models=_copilot_models())
    assert store.resolve("chat", adapter).id == "gpt-4.1"


def test_invalid_override_falls_back_to_default_chain():
    store = ModelAssignmentStore(MemoryPreferences({"ai.modelOverride.chat": "claude-x"}))
    adapter = FakeAdapter(ProviderKind.COPILOT, supports_tools=True, models=_copilot_models())
    assert store.resolve("chat", adapter) == adapter.default_model()


def test_override_for_other_purpose_not_used():
    store = ModelAssignmentStore(MemoryPreferences({"ai.modelOverride.chat": "gpt-4.1"}))
    adapter = FakeAdapter(ProviderKind.COPILOT, supports_tools=True, models=_copilot_models())
    assert store.resolve("summary", adapter).id == "gpt-4o"


def test_gemini_override_outside_catalog_uses_configured_default():
    prefs = MemoryPreferences({"ai.modelOverride.summary": "gpt-4o", GEMINI_MODEL_KEY: "gemini-2.5-pro"})
    adapter = GeminiAdapter(GeminiClient(SettingsStub()), prefs, SettingsStub())
    store = ModelAssignmentStore(prefs)
    assert store.resolve("summary", adapter).id == "gemini-2.5-pro"


def test_gemini_default_falls_back_to_literal():
    class NoModel(SettingsStub):
        gemini_model = ""

    adapter = GeminiAdapter(GeminiClient(NoModel()), MemoryPreferences(), NoModel())
    store = ModelAssignmentStore(MemoryPreferences())
    assert store.resolve("agent", adapter).id == "gemini-2.5-flash"


def test_selection_error_treated_as_no_model():
    class Broken(FakeAdapter):
        def default_model(self):
            raise ApiError(code="API_ERROR", message="boom")

    store = ModelAssignmentStore(MemoryPreferences())
    assert store.resolve("chat", Broken(ProviderKind.COPILOT)) is None


def test_failed_persist_leaves_override_unchanged(monkeypatch, tmp_path):
    prefs = JsonPreferenceStore(root=tmp_path)
    store = ModelAssignmentStore(prefs)
    store.set_model("chat", "gpt-4.1")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("os.replace", broken_replace)
    with pytest.raises(BusinessError):
        store.set_model("chat", "gpt-4o")
    with pytest.raises(BusinessError):
        store.set_model("chat", "")
    assert store.get_model_assignments() == {"chat": "gpt-4.1"}
    assert prefs.get("ai.modelOverride.chat") == "gpt-4.1"
