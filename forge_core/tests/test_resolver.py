import pytest

from forge_core.domain.models import ProviderKind
from forge_core.domain.preferences import PROVIDER_KEY
from forge_core.engine.resolver import ProviderResolver

from fakes import FakeAdapter, MemoryPreferences


def _resolver(pref, copilot_ok, gemini_ok):
    prefs = MemoryPreferences({PROVIDER_KEY: pref} if pref is not None else {})
    copilot = FakeAdapter(ProviderKind.COPILOT, supports_tools=True, available=copilot_ok)
    gemini = FakeAdapter(ProviderKind.GEMINI, available=gemini_ok)
    return ProviderResolver(prefs, copilot, gemini, default_preference="auto")


@pytest.mark.parametrize(
    "pref,copilot_ok,gemini_ok,expected",
    [
        ("copilot", True, True, ProviderKind.COPILOT),
        ("copilot", False, True, ProviderKind.NONE),
        ("gemini", True, True, ProviderKind.GEMINI),
        ("gemini", True, False, ProviderKind.NONE),
        ("auto", True, True, ProviderKind.COPILOT),
        ("auto", False, True, ProviderKind.GEMINI),
        ("auto", False, False, ProviderKind.NONE),
        (None, False, True, ProviderKind.GEMINI),
        ("something-else", True, False, ProviderKind.COPILOT),
        ("  Gemini ", False, True, ProviderKind.GEMINI),
    ],
)
def test_active_provider_matrix(pref, copilot_ok, gemini_ok, expected):
    assert _resolver(pref, copilot_ok, gemini_ok).active_provider() == expected


def test_is_available_ignores_preference():
    r = _resolver("copilot", False, True)
    assert r.active_provider() == ProviderKind.NONE
    assert r.is_available() is True
    assert _resolver("auto", False, False).is_available() is False


def test_adapter_for_none_is_none():
    r = _resolver("auto", True, True)
    assert r.adapter_for(ProviderKind.NONE) is None
    assert r.adapter_for(ProviderKind.GEMINI).kind == ProviderKind.GEMINI
