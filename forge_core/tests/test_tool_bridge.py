import pytest

from forge_core.domain.cancellation import CancellationTokenSource
from forge_core.domain.exceptions import RequestCancelledError, ToolInvocationError
from forge_core.domain.models import ProviderKind
from forge_core.tools.bridge import ToolBridge
from forge_core.tools.definitions import ToolDef

from fakes import FakeAdapter


def _bridge(*tools, supports_tools=True):
    return ToolBridge(FakeAdapter(ProviderKind.COPILOT, supports_tools=supports_tools, tools=list(tools)))


def test_web_search_matched_by_name_case_insensitive():
    tool = ToolDef(name="Vendor_WebSearch", description="")
    assert _bridge(ToolDef(name="read_file", description=""), tool).find_web_search_tool() is tool


def test_web_search_name_match_beats_tag_match():
    tagged = ToolDef(name="fetch", description="", tags=["web"])
    named = ToolDef(name="copilot_websearch", description="")
    assert _bridge(tagged, named).find_web_search_tool() is named


def test_web_search_falls_back_to_tags():
    tagged = ToolDef(name="bing", description="", tags=["online", "search"])
    assert _bridge(ToolDef(name="read_file", description=""), tagged).find_web_search_tool() is tagged


def test_web_search_none_when_absent():
    assert _bridge(ToolDef(name="read_file", description="", tags=["files"])).find_web_search_tool() is None


def test_invoke_passes_through_and_checks_token():
    bridge = _bridge()
    source = CancellationTokenSource()
    assert bridge.invoke("lookup", {"q": 1}, source.token) == "result of lookup"
    source.cancel()
    with pytest.raises(RequestCancelledError):
        bridge.invoke("lookup", {}, source.token)


def test_invoke_on_adapter_without_tools_raises():
    with pytest.raises(ToolInvocationError):
        _bridge(supports_tools=False).invoke("lookup", {}, CancellationTokenSource().token)
