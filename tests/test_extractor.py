from api_command_agent.tools.extractor import (
    STRATEGIES,
    ToolInvocation,
    extract_tool_call,
    find_marker,
    looks_like_tool_call,
    partial_marker_length,
    sanitize_json,
)


class TestPatterns:
    def test_bracketed_marker(self):
        inv = extract_tool_call('Sure! [TOOL:createEndpoint]{"endpoint": "/a", "method": "GET"}')
        assert inv == ToolInvocation(tool_name="createEndpoint", parameters={"endpoint": "/a", "method": "GET"})

    def test_bracketed_with_trailing_bracket_noise(self):
        inv = extract_tool_call('[TOOL:createEndpoint]{"endpoint": "/a"}]')
        assert inv.parameters == {"endpoint": "/a"}

    def test_bracketed_with_repeated_noise(self):
        inv = extract_tool_call('[TOOL:createEndpoint]{"endpoint": "/a"}}]]')
        assert inv.parameters == {"endpoint": "/a"}

    def test_unbracketed_marker(self):
        inv = extract_tool_call('TOOL:createEndpoint{"endpoint": "/b"}')
        assert inv.tool_name == "createEndpoint"
        assert inv.parameters == {"endpoint": "/b"}

    def test_unbracketed_marker_with_space(self):
        inv = extract_tool_call('TOOL:searchDocs {"query": "auth"}')
        assert inv.tool_name == "searchDocs"

    def test_nested_objects(self):
        inv = extract_tool_call('[TOOL:x]{"a": {"b": [1, {"c": 2}]}}')
        assert inv.parameters == {"a": {"b": [1, {"c": 2}]}}

    def test_multiline_json(self):
        text = '[TOOL:createEndpoint]\n{\n  "endpoint": "/a",\n  "method": "GET"\n}\n'
        assert extract_tool_call(text).parameters["method"] == "GET"

    def test_trailing_prose_with_braces(self):
        text = '[TOOL:x]{"a": 1} and then {something} else'
        assert extract_tool_call(text).parameters == {"a": 1}

    def test_braces_inside_strings(self):
        inv = extract_tool_call('[TOOL:x]{"code": "function() { return 1; }"}')
        assert inv.parameters == {"code": "function() { return 1; }"}


class TestSanitize:
    def test_trailing_comma_recovered(self):
        inv = extract_tool_call('[TOOL:createEndpoint]{"endpoint":"/a","method":"GET",}')
        assert inv.tool_name == "createEndpoint"
        assert inv.parameters == {"endpoint": "/a", "method": "GET"}

    def test_trailing_comma_in_array(self):
        inv = extract_tool_call('[TOOL:x]{"path": ["A", "B",],}')
        assert inv.parameters == {"path": ["A", "B"]}

    def test_sanitize_json(self):
        assert sanitize_json('{"a": [1, 2,],\n}') == '{"a": [1, 2]}'


class TestFallback:
    def test_loose_marker_before_braces(self):
        inv = extract_tool_call('Calling tool: createEndpoint with {"endpoint": "/c", "method": "POST"} now')
        assert inv.tool_name == "createEndpoint"
        assert inv.parameters["endpoint"] == "/c"

    def test_braces_without_marker_are_prose(self):
        assert extract_tool_call('Here is JSON: {"a": 1}') is None


class TestMisses:
    def test_plain_prose(self):
        assert extract_tool_call("Just a friendly answer about HTTP caching.") is None

    def test_marker_without_json(self):
        assert extract_tool_call("[TOOL:createEndpoint] I will do it later") is None

    def test_unrecoverable_json(self):
        assert extract_tool_call("[TOOL:x]{endpoint: /a, method GET}") is None

    def test_array_payload_is_not_a_call(self):
        assert extract_tool_call("[TOOL:x][1, 2]") is None

    def test_empty_text(self):
        assert extract_tool_call("") is None


class TestDeterminism:
    def test_same_input_same_result(self):
        text = 'a [TOOL:one]{"x": 1}] b TOOL:two{"y": 2}'
        results = [extract_tool_call(text) for _ in range(5)]
        assert all(r == results[0] for r in results)
        assert results[0].tool_name == "one"
        assert results[0].parameters == {"x": 1}

    def test_first_marker_wins(self):
        text = '[TOOL:one]{"x": 1} [TOOL:two]{"y": 2}'
        inv = extract_tool_call(text)
        assert inv.tool_name == "one"

    def test_strategy_order_is_fixed(self):
        names = [s.__name__ for s in STRATEGIES]
        assert names == ["_bracketed_with_noise", "_bracketed", "_unbracketed", "_outermost_braces"]


class TestMarkerHelpers:
    def test_find_marker(self):
        assert find_marker("ab [TOOL:x]") == 3
        assert find_marker("ab TOOL:x") == 3
        assert find_marker("nothing") == -1

    def test_looks_like_tool_call(self):
        assert looks_like_tool_call("x [TOOL:") is True
        assert looks_like_tool_call("x [TOO") is False

    def test_partial_marker_length(self):
        assert partial_marker_length("hello [TO") == 3
        assert partial_marker_length("hello TOOL") == 4
        assert partial_marker_length("hello [") == 1
        assert partial_marker_length("hello") == 0

    def test_find_marker_loose_form(self):
        assert find_marker('Sure. Tool: createEndpoint {"a": 1}') == 6
        assert find_marker('x "tool": "echo"') == 3

    def test_find_marker_takes_earliest(self):
        assert find_marker('tool=first then [TOOL:second]') == 0

    def test_partial_loose_marker(self):
        assert partial_marker_length("ok Tool") == 4
        assert partial_marker_length("ok tool: ") == 6
        assert partial_marker_length("ok [to") == 3

    def test_partial_marker_needs_word_start(self):
        assert partial_marker_length("that") == 0
        assert partial_marker_length("pivot") == 0


class TestStringAwareTrimming:
    def test_unmatched_brace_inside_string(self):
        inv = extract_tool_call('[TOOL:x]{"endpoint": "/a", "implementation": "}"}')
        assert inv.parameters == {"endpoint": "/a", "implementation": "}"}

    def test_unmatched_brace_inside_string_with_noise(self):
        inv = extract_tool_call('[TOOL:x]{"implementation": "}"}}]')
        assert inv.parameters == {"implementation": "}"}

    def test_open_brace_inside_string(self):
        inv = extract_tool_call('TOOL:x{"code": "if (a) {"}')
        assert inv.parameters == {"code": "if (a) {"}
