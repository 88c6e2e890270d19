import re

from api_command_agent.parser.tokenizer import tokenize


class TestTokenize:
    def test_splits_on_whitespace(self):
        assert tokenize("curl  -X\tPOST\nhttp://a.com") == ["curl", "-X", "POST", "http://a.com"]

    def test_double_quotes_keep_spaces(self):
        assert tokenize('-H "Accept: text/plain"') == ["-H", "Accept: text/plain"]

    def test_single_quotes_keep_inner_double_quotes(self):
        assert tokenize("""-d '{"a": "b c"}'""") == ["-d", '{"a": "b c"}']

    def test_other_quote_inside_quotes_is_literal(self):
        assert tokenize('''"it's fine"''') == ["it's fine"]

    def test_escaped_quote_does_not_toggle(self):
        tokens = tokenize(r'-d "{\"a\": 1}"')
        assert tokens == ["-d", r'{\"a\": 1}']

    def test_quotes_glue_adjacent_text(self):
        assert tokenize("""ab'c d'ef""") == ["abc def"]

    def test_unterminated_quote_flushes_at_end(self):
        assert tokenize('curl "http://a.com/x y') == ["curl", "http://a.com/x y"]

    def test_empty_input(self):
        assert tokenize("") == []
        assert tokenize("   \n ") == []

    def test_never_emits_empty_tokens(self):
        assert "" not in tokenize("a  ''  b")

    def test_keeps_all_non_delimiter_characters(self):
        text = """curl -X POST 'https://x.io/a?b=1' -H "K: v w" -d '{"n": [1, 2]}' unterminated 'tail"""
        joined = " ".join(tokenize(text))
        expected = re.findall(r"[A-Za-z0-9]", text)
        assert sorted(re.findall(r"[A-Za-z0-9]", joined)) == sorted(expected)
