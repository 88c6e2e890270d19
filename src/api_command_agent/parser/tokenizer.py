"""Quote-aware whitespace tokenizer for command lines.

Matching single or double quotes group characters into one token and are
dropped; their content is kept verbatim. A quote preceded by a backslash is
literal text, and the backslash is kept too. An unterminated quote never
fails: the open token is flushed at end of input.
"""

QUOTE_CHARS = ("'", '"')


def tokenize(text: str) -> list[str]:
    """Split ``text`` into tokens, honouring quotes."""
    tokens: list[str] = []
    current: list[str] = []
    quote_char = ""

    for i, char in enumerate(text):
        escaped = i > 0 and text[i - 1] == "\\"
        if char in QUOTE_CHARS and not escaped:
            if not quote_char:
                quote_char = char
            elif char == quote_char:
                quote_char = ""
            else:
                current.append(char)
        elif char.isspace() and not quote_char:
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(char)

    if current:
        tokens.append("".join(current))
    return tokens
