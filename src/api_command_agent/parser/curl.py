"""cURL command parser.

Turns a pasted cURL invocation into a :class:`ParsedRequest`, and renders a
request back into a command line. Parsing is permissive: unknown options are
skipped and only a command with no locatable URL is rejected.
"""

import json
import logging
import re
from urllib.parse import parse_qsl, urlencode, urlsplit

from api_command_agent.exceptions import MalformedCommandError
from api_command_agent.parser.base import (
    AuthType,
    BodyEncoding,
    KeyValue,
    ParsedRequest,
    RequestAuth,
)
from api_command_agent.parser.tokenizer import tokenize

logger = logging.getLogger(__name__)

METHOD_FLAGS = {"-X", "--request"}
HEADER_FLAGS = {"-H", "--header"}
DATA_FLAGS = {"-d", "--data", "--data-raw", "--data-binary", "--data-ascii", "--data-urlencode"}
USER_FLAGS = {"-u", "--user"}
FORM_FLAGS = {"-F", "--form"}
URL_FLAGS = {"--url"}

# Options whose value becomes a header.
HEADER_ALIAS_FLAGS = {
    "-A": "User-Agent",
    "--user-agent": "User-Agent",
    "-e": "Referer",
    "--referer": "Referer",
}
COOKIE_FLAGS = {"-b", "--cookie"}

# Value-taking options that are not modelled; their argument is skipped.
IGNORED_VALUE_FLAGS = {
    "-o", "--output", "-m", "--max-time", "-c", "--cookie-jar", "-x", "--proxy",
    "-U", "--proxy-user", "--connect-timeout", "-w", "--write-out", "-E", "--cert",
    "--cacert", "--key", "-T", "--upload-file", "-r", "--range", "--retry",
    "-K", "--config", "--resolve", "-Y", "--speed-limit", "-y", "--speed-time",
    "--limit-rate", "--max-redirs",
}

_URL_RE = re.compile(r"https?://[^\s\"'<>]+", re.IGNORECASE)
_FORM_BODY_RE = re.compile(r"^[^=&\s]+=[^&]*(?:&[^=&\s]+=[^&]*)+$")
_CONTINUATION_RE = re.compile(r"\\\r?\n")
_QUOTE_SPLIT_RE = re.compile(r"\\*'|\\+\Z")


def is_curl_command(text: str) -> bool:
    """Return True if ``text`` looks like a cURL command."""
    return text.strip().lower().startswith("curl ")


def normalize_command(command: str) -> str:
    """Replace shell line continuations with spaces.

    Whitespace is otherwise left alone so quoted content survives intact.
    """
    return _CONTINUATION_RE.sub(" ", command.strip())


def parse_curl(command: str) -> ParsedRequest:
    """Parse a cURL command into a ParsedRequest.

    Raises MalformedCommandError when no URL can be found.
    """
    normalized = normalize_command(command)
    tokens = tokenize(normalized)

    explicit_method: str | None = None
    url = ""
    headers: list[KeyValue] = []
    data_parts: list[str] = []
    form_fields: list[str] = []
    username = password = ""
    has_basic_auth = False
    data_as_query = False

    i = 1 if tokens and tokens[0].lower() == "curl" else 0
    while i < len(tokens):
        flag, inline = _split_option(tokens[i])
        if inline is None and i + 1 < len(tokens):
            value: str | None = tokens[i + 1]
            step = 2
        else:
            value = inline
            step = 1

        if flag in METHOD_FLAGS and value is not None:
            explicit_method = value.strip().upper()
        elif flag in HEADER_FLAGS and value is not None:
            header = _parse_header(value)
            if header:
                headers.append(header)
        elif flag in DATA_FLAGS and value is not None:
            data_parts.append(value)
        elif flag in USER_FLAGS and value is not None:
            username, _, password = value.partition(":")
            has_basic_auth = bool(username)
        elif flag in FORM_FLAGS and value is not None:
            form_fields.append(value)
        elif flag in URL_FLAGS and value is not None:
            url = url or value
        elif flag in HEADER_ALIAS_FLAGS and value is not None:
            headers.append(KeyValue(name=HEADER_ALIAS_FLAGS[flag], value=value.strip()))
        elif flag in COOKIE_FLAGS and value is not None:
            if "=" in value:
                headers.append(KeyValue(name="Cookie", value=value.strip()))
        elif flag in IGNORED_VALUE_FLAGS and value is not None:
            pass
        elif flag in ("-I", "--head"):
            explicit_method = "HEAD"
            step = 1
        elif flag in ("-G", "--get"):
            data_as_query = True
            step = 1
        elif flag.startswith("-"):
            logger.debug("Skipping unsupported curl option %s", flag)
            step = 1
        else:
            if not url:
                url = tokens[i]
            else:
                logger.debug("Ignoring extra positional argument %r", tokens[i])
            step = 1
        i += step

    if not url:
        match = _URL_RE.search(normalized)
        if not match:
            raise MalformedCommandError("No URL found in curl command", command=command)
        url = match.group(0)

    url, query_params = _split_query(url)
    if not url.lower().startswith("http"):
        url = f"https://{url}"

    body = "&".join(data_parts)
    if data_as_query and body:
        query_params.extend(KeyValue(name=k, value=v) for k, v in parse_qsl(body, keep_blank_values=True))
        body = ""
        explicit_method = explicit_method or "GET"

    body_encoding = infer_body_encoding(body, headers)
    if form_fields:
        body = body or "&".join(form_fields)
        if _content_type(headers) is None:
            body_encoding = BodyEncoding.MULTIPART_FORM

    method = explicit_method or ("POST" if body else "GET")
    auth = _detect_auth(headers, username, password, has_basic_auth)

    return ParsedRequest(
        name=_request_name(method, url),
        method=method,
        url=url,
        headers=tuple(headers),
        query_params=tuple(query_params),
        body=body,
        body_encoding=body_encoding,
        auth=auth,
    )


def infer_body_encoding(body: str, headers: list[KeyValue]) -> BodyEncoding:
    """Infer the body encoding from Content-Type, then from the body shape."""
    if not body:
        return BodyEncoding.NONE

    content_type = _content_type(headers)
    if content_type is not None:
        content_type = content_type.lower()
        if "application/json" in content_type or "+json" in content_type:
            return BodyEncoding.JSON
        if "application/x-www-form-urlencoded" in content_type:
            return BodyEncoding.FORM_URLENCODED
        if "multipart/form-data" in content_type:
            return BodyEncoding.MULTIPART_FORM
        return BodyEncoding.PLAIN_TEXT

    stripped = body.strip()
    if stripped.startswith(("{", "[")):
        try:
            json.loads(stripped)
        except ValueError:
            return BodyEncoding.PLAIN_TEXT
        return BodyEncoding.JSON
    if _FORM_BODY_RE.match(stripped):
        return BodyEncoding.FORM_URLENCODED
    return BodyEncoding.PLAIN_TEXT


def build_curl_command(request: ParsedRequest) -> str:
    """Render a request as a cURL command line that parse_curl reads back."""
    url = request.url
    enabled_params = [(p.name, p.value) for p in request.query_params if p.enabled]
    if enabled_params:
        url = f"{url}?{urlencode(enabled_params)}"

    parts = ["curl", "-X", request.method, _quote(url)]
    for h in request.headers:
        if h.enabled:
            parts += ["-H", _quote(f"{h.name}: {h.value}")]
    if request.auth.type == AuthType.BASIC and request.auth.username:
        parts += ["-u", _quote(f"{request.auth.username}:{request.auth.password}")]
    if request.body:
        parts += ["-d", _quote(request.body)]
    return " ".join(parts)


def _split_option(token: str) -> tuple[str, str | None]:
    """Split ``--flag=value`` and ``-XPOST`` forms into (flag, value)."""
    if token.startswith("--") and "=" in token:
        flag, _, value = token.partition("=")
        return flag, value
    if len(token) > 2 and token[0] == "-" and token[1] != "-" and token[:2] in METHOD_FLAGS:
        return token[:2], token[2:]
    return token, None


def _parse_header(raw: str) -> KeyValue | None:
    name, sep, value = raw.partition(":")
    name = name.strip()
    if not sep or not name:
        logger.debug("Ignoring malformed header %r", raw)
        return None
    return KeyValue(name=name, value=value.strip())


def _content_type(headers: list[KeyValue]) -> str | None:
    for h in headers:
        if h.name.lower() == "content-type":
            return h.value
    return None


def _split_query(url: str) -> tuple[str, list[KeyValue]]:
    query = urlsplit(url if "://" in url else f"https://{url}").query
    params = [KeyValue(name=k, value=v) for k, v in parse_qsl(query, keep_blank_values=True)]
    if params:
        url = url.split("?", 1)[0]
    return url, params


def _detect_auth(headers: list[KeyValue], username: str, password: str, has_basic: bool) -> RequestAuth:
    for h in headers:
        if h.name.lower() == "authorization" and h.value.lower().startswith("bearer "):
            if has_basic:
                logger.warning("Both -u credentials and a Bearer header were given; using the Bearer token")
            return RequestAuth(
                type=AuthType.BEARER,
                username=username,
                password=password,
                token=h.value[len("bearer "):].strip(),
            )
    if has_basic:
        return RequestAuth(type=AuthType.BASIC, username=username, password=password)
    return RequestAuth()


def _request_name(method: str, url: str) -> str:
    parts = url.split("/")
    host = parts[2] if len(parts) > 2 else ""
    path = "/".join(parts[3:])
    return f"{method} {path or host}"


def _quote(value: str) -> str:
    """Single-quote ``value`` so that tokenize() reads it back unchanged.

    An embedded ``'`` is spliced in as ``"'"``. Backslashes that would land
    right before a quote are written outside the quotes, where they still
    glue onto the same token.
    """
    if not value:
        return "''"
    parts: list[str] = []
    pos = 0
    for match in _QUOTE_SPLIT_RE.finditer(value):
        if match.start() > pos:
            parts.append(f"'{value[pos:match.start()]}'")
        run = match.group(0)
        parts.append("\"'\"" if run == "'" else run)
        pos = match.end()
    if pos < len(value):
        parts.append(f"'{value[pos:]}'")
    return "".join(parts)
