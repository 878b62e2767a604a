#!/usr/bin/env python3
"""variant_name enum generator.

Input:  Rust source containing enums tagged with #[enum_variant_name_const]
        or #[derive(EnumVariantNameConst)].
Output: transformed Rust source where every tagged enum gains
        `pub const fn variant_name(&self) -> &'static str`.
"""

from __future__ import annotations

import argparse
import dataclasses
import enum
import hashlib
import pathlib
import re
import sys
from typing import Iterator, List, Sequence, Tuple

GENERATOR_VERSION = "0.1.0"
FORMAT_VERSION = "1"
CRATE_NAME = "enum_variant_name_const"
ATTRIBUTE_NAME = "enum_variant_name_const"
DERIVE_NAME = "EnumVariantNameConst"
DIGEST_PATTERN = re.compile(r"^// digest: ([0-9a-f]{64})$", re.MULTILINE)

IDENT_RE = re.compile(r"(?:r#)?[A-Za-z_]\w*")
LIFETIME_RE = re.compile(r"'[A-Za-z_]\w*")
RAW_STRING_RE = re.compile(r'b?r(#*)"')
CHAR_BODY_RE = re.compile(r"(?:\\(?:u\{[0-9A-Fa-f_]*\}|x[0-9A-Fa-f]{2}|.)|[^\\'\n])'")
ATTRIBUTE_PATH_RE = re.compile(rf"^(?:::)?(?:{CRATE_NAME}::)?{ATTRIBUTE_NAME}$")
DERIVE_PATH_RE = re.compile(rf"^(?:::)?(?:{CRATE_NAME}::)?{DERIVE_NAME}$")
DERIVE_RE = re.compile(r"^derive\s*\((?P<body>.*)\)$", re.DOTALL)
CRATE_IMPORT_RE = re.compile(
    rf"(?:pub(?:\([^)]*\))?\s+)?(?:use\s+(?:::)?|extern\s+crate\s+){CRATE_NAME}\b"
)
PUB_RE = re.compile(r"pub\b")
CONST_RE = re.compile(r"const\b")
WHERE_RE = re.compile(r"where\b")
CFG_RE = re.compile(r"^#\[\s*cfg\s*\(")
CFG_ATTR_RE = re.compile(r"^#\[\s*cfg_attr\s*\(.*\bcfg\s*\(", re.DOTALL)

ITEM_WORDS = frozenset(
    {
        "async",
        "auto",
        "const",
        "crate",
        "default",
        "enum",
        "extern",
        "fn",
        "impl",
        "mod",
        "static",
        "struct",
        "trait",
        "type",
        "union",
        "unsafe",
        "use",
    }
)


class ParseError(RuntimeError):
    def __init__(self, message: str, index: int) -> None:
        super().__init__(message)
        self.index = index


class InvalidTarget(ParseError):
    """A directive was placed on something that is not an enum."""

    def __init__(self, directive: str, index: int, end: int) -> None:
        super().__init__(f"{directive} is only applicable to enums (sum types)", index)
        self.directive = directive
        self.end = end


class Mode(enum.Enum):
    ATTACHMENT = "attachment"
    ANNOTATION = "annotation"

    @property
    def directive(self) -> str:
        if self is Mode.ATTACHMENT:
            return f"#[{ATTRIBUTE_NAME}]"
        return f"#[derive({DERIVE_NAME})]"


@dataclasses.dataclass(frozen=True)
class Branch:
    name: str
    shape: str  # empty | positional | named
    index: int = 0
    arity: int = 0
    fields: Tuple[str, ...] = ()
    cfgs: Tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class GenericParam:
    kind: str  # lifetime | type | const
    name: str
    declaration: str


@dataclasses.dataclass(frozen=True)
class Generics:
    params: Tuple[GenericParam, ...] = ()
    where_clause: str = ""


@dataclasses.dataclass(frozen=True)
class SumType:
    name: str
    name_index: int
    generics: Generics
    branches: Tuple[Branch, ...]
    end: int
    cfgs: Tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class Directive:
    mode: Mode
    start: int
    end: int
    replacement: str = ""
    item_start: int = 0


@dataclasses.dataclass(frozen=True)
class Diagnostic:
    path: str
    line: int
    column: int
    end_column: int
    message: str
    source_line: str = ""

    def render(self) -> str:
        head = f"{self.path}:{self.line}:{self.column}: error: {self.message}"
        if not self.source_line:
            return head
        marker = " " * (self.column - 1) + "^" + "~" * max(self.end_column - self.column - 1, 0)
        return f"{head}\n  {self.source_line}\n  {marker}"


# ---------------------------------------------------------------------------
# source scanning


def line_col(text: str, index: int) -> Tuple[int, int]:
    line = text.count("\n", 0, index) + 1
    line_start = text.rfind("\n", 0, index)
    if line_start < 0:
        line_start = -1
    col = index - line_start
    return line, col


def is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def skip_non_code(text: str, i: int) -> int:
    """Return the index past a comment or literal starting at i, or i itself."""
    n = len(text)
    if text.startswith("//", i):
        j = text.find("\n", i + 2)
        return n if j == -1 else j + 1

    if text.startswith("/*", i):
        depth = 0
        j = i
        while j < n:
            if text.startswith("/*", j):
                depth += 1
                j += 2
            elif text.startswith("*/", j):
                depth -= 1
                j += 2
                if depth == 0:
                    return j
            else:
                j += 1
        raise ParseError("unterminated block comment", i)

    if i > 0 and is_ident_char(text[i - 1]):
        return i

    raw = RAW_STRING_RE.match(text, i)
    if raw:
        closing = '"' + raw.group(1)
        j = text.find(closing, raw.end())
        if j == -1:
            raise ParseError("unterminated raw string literal", i)
        return j + len(closing)

    quote_at = i + 1 if text.startswith(("b\"", "b'"), i) else i
    if quote_at >= n:
        return i
    quote = text[quote_at]

    if quote == '"':
        j = quote_at + 1
        while j < n:
            if text[j] == "\\":
                j += 2
                continue
            if text[j] == '"':
                return j + 1
            j += 1
        raise ParseError("unterminated string literal", i)

    if quote == "'":
        # A quote not closing a one-character body is a lifetime or a label.
        body = CHAR_BODY_RE.match(text, quote_at + 1)
        if body:
            return body.end()

    return i


def iter_code(text: str, start: int = 0, end: int | None = None) -> Iterator[int]:
    """Yield the indices of characters that are code, not comments or literals."""
    stop = len(text) if end is None else end
    i = start
    while i < stop:
        j = skip_non_code(text, i)
        if j != i:
            i = j
            continue
        yield i
        i += 1


def skip_ws_comments(text: str, i: int) -> int:
    n = len(text)
    while i < n:
        if text[i].isspace():
            i += 1
            continue
        if text.startswith(("//", "/*"), i):
            i = skip_non_code(text, i)
            continue
        return i
    return i


def code_text(text: str, start: int, end: int) -> str:
    """Return text[start:end] with comments blanked and whitespace collapsed."""
    pieces: List[str] = []
    i = start
    while i < end:
        j = skip_non_code(text, i)
        if j == i:
            pieces.append(text[i])
            i += 1
        elif text.startswith(("//", "/*"), i):
            pieces.append(" ")
            i = j
        else:
            pieces.append(text[i:j])
            i = j
    return normalize_code("".join(pieces))


def normalize_code(code: str) -> str:
    return " ".join(code.strip().split())


def parse_identifier(text: str, i: int) -> Tuple[str, int]:
    m = IDENT_RE.match(text, i)
    if not m:
        raise ParseError("expected identifier", i)
    return m.group(0), m.end()


def find_matching(text: str, open_index: int) -> int:
    pairs = {"{": "}", "(": ")", "[": "]", "<": ">"}
    if open_index >= len(text) or text[open_index] not in pairs:
        raise ParseError("internal error: expected opening bracket", open_index)

    opener = text[open_index]
    closer = pairs[opener]
    depth = 0
    nested = 0

    for i in iter_code(text, open_index):
        ch = text[i]
        if opener == "<":
            if ch in "([{":
                nested += 1
                continue
            if ch in ")]}":
                nested -= 1
                if nested < 0:
                    break
                continue
            if nested or (ch == ">" and text[i - 1] in "-="):
                continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i

    raise ParseError(f"unbalanced '{opener}'", open_index)


def follows_path_separator(text: str, i: int) -> bool:
    j = i - 1
    while j >= 0 and text[j].isspace():
        j -= 1
    return j >= 1 and text[j - 1 : j + 1] == "::"


def split_top_level(
    text: str, start: int, end: int, angle: bool = False, turbofish: bool = False
) -> List[Tuple[int, int]]:
    """Split text[start:end] on commas that are not nested in brackets.

    With turbofish set, generic arguments written as `::<...>` are treated as
    brackets too while bare `<` and `>` stay operators.
    """
    spans: List[Tuple[int, int]] = []
    depth = 0
    fish = 0
    piece_start = start

    for i in iter_code(text, start, end):
        ch = text[i]
        if turbofish and ch == "<" and (fish or follows_path_separator(text, i)):
            fish += 1
            continue
        if fish:
            if ch == ">" and text[i - 1] not in "-=":
                fish -= 1
            continue
        if ch in "([{" or (angle and ch == "<"):
            depth += 1
        elif ch in ")]}" or (angle and ch == ">" and text[i - 1] not in "-="):
            depth -= 1
            if depth < 0:
                raise ParseError(f"unexpected '{ch}'", i)
        elif ch == "," and depth == 0:
            spans.append((piece_start, i))
            piece_start = i + 1

    if skip_ws_comments(text, piece_start) < end:
        spans.append((piece_start, end))
    return spans


def collect_attributes(text: str, i: int) -> Tuple[int, List[str]]:
    attrs: List[str] = []
    i = skip_ws_comments(text, i)
    while text.startswith("#[", i):
        close = find_matching(text, i + 1)
        attrs.append(code_text(text, i, close + 1))
        i = skip_ws_comments(text, close + 1)
    return i, attrs


def skip_attributes(text: str, i: int) -> int:
    return collect_attributes(text, i)[0]


def cfg_gates(attrs: Sequence[str]) -> Tuple[str, ...]:
    """Keep the attributes that can remove an item at compile time."""
    return tuple(a for a in attrs if CFG_RE.match(a) or CFG_ATTR_RE.match(a))


def find_attributes(text: str) -> List[Tuple[int, int]]:
    spans: List[Tuple[int, int]] = []
    consumed_until = -1

    for i in iter_code(text):
        if i < consumed_until or not text.startswith("#[", i):
            continue
        consumed_until = find_matching(text, i + 1) + 1
        spans.append((i, consumed_until))

    return spans


def attribute_run_start(text: str, attributes: Sequence[Tuple[int, int]], i: int) -> int:
    """Walk back from an item at i over the attributes directly in front of it."""
    preceding = {skip_ws_comments(text, end): start for start, end in attributes}
    while i in preceding:
        i = preceding[i]
    return i


def skip_visibility(text: str, i: int) -> int:
    m = PUB_RE.match(text, i)
    if not m:
        return i
    i = skip_ws_comments(text, m.end())
    if i < len(text) and text[i] == "(":
        i = skip_ws_comments(text, find_matching(text, i) + 1)
    return i


def read_word(text: str, i: int) -> Tuple[str, int, int]:
    i = skip_ws_comments(text, i)
    m = IDENT_RE.match(text, i)
    if not m:
        return "", i, i
    return m.group(0), i, m.end()


# ---------------------------------------------------------------------------
# directives


def line_span(text: str, start: int, end: int) -> Tuple[int, int]:
    """Widen [start, end) to whole lines when nothing else shares them."""
    line_start = text.rfind("\n", 0, start) + 1
    line_end = text.find("\n", end)
    line_end = len(text) if line_end == -1 else line_end + 1
    if text[line_start:start].strip() or text[end:line_end].strip():
        return start, end
    return line_start, line_end


def classify_attribute(text: str, start: int, close: int) -> Directive | None:
    content = code_text(text, start + 2, close)

    if ATTRIBUTE_PATH_RE.match(content.replace(" ", "")):
        span_start, span_end = line_span(text, start, close + 1)
        return Directive(mode=Mode.ATTACHMENT, start=span_start, end=span_end)

    derive = DERIVE_RE.match(content)
    if not derive:
        return None

    body = derive.group("body")
    entries = [body[s:e].strip() for s, e in split_top_level(body, 0, len(body), angle=True)]
    kept = [entry for entry in entries if not DERIVE_PATH_RE.match(entry.replace(" ", ""))]
    if len(kept) == len(entries):
        return None

    if kept:
        return Directive(
            mode=Mode.ANNOTATION,
            start=start,
            end=close + 1,
            replacement=f"#[derive({', '.join(kept)})]",
        )
    span_start, span_end = line_span(text, start, close + 1)
    return Directive(mode=Mode.ANNOTATION, start=span_start, end=span_end)


def find_directives(text: str) -> List[Directive]:
    directives: List[Directive] = []
    attributes = find_attributes(text)

    for start, end in attributes:
        directive = classify_attribute(text, start, end - 1)
        if directive is not None:
            item_start = attribute_run_start(text, attributes, start)
            directives.append(dataclasses.replace(directive, item_start=item_start))

    return directives


def find_crate_imports(text: str) -> List[Tuple[int, int]]:
    spans: List[Tuple[int, int]] = []
    attributes = find_attributes(text)
    consumed_until = -1

    for i in iter_code(text):
        if i < consumed_until:
            continue
        if i > 0 and is_ident_char(text[i - 1]):
            continue
        if not CRATE_IMPORT_RE.match(text, i):
            continue
        semicolon = next((j for j in iter_code(text, i) if text[j] == ";"), -1)
        if semicolon == -1:
            raise ParseError("expected ';' after import", i)
        consumed_until = semicolon + 1
        spans.append(line_span(text, attribute_run_start(text, attributes, i), semicolon + 1))

    return spans


# ---------------------------------------------------------------------------
# declaration extraction


def locate_item_name(text: str, i: int) -> Tuple[int, int]:
    word, start, end = read_word(text, i)
    anchor = (start, end if end > start else start + 1)
    while word in ITEM_WORDS:
        if word in ("impl", "use"):
            return anchor
        nxt = skip_ws_comments(text, end)
        if word == "extern" and text.startswith('"', nxt):
            nxt = skip_non_code(text, nxt)
        word, start, end = read_word(text, nxt)
    if not word:
        return anchor
    return start, end


def strip_default(declaration: str) -> str:
    depth = 0
    for i in iter_code(declaration):
        ch = declaration[i]
        if ch in "([{<":
            depth += 1
        elif ch in ")]}" or (ch == ">" and declaration[i - 1] not in "-="):
            depth -= 1
        elif ch == "=" and depth == 0:
            after = declaration[i + 1 : i + 2]
            before = declaration[i - 1 : i]
            if after not in ("=", ">") and before not in ("=", "!", "<", ">"):
                return declaration[:i].rstrip()
    return declaration


def parse_generic_params(text: str, start: int, end: int) -> Tuple[GenericParam, ...]:
    params: List[GenericParam] = []

    for piece_start, piece_end in split_top_level(text, start, end, angle=True):
        body_start = skip_attributes(text, piece_start)
        attrs = code_text(text, piece_start, body_start)
        declaration = strip_default(code_text(text, body_start, piece_end))

        if text.startswith("'", body_start):
            m = LIFETIME_RE.match(text, body_start)
            if not m:
                raise ParseError("expected lifetime parameter", body_start)
            kind, name = "lifetime", m.group(0)
        elif CONST_RE.match(text, body_start):
            kind = "const"
            name, _ = parse_identifier(text, skip_ws_comments(text, body_start + len("const")))
        else:
            kind = "type"
            name, _ = parse_identifier(text, body_start)

        if attrs:
            declaration = f"{attrs} {declaration}"
        params.append(GenericParam(kind=kind, name=name, declaration=declaration))

    return tuple(params)


def parse_named_fields(text: str, start: int, end: int) -> Tuple[str, ...]:
    names: List[str] = []
    for piece_start, _ in split_top_level(text, start, end, angle=True):
        i = skip_visibility(text, skip_attributes(text, piece_start))
        name, i = parse_identifier(text, i)
        i = skip_ws_comments(text, i)
        if not text.startswith(":", i):
            raise ParseError(f"expected ':' after field '{name}'", i)
        names.append(name)
    return tuple(names)


def parse_branches(text: str, start: int, end: int) -> Tuple[Branch, ...]:
    branches: List[Branch] = []

    for piece_start, piece_end in split_top_level(text, start, end, turbofish=True):
        i, attrs = collect_attributes(text, piece_start)
        cfgs = cfg_gates(attrs)
        if i >= piece_end:
            raise ParseError("expected enum variant after attributes", i)
        name, i = parse_identifier(text, i)
        name_index = i - len(name)
        i = skip_ws_comments(text, i)

        if i < piece_end and text[i] == "(":
            close = find_matching(text, i)
            arity = len(split_top_level(text, i + 1, close, angle=True))
            branches.append(
                Branch(name=name, shape="positional", index=name_index, arity=arity, cfgs=cfgs)
            )
            i = skip_ws_comments(text, close + 1)
        elif i < piece_end and text[i] == "{":
            close = find_matching(text, i)
            fields = parse_named_fields(text, i + 1, close)
            branches.append(
                Branch(name=name, shape="named", index=name_index, fields=fields, cfgs=cfgs)
            )
            i = skip_ws_comments(text, close + 1)
        else:
            branches.append(Branch(name=name, shape="empty", index=name_index, cfgs=cfgs))

        if i < piece_end and text[i] != "=":
            raise ParseError(f"unexpected token after enum variant '{name}'", i)

    return tuple(branches)


def find_body_open(text: str, i: int) -> int:
    depth = 0
    for j in iter_code(text, i):
        ch = text[j]
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == ";" and depth == 0:
            break
        elif ch == "{" and depth == 0:
            return j
    raise ParseError("expected '{' to open enum body", i)


def parse_declaration(text: str, i: int, mode: Mode) -> SumType:
    i, attrs = collect_attributes(text, i)
    i = skip_visibility(text, i)
    keyword, kw_start, kw_end = read_word(text, i)

    if keyword != "enum":
        if not keyword:
            raise ParseError(f"expected an item after {mode.directive}", kw_start)
        name_start, name_end = locate_item_name(text, kw_start)
        raise InvalidTarget(mode.directive, name_start, name_end)

    i = skip_ws_comments(text, kw_end)
    name, i = parse_identifier(text, i)
    name_index = i - len(name)
    i = skip_ws_comments(text, i)

    params: Tuple[GenericParam, ...] = ()
    if i < len(text) and text[i] == "<":
        close = find_matching(text, i)
        params = parse_generic_params(text, i + 1, close)
        i = skip_ws_comments(text, close + 1)

    open_brace = find_body_open(text, i)
    where_clause = code_text(text, i, open_brace)
    if where_clause and not WHERE_RE.match(where_clause):
        raise ParseError("expected 'where' clause or '{' after enum name", i)

    close_brace = find_matching(text, open_brace)
    return SumType(
        name=name,
        name_index=name_index,
        generics=Generics(params=params, where_clause=where_clause),
        branches=parse_branches(text, open_brace + 1, close_brace),
        end=close_brace + 1,
        cfgs=cfg_gates(attrs),
    )


def extract_sum_type(text: str, mode: Mode) -> SumType:
    return parse_declaration(text, 0, mode)


# ---------------------------------------------------------------------------
# code generation


def branch_pattern(branch: Branch) -> Tuple[str, str]:
    if branch.shape == "positional":
        pattern = f"Self::{branch.name}(..)"
    elif branch.shape == "named":
        pattern = f"Self::{branch.name} {{ .. }}"
    else:
        pattern = f"Self::{branch.name}"
    return pattern, f'"{branch.name}"'


def split_for_impl(generics: Generics) -> Tuple[str, str, str]:
    if not generics.params:
        return "", "", generics.where_clause
    impl_generics = "<" + ", ".join(p.declaration for p in generics.params) + ">"
    type_generics = "<" + ", ".join(p.name for p in generics.params) + ">"
    return impl_generics, type_generics, generics.where_clause


def render_impl(sum_type: SumType) -> str:
    impl_generics, type_generics, where_clause = split_for_impl(sum_type.generics)
    header = f"impl{impl_generics} {sum_type.name}{type_generics}"
    if where_clause:
        header += f" {where_clause}"

    lines: List[str] = list(sum_type.cfgs)
    lines.append(f"{header} {{")
    lines.append("    /// Compile-time string with the variant's identifier.")
    lines.append("    #[inline(always)]")
    lines.append("    pub const fn variant_name(&self) -> &'static str {")
    if sum_type.branches:
        lines.append("        match self {")
        for branch in sum_type.branches:
            pattern, literal = branch_pattern(branch)
            lines.extend(f"            {cfg}" for cfg in branch.cfgs)
            lines.append(f"            {pattern} => {literal},")
        lines.append("        }")
    else:
        lines.append("        match *self {}")
    lines.append("    }")
    lines.append("}")
    return "\n".join(lines)


def apply_edits(source: str, edits: Sequence[Tuple[int, int, str]]) -> str:
    pieces: List[str] = []
    cursor = 0
    for start, end, replacement in sorted(edits, key=lambda e: (e[0], e[1])):
        pieces.append(source[cursor:start])
        pieces.append(replacement)
        cursor = end
    pieces.append(source[cursor:])
    return "".join(pieces)


def plan_edits(text: str, directives: Sequence[Directive]) -> List[Tuple[int, int, str]]:
    edits: List[Tuple[int, int, str]] = []
    seen: dict[int, Directive] = {}

    for directive in directives:
        sum_type = parse_declaration(text, directive.item_start, directive.mode)
        if sum_type.name_index in seen:
            raise ParseError(
                f"enum '{sum_type.name}' carries more than one variant_name directive",
                directive.start,
            )
        seen[sum_type.name_index] = directive
        edits.append((directive.start, directive.end, directive.replacement))
        edits.append((sum_type.end, sum_type.end, "\n\n" + render_impl(sum_type)))

    return edits


def expand_declaration(text: str, mode: Mode) -> str:
    """Expand a single declaration.

    Attachment mode returns the declaration with the directive removed,
    followed by the generated impl. Annotation mode returns the impl only.
    """
    sum_type = extract_sum_type(text, mode)
    impl_block = render_impl(sum_type)
    if mode is Mode.ANNOTATION:
        return impl_block + "\n"

    directives = [d for d in find_directives(text[: sum_type.end]) if d.mode is Mode.ATTACHMENT]
    edits = [(d.start, d.end, d.replacement) for d in directives]
    declaration = apply_edits(text[: sum_type.end], edits).strip()
    return f"{declaration}\n\n{impl_block}\n"


# ---------------------------------------------------------------------------
# file-level driver


def report(path: pathlib.Path | str, text: str, error: ParseError) -> Diagnostic:
    line, col = line_col(text, error.index)
    span = error.end - error.index if isinstance(error, InvalidTarget) else 1
    line_start = text.rfind("\n", 0, error.index) + 1
    line_end = text.find("\n", error.index)
    source_line = text[line_start : len(text) if line_end == -1 else line_end]
    return Diagnostic(
        path=str(path),
        line=line,
        column=col,
        end_column=col + span,
        message=str(error),
        source_line=source_line.rstrip(),
    )


def fail(path: pathlib.Path, text: str, error: ParseError) -> None:
    print(report(path, text, error).render(), file=sys.stderr)


def transform_source(source_text: str) -> str:
    directives = find_directives(source_text)
    edits = plan_edits(source_text, directives)
    edits.extend((start, end, "") for start, end in find_crate_imports(source_text))
    return apply_edits(source_text, edits)


def compute_file_digest(source_bytes: bytes) -> str:
    h = hashlib.sha256()
    for part in (GENERATOR_VERSION, FORMAT_VERSION):
        h.update(part.encode("utf-8") + b"\x00")
    h.update(source_bytes)
    return h.hexdigest()


def describe_source(source_path: pathlib.Path) -> str:
    resolved = source_path.resolve()
    try:
        return str(resolved.relative_to(pathlib.Path.cwd().resolve()))
    except ValueError:
        return str(resolved)


def render_header(source_path: pathlib.Path, digest: str) -> str:
    fields = [
        ("source", describe_source(source_path)),
        ("generator_version", GENERATOR_VERSION),
        ("format_version", FORMAT_VERSION),
        ("digest", digest),
    ]
    lines = ["// variant-name-generated"] + [f"// {key}: {value}" for key, value in fields]
    return "\n".join(lines) + "\n\n"


def render_file(source_path: pathlib.Path, source_text: str, source_bytes: bytes) -> str:
    header = render_header(source_path, compute_file_digest(source_bytes))
    return header + transform_source(source_text)


def extract_existing_digest(text: str) -> str | None:
    m = DIGEST_PATTERN.search(text)
    return m.group(1) if m else None


def is_current(existing: str, rendered: str) -> bool:
    if existing == rendered:
        return True
    old_digest = extract_existing_digest(existing)
    return old_digest is not None and old_digest == extract_existing_digest(rendered)


def check_output(out_path: pathlib.Path, rendered: str) -> int:
    if not out_path.exists():
        print(f"{out_path} is missing (run generator)", file=sys.stderr)
        return 1
    if out_path.read_text(encoding="utf-8") != rendered:
        print(f"{out_path} is out of date (run generator)", file=sys.stderr)
        return 1
    print(f"up-to-date: {out_path}")
    return 0


def write_output(out_path: pathlib.Path, rendered: str) -> int:
    if out_path.exists() and is_current(out_path.read_text(encoding="utf-8"), rendered):
        print(f"unchanged: {out_path}")
        return 0
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(rendered, encoding="utf-8")
    print(f"generated: {out_path}")
    return 0


def run(args: argparse.Namespace) -> int:
    in_path = pathlib.Path(args.input)
    if not in_path.exists():
        print(f"error: input file does not exist: {in_path}", file=sys.stderr)
        return 1

    source_bytes = in_path.read_bytes()
    source_text = source_bytes.decode("utf-8")
    try:
        rendered = render_file(in_path, source_text, source_bytes)
    except ParseError as e:
        fail(in_path, source_text, e)
        return 1

    out_path = pathlib.Path(args.output)
    if args.check:
        return check_output(out_path, rendered)
    return write_output(out_path, rendered)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="variant-name-gen",
        description="Add const variant_name() accessors to tagged enums in a .rs.in source",
    )
    parser.add_argument("--in", dest="input", required=True, help="Rust source with tagged enums")
    parser.add_argument("--out", dest="output", required=True, help="Generated Rust file to write")
    parser.add_argument("--check", action="store_true", help="Fail if the generated file is stale")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    return run(build_arg_parser().parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
