"""Extraction of translatable literals from Python source and their rewrite.

A source file is parsed with :mod:`ast` and walked twice. The first walk is
read-only: it applies the inclusion rules and records, by node identity,
which string literals and f-strings should become translation calls. The
second walk replaces exactly those nodes with ``t("<key>", *slots)`` calls
and the tree is serialised with :func:`ast.unparse`. Files without eligible
literals are returned verbatim and never unparsed.
"""

from __future__ import annotations

import ast
import hashlib
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from .errors import ParseError
from .segmenter import has_origin_script, looks_like_machine_token
from .structures import AnalysisResult, ExtractedEntry

KEY_SLUG_LIMIT = 24
KEY_DIGEST_LENGTH = 10
ASCII_WORD_PATTERN = re.compile(r"[A-Za-z0-9]+")
CONSTANT_NAME_PATTERN = re.compile(r"^[A-Z][A-Z0-9]*_[A-Z0-9_]+$")

DEFAULT_IGNORED_CALLS: FrozenSet[str] = frozenset(
    {
        "__import__",
        "import_module",
        "getattr",
        "setattr",
        "hasattr",
        "delattr",
        "isinstance",
        "issubclass",
        "open",
        "getenv",
        "putenv",
        "TypeVar",
        "NewType",
        "ParamSpec",
        "TypeVarTuple",
        "cast",
        "namedtuple",
        "startswith",
        "endswith",
        "encode",
        "decode",
        "strftime",
        "strptime",
    }
)
LOGGER_NAMES = frozenset({"logging", "logger", "log", "LOGGER", "_logger", "_log"})
LOGGER_METHODS = frozenset(
    {"debug", "info", "warning", "warn", "error", "exception", "critical", "log"}
)
REGEX_MODULES = frozenset({"re", "regex"})


def generate_key(text: str, prefix: str = "") -> str:
    """Return the deterministic key for a piece of origin text.

    The key is a short slug of the leading ASCII words followed by a SHA-1
    digest of the trimmed text, so the same text yields the same key in any
    file and any run.
    """

    trimmed = text.strip()
    digest = hashlib.sha1(trimmed.encode("utf-8")).hexdigest()[:KEY_DIGEST_LENGTH]
    slug = ""
    for word in ASCII_WORD_PATTERN.findall(trimmed.lower()):
        candidate = f"{slug}_{word}" if slug else word
        if len(candidate) > KEY_SLUG_LIMIT:
            if not slug:
                slug = word[:KEY_SLUG_LIMIT]
            break
        slug = candidate
    return f"{prefix}{slug}_{digest}" if slug else f"{prefix}{digest}"


@dataclass
class AnalyzerOptions:
    """Inclusion rules and helper naming used while rewriting."""

    origin_language: str = "en"
    helper_module: str = "i18nsync.runtime"
    helper_name: str = "t"
    key_prefix: str = ""
    text_pattern: Optional[str] = None
    ignored_calls: Sequence[str] = field(default_factory=tuple)

    @classmethod
    def from_config(cls, config) -> "AnalyzerOptions":
        return cls(
            origin_language=config.origin_language,
            helper_module=config.helper_module,
            helper_name=config.helper_name,
            key_prefix=config.key_prefix,
            text_pattern=config.text_pattern,
            ignored_calls=config.ignored_calls,
        )


@dataclass
class _Edit:
    key: str
    leading: str
    trailing: str


def _docstring_node(body: Sequence[ast.stmt]) -> Optional[ast.AST]:
    if body and isinstance(body[0], ast.Expr):
        value = body[0].value
        if isinstance(value, ast.Constant) and isinstance(value.value, str):
            return value
    return None


def _split_whitespace(text: str) -> tuple[str, str, str]:
    stripped = text.strip()
    if not stripped:
        return "", "", ""
    leading = text[: len(text) - len(text.lstrip())]
    trailing = text[len(text.rstrip()) :]
    return leading, stripped, trailing


def _escape_braces(text: str) -> str:
    return text.replace("{", "{{").replace("}", "}}")


def _call_name(func: ast.expr) -> tuple[Optional[str], Optional[str]]:
    """Return ``(owner, name)`` for ``name(...)`` or ``owner.name(...)``."""

    if isinstance(func, ast.Name):
        return None, func.id
    if isinstance(func, ast.Attribute):
        owner = func.value.id if isinstance(func.value, ast.Name) else None
        return owner, func.attr
    return None, None


class _Collector(ast.NodeVisitor):
    """Read-only walk that decides which literals are eligible."""

    def __init__(self, options: AnalyzerOptions, path: str) -> None:
        self.options = options
        self.path = path
        self.ignored_calls = DEFAULT_IGNORED_CALLS | frozenset(options.ignored_calls)
        self.text_pattern = (
            re.compile(options.text_pattern) if options.text_pattern else None
        )
        self.edits: Dict[int, _Edit] = {}
        self.entries: List[ExtractedEntry] = []
        self.keys_by_text: Dict[str, str] = {}
        self.helper_imported = False

    # -- inclusion rules -------------------------------------------------

    def _is_translatable(self, text: str, literal_text: str) -> bool:
        """``text`` is the whole trimmed template, ``literal_text`` its static parts."""

        if self.text_pattern is not None:
            return bool(self.text_pattern.search(literal_text))
        if CONSTANT_NAME_PATTERN.match(text) or looks_like_machine_token(text):
            return False
        return has_origin_script(literal_text, self.options.origin_language)

    def _record(self, node: ast.AST, raw_text: str, literal_text: str) -> None:
        leading, text, trailing = _split_whitespace(raw_text)
        if not text or not self._is_translatable(text, literal_text):
            return
        key = self.keys_by_text.get(text)
        if key is None:
            key = generate_key(text, self.options.key_prefix)
            self.keys_by_text[text] = key
        self.edits[id(node)] = _Edit(key=key, leading=leading, trailing=trailing)
        self.entries.append(
            ExtractedEntry(
                key=key,
                text=text,
                source_path=self.path,
                line=getattr(node, "lineno", 0),
                column=getattr(node, "col_offset", 0),
            )
        )

    def _skip_literals(self, node: Optional[ast.AST]) -> None:
        """Visit ``node`` but leave literals that appear directly in it alone."""

        if node is None:
            return
        if isinstance(node, (ast.Constant, ast.JoinedStr)):
            return
        if isinstance(node, (ast.Tuple, ast.List, ast.Set)):
            for element in node.elts:
                self._skip_literals(element)
            return
        self.visit(node)

    def _visit_body(self, body: Iterable[ast.stmt], docstring: Optional[ast.AST]) -> None:
        for statement in body:
            if docstring is not None and getattr(statement, "value", None) is docstring:
                continue
            self.visit(statement)

    # -- node handlers ---------------------------------------------------

    def visit_Module(self, node: ast.Module) -> None:
        self._visit_body(node.body, _docstring_node(node.body))

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for decorator in node.decorator_list:
            self.visit(decorator)
        for base in node.bases:
            self.visit(base)
        for keyword in node.keywords:
            self.visit(keyword)
        self._visit_body(node.body, _docstring_node(node.body))

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        for decorator in node.decorator_list:
            self.visit(decorator)
        self.visit(node.args)
        self._visit_body(node.body, _docstring_node(node.body))

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_arguments(self, node: ast.arguments) -> None:
        for default in node.defaults:
            self.visit(default)
        for default in node.kw_defaults:
            if default is not None:
                self.visit(default)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        self.visit(node.target)
        if node.value is not None:
            self.visit(node.value)

    def visit_Assign(self, node: ast.Assign) -> None:
        for target in node.targets:
            if isinstance(target, ast.Name) and target.id.startswith("__"):
                return
        self.generic_visit(node)

    def visit_Expr(self, node: ast.Expr) -> None:
        # A bare string statement is documentation, never UI text.
        if isinstance(node.value, (ast.Constant, ast.JoinedStr)):
            return
        self.generic_visit(node)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if node.module == self.options.helper_module:
            for alias in node.names:
                if alias.name == self.options.helper_name and alias.asname in (
                    None,
                    self.options.helper_name,
                ):
                    self.helper_imported = True

    def visit_Subscript(self, node: ast.Subscript) -> None:
        self.visit(node.value)
        self._skip_literals(node.slice)

    def visit_Dict(self, node: ast.Dict) -> None:
        for key, value in zip(node.keys, node.values):
            self._skip_literals(key)
            self.visit(value)

    def visit_Compare(self, node: ast.Compare) -> None:
        # Operands are compared against runtime values, so no literal
        # anywhere inside them is rewritten.
        return

    def visit_match_case(self, node: ast.AST) -> None:
        guard = getattr(node, "guard", None)
        if guard is not None:
            self.visit(guard)
        for statement in getattr(node, "body", []):
            self.visit(statement)

    def visit_Call(self, node: ast.Call) -> None:
        owner, name = _call_name(node.func)
        if name == self.options.helper_name and owner is None:
            return
        if name in self.ignored_calls:
            self.visit(node.func)
            return
        if owner in LOGGER_NAMES and name in LOGGER_METHODS:
            return
        if owner in REGEX_MODULES:
            return
        self.generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> None:
        if isinstance(node.value, str):
            self._record(node, node.value, node.value)

    def visit_JoinedStr(self, node: ast.JoinedStr) -> None:
        template: List[str] = []
        literal: List[str] = []
        static = True
        # Without slots the helper returns the text verbatim, so braces stay as written.
        has_slots = any(isinstance(part, ast.FormattedValue) for part in node.values)
        for part in node.values:
            if isinstance(part, ast.Constant):
                value = str(part.value)
                template.append(_escape_braces(value) if has_slots else value)
                literal.append(value)
                continue
            if not isinstance(part, ast.FormattedValue):
                static = False
                continue
            self.visit(part.value)
            spec = ""
            if part.format_spec is not None:
                spec_parts = getattr(part.format_spec, "values", [])
                if not all(isinstance(item, ast.Constant) for item in spec_parts):
                    static = False
                    continue
                spec = ":" + "".join(str(item.value) for item in spec_parts)
            conversion = f"!{chr(part.conversion)}" if part.conversion != -1 else ""
            template.append("{" + ast.unparse(part.value) + conversion + spec + "}")
        if static:
            self._record(node, "".join(template), "".join(literal))


class _Rewriter(ast.NodeTransformer):
    """Replaces the collected literals with calls to the translation helper."""

    def __init__(self, edits: Dict[int, _Edit], helper_name: str) -> None:
        self.edits = edits
        self.helper_name = helper_name

    def _build(self, node: ast.expr, edit: _Edit, slots: List[ast.expr]) -> ast.expr:
        replacement: ast.expr = ast.Call(
            func=ast.Name(id=self.helper_name, ctx=ast.Load()),
            args=[ast.Constant(value=edit.key), *slots],
            keywords=[],
        )
        if edit.leading:
            replacement = ast.BinOp(
                left=ast.Constant(value=edit.leading), op=ast.Add(), right=replacement
            )
        if edit.trailing:
            replacement = ast.BinOp(
                left=replacement, op=ast.Add(), right=ast.Constant(value=edit.trailing)
            )
        return ast.copy_location(replacement, node)

    def visit_Constant(self, node: ast.Constant) -> ast.expr:
        edit = self.edits.get(id(node))
        if edit is None:
            return node
        return self._build(node, edit, [])

    def visit_JoinedStr(self, node: ast.JoinedStr) -> ast.expr:
        edit = self.edits.get(id(node))
        if edit is None:
            return self.generic_visit(node)
        slots = [
            self.visit(part.value)
            for part in node.values
            if isinstance(part, ast.FormattedValue)
        ]
        return self._build(node, edit, slots)


def _inject_import(tree: ast.Module, module: str, name: str) -> None:
    """Insert ``from module import name`` after the docstring and __future__ imports."""

    index = 0
    if _docstring_node(tree.body) is not None:
        index = 1
    while index < len(tree.body):
        statement = tree.body[index]
        if isinstance(statement, ast.ImportFrom) and statement.module == "__future__":
            index += 1
            continue
        break
    tree.body.insert(
        index,
        ast.ImportFrom(module=module, names=[ast.alias(name=name)], level=0),
    )


class SourceAnalyzer:
    """Parses one source file, extracts literals and rewrites the file."""

    def __init__(self, options: Optional[AnalyzerOptions] = None) -> None:
        self.options = options or AnalyzerOptions()

    def parse(self, text: str, path: str) -> ast.Module:
        try:
            return ast.parse(text, filename=path)
        except SyntaxError as exc:
            location = f"line {exc.lineno}, column {exc.offset}" if exc.lineno else "unknown position"
            raise ParseError(path, f"{exc.msg} ({location})") from exc
        except ValueError as exc:
            raise ParseError(path, str(exc)) from exc

    def analyze(
        self,
        text: str,
        *,
        path: str = "<string>",
        helper_imported: Optional[bool] = None,
    ) -> AnalysisResult:
        tree = self.parse(text, path)
        collector = _Collector(self.options, path)
        collector.visit(tree)

        if not collector.edits:
            return AnalysisResult(rewritten_text=text)

        rewritten = _Rewriter(collector.edits, self.options.helper_name).visit(tree)
        already_imported = (
            collector.helper_imported if helper_imported is None else helper_imported
        )
        if not already_imported:
            _inject_import(rewritten, self.options.helper_module, self.options.helper_name)
        ast.fix_missing_locations(rewritten)

        return AnalysisResult(
            rewritten_text=ast.unparse(rewritten) + "\n",
            entries=collector.entries,
            translatable_node_count=len(collector.edits),
        )


def analyze_source(
    text: str,
    *,
    path: str = "<string>",
    helper_imported: Optional[bool] = None,
    options: Optional[AnalyzerOptions] = None,
) -> AnalysisResult:
    """Analyse and rewrite one file's source text."""

    return SourceAnalyzer(options).analyze(
        text, path=path, helper_imported=helper_imported
    )
