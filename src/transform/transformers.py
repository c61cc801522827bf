"""The ordered transformers applied to every parsed script.

Each transformer exposes ``transform(module, source, context)`` and
returns the (possibly edited) module. Transformers touch import nodes
and must leave already-canonical specifiers alone, which makes the whole
chain idempotent. The one exception is type erasure for JavaScript
targets, which rewrites the script and returns a freshly parsed module.
"""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Iterable, List, Optional, Set, Tuple

from common.errors import StyleReferenceError
from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants, FileKinds
from transform.context import (
    SourceFile,
    TransformContext,
    is_alias,
    is_relative,
    relative_specifier,
)
from transform.parser import ImportKind, ImportNode, SourceModule, parse_module
from transform.typestrip import referenced_names, strip_types

logger = logging.getLogger(__name__)

STYLESHEET_EXTENSIONS = tuple(Constants.STYLE_EXTENSIONS)
_TYPE_SCRIPT_EXTENSIONS = {".tsx": ".jsx", ".ts": ".js", ".mts": ".mjs", ".cts": ".cjs"}
_INLINE_TYPE_RE = re.compile(r"^type\s+(?!as\b)\S")
_LEADING_TYPE_RE = re.compile(r"^\s*type\s+(?=[{*A-Za-z_$])")


def _trace(transformer: str, source: SourceFile, before: str, after: str) -> None:
    if is_debug_enabled(logger):
        logger.debug(
            "Rewrote import",
            extra=extra_context(
                event="transform",
                component=transformer,
                target=f"{source.component}:{source.path}",
                before=before,
                after=after,
            ),
        )


def _prefix_matches(specifier: str, prefix: str) -> bool:
    bare = prefix.rstrip("/")
    if not bare:
        return False
    return specifier == bare or specifier.startswith(bare + "/")


def _longest_prefix(specifier: str, prefixes: Iterable[str]) -> Optional[str]:
    best = None
    for prefix in prefixes:
        if _prefix_matches(specifier, prefix) and (best is None or len(prefix.rstrip("/")) > len(best.rstrip("/"))):
            best = prefix
    return best


def _strip_script_ext(path: str) -> str:
    root, ext = posixpath.splitext(path)
    if ext in Constants.SCRIPT_EXTENSIONS:
        return root
    return path


class ImportPathTransformer:
    """Apply ``alias_map`` rewrites; the longest matching prefix wins.

    No record of earlier rewrites is kept, so a specifier that already
    sits under a replacement prefix at least as specific as its matching
    rule counts as canonical and is left alone. This holds for specifiers
    the component authored in that form too: with ``{"@/": "@/src/"}`` an
    authored ``@/src/x`` is never turned into ``@/src/src/x``. Registries
    whose sources legitimately use a replacement prefix need a more
    specific rule for it.
    """

    name = "import_path"

    def transform(self, module: SourceModule, source: SourceFile, context: TransformContext) -> SourceModule:
        rules = context.alias_map
        if not rules:
            return module
        targets = [t for t in rules.values() if t]
        for node in module.imports():
            spec = node.specifier
            prefix = _longest_prefix(spec, rules)
            if prefix is None:
                continue
            target_prefix = _longest_prefix(spec, targets)
            if target_prefix is not None and len(target_prefix.rstrip("/")) >= len(prefix.rstrip("/")):
                continue
            replacement = rules[prefix].rstrip("/")
            rewritten = replacement + spec[len(prefix.rstrip("/")):]
            if not is_alias(replacement):
                rewritten = relative_specifier(rewritten.lstrip("/"), source.target_path)
            if rewritten != spec:
                _trace(self.name, source, spec, rewritten)
                node.specifier = rewritten
        return module


class StyleReferenceTransformer:
    """Validate and place stylesheet imports; redirect class-name helper imports."""

    name = "style_reference"

    def transform(self, module: SourceModule, source: SourceFile, context: TransformContext) -> SourceModule:
        targets = set(source.siblings.values())
        for node in module.imports():
            spec = node.specifier
            if spec.lower().endswith(STYLESHEET_EXTENSIONS):
                self._place_stylesheet(node, source, context, targets)
            elif context.class_helper_path and node.is_static:
                self._redirect_helper(node, source, context)
        return module

    def _place_stylesheet(
        self, node: ImportNode, source: SourceFile, context: TransformContext, targets: set
    ) -> None:
        spec = node.specifier
        if not is_relative(spec):
            # Package stylesheets (e.g. "some-lib/dist/styles.css") are third-party.
            return
        from_target = posixpath.normpath(posixpath.join(posixpath.dirname(source.target_path), spec))
        styles_root = context.styles_dir.rstrip("/") + "/"
        if from_target in targets or from_target.startswith(styles_root):
            return
        in_component = posixpath.normpath(posixpath.join(posixpath.dirname(source.path), spec))
        target = source.siblings.get(in_component)
        if target is None:
            raise StyleReferenceError(source.path, spec, component=source.component)
        # Sibling targets already reflect the style strategy (colocated or under styles_dir).
        rewritten = relative_specifier(target, source.target_path)
        if rewritten != spec:
            _trace(self.name, source, spec, rewritten)
            node.specifier = rewritten

    def _redirect_helper(self, node: ImportNode, source: SourceFile, context: TransformContext) -> None:
        spec = node.specifier
        if not (is_relative(spec) or spec.startswith(("@/", "~", "#"))):
            return
        names = _named_bindings(node.clause)
        if not any(name in context.class_helpers for name in names):
            return
        helper = context.class_helper_path
        if is_alias(helper):
            rewritten = helper
        else:
            rewritten = relative_specifier(_strip_script_ext(helper.lstrip("/")), source.target_path)
        if rewritten != spec:
            _trace(self.name, source, spec, rewritten)
            node.specifier = rewritten


class DependencyIdentifierTransformer:
    """Point imports of resolved registry components at their installed entry file."""

    name = "dependency_identifier"

    def transform(self, module: SourceModule, source: SourceFile, context: TransformContext) -> SourceModule:
        if not context.component_paths:
            return module
        for node in module.imports():
            spec = node.specifier
            if is_relative(spec) or spec in context.npm_packages:
                continue
            name = self._component_name(spec, context)
            if name is None:
                continue
            rewritten = relative_specifier(self._import_path(context.component_paths[name]), source.target_path)
            _trace(self.name, source, spec, rewritten)
            node.specifier = rewritten
        return module

    @staticmethod
    def _component_name(spec: str, context: TransformContext) -> Optional[str]:
        if spec in context.component_paths:
            return spec
        scope = context.registry_scope
        if scope and spec.startswith(scope):
            unscoped = spec[len(scope):]
            for candidate in (unscoped, spec):
                if candidate in context.component_paths:
                    return candidate
            for name in context.component_paths:
                if context.unscoped(name) == unscoped:
                    return name
        return None

    @staticmethod
    def _import_path(entry: str) -> str:
        stripped = _strip_script_ext(entry)
        if posixpath.basename(stripped) == "index":
            return posixpath.dirname(stripped)
        return stripped


class TypeAnnotationTransformer:
    """Strip TypeScript syntax when the target project is plain JavaScript.

    Type-only imports and exports go first. TypeScript scripts then lose
    their annotations and declarations (see ``transform.typestrip``), and
    import bindings that were only used as types are dropped with them.
    """

    name = "type_annotation"

    def transform(self, module: SourceModule, source: SourceFile, context: TransformContext) -> SourceModule:
        if context.typescript:
            return module
        for node in module.imports():
            if node.is_static:
                self._strip_types(node, source)
            if not node.removed and is_relative(node.specifier):
                root, ext = posixpath.splitext(node.specifier)
                if ext in _TYPE_SCRIPT_EXTENSIONS:
                    rewritten = root + _TYPE_SCRIPT_EXTENSIONS[ext]
                    _trace(self.name, source, node.specifier, rewritten)
                    node.specifier = rewritten
        if source.kind == FileKinds.TYPESCRIPT.value:
            module = self._strip_annotations(module, source)
        return module

    def _strip_annotations(self, module: SourceModule, source: SourceFile) -> SourceModule:
        text = module.render()
        stripped = strip_types(source.path, text, component=source.component)
        if stripped == text:
            return module
        if is_debug_enabled(logger):
            logger.debug(
                "Stripped type syntax",
                extra=extra_context(
                    event="transform",
                    component=self.name,
                    target=f"{source.component}:{source.path}",
                    removed_chars=len(text) - len(stripped),
                ),
            )
        unused = referenced_names(source.path, text, component=source.component) - referenced_names(
            source.path, stripped, component=source.component
        )
        module = parse_module(source.path, stripped, component=source.component)
        if unused:
            for node in module.imports():
                if node.kind is ImportKind.STATIC:
                    self._drop_bindings(node, source, unused)
        return module

    def _drop_bindings(self, node: ImportNode, source: SourceFile, unused: Set[str]) -> None:
        clause = node.clause
        open_at = clause.find("{")
        close_at = clause.rfind("}")
        braced = open_at >= 0 and close_at > open_at
        head = clause[:open_at] if braced else clause
        heads = [p.strip() for p in head.split(",") if p.strip()]
        items = [i.strip() for i in clause[open_at + 1:close_at].split(",") if i.strip()] if braced else []
        kept_heads = [p for p in heads if p.split()[-1] not in unused]
        kept_items = [i for i in items if i.split()[-1] not in unused]
        if len(kept_heads) == len(heads) and len(kept_items) == len(items):
            return
        if kept_heads or kept_items:
            parts = kept_heads + ([f"{{ {', '.join(kept_items)} }}"] if kept_items else [])
            node.clause = f" {', '.join(parts)} "
        else:
            node.removed = True
        _trace(self.name, source, clause, "" if node.removed else node.clause)

    def _strip_types(self, node: ImportNode, source: SourceFile) -> None:
        clause = node.clause
        if _LEADING_TYPE_RE.match(clause) and clause.strip() != "type":
            _trace(self.name, source, node.render(), "")
            node.removed = True
            return
        open_at = clause.find("{")
        close_at = clause.rfind("}")
        if open_at < 0 or close_at < open_at:
            return
        items = [i.strip() for i in clause[open_at + 1:close_at].split(",")]
        items = [i for i in items if i]
        kept = [i for i in items if not _INLINE_TYPE_RE.match(i)]
        if len(kept) == len(items):
            return
        head = clause[:open_at]
        if kept:
            node.clause = f"{head}{{ {', '.join(kept)} }}{clause[close_at + 1:]}"
        elif head.strip().rstrip(",").strip():
            # Default or namespace binding survives: "Def, { type X }" -> "Def"
            node.clause = head.rstrip().rstrip(",") + clause[close_at + 1:]
        else:
            node.removed = True
        _trace(self.name, source, clause, "" if node.removed else node.clause)


def _named_bindings(clause: str) -> List[str]:
    """Local names bound by an import clause."""
    names = []
    open_at = clause.find("{")
    close_at = clause.rfind("}")
    if open_at >= 0 and close_at > open_at:
        for item in clause[open_at + 1:close_at].split(","):
            parts = item.split()
            if parts and parts[0] == "type" and len(parts) > 1 and parts[1] != "as":
                parts = parts[1:]
            if parts:
                names.append(parts[0])
        head = clause[:open_at]
    else:
        head = clause
    for part in head.split(","):
        words = part.split()
        if words and words[0] not in ("type", "*"):
            names.append(words[-1])
    return names


DEFAULT_TRANSFORMERS: Tuple[object, ...] = (
    ImportPathTransformer(),
    StyleReferenceTransformer(),
    DependencyIdentifierTransformer(),
    TypeAnnotationTransformer(),
)

