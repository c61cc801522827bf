"""Transform pipeline: parse, run the ordered transformers, render."""

from __future__ import annotations

import posixpath
from typing import List, Sequence

from constants import FileKinds
from registry.models import ComponentFile, ComponentManifest
from transform.context import SourceFile, StyleStrategy, TransformContext
from transform.parser import check_json, check_stylesheet, parse_module
from transform.transformers import DEFAULT_TRANSFORMERS

_JS_TARGET_EXTENSIONS = {".tsx": ".jsx", ".ts": ".js", ".mts": ".mjs", ".cts": ".cjs"}


def target_path_for(component: str, file: ComponentFile, context: TransformContext) -> str:
    """Project-root-relative install path of one component file."""
    if file.is_style and context.style_strategy is StyleStrategy.GLOBAL:
        return posixpath.join(context.styles_dir, context.unscoped(component), file.path)
    path = posixpath.join(context.component_dir(component), file.path)
    if file.is_script and not context.typescript:
        root, ext = posixpath.splitext(path)
        if ext in _JS_TARGET_EXTENSIONS:
            path = root + _JS_TARGET_EXTENSIONS[ext]
    return path


def build_sources(manifest: ComponentManifest, context: TransformContext) -> List[SourceFile]:
    """SourceFile inputs for every file of ``manifest``, in manifest order."""
    siblings = {f.path: target_path_for(manifest.name, f, context) for f in manifest.files}
    return [
        SourceFile(
            component=manifest.name,
            path=f.path,
            content=f.content,
            kind=f.kind,
            target_path=siblings[f.path],
            siblings=siblings,
        )
        for f in manifest.files
    ]


class TransformPipeline:
    """Runs the fixed transformer chain over one SourceFile at a time.

    Extra transformers are appended after the built-in ones; each must
    provide ``transform(module, source, context) -> SourceModule``.
    """

    def __init__(self, context: TransformContext, extra_transformers: Sequence[object] = ()):
        self.context = context
        self.transformers = tuple(DEFAULT_TRANSFORMERS) + tuple(extra_transformers)

    def transform(self, source: SourceFile) -> str:
        """Return the rewritten content of ``source``.

        Raises:
            ParseError: The file is malformed; nothing is transformed.
            StyleReferenceError: A stylesheet import escapes the component.
        """
        kind = source.kind
        if kind in (FileKinds.TYPESCRIPT.value, FileKinds.JAVASCRIPT.value):
            module = parse_module(source.path, source.content, component=source.component)
            for transformer in self.transformers:
                module = transformer.transform(module, source, self.context)
            return module.render()
        if kind in (FileKinds.CSS.value, FileKinds.SCSS.value, FileKinds.LESS.value):
            check_stylesheet(source.path, source.content, component=source.component)
        elif kind == FileKinds.JSON.value:
            check_json(source.path, source.content, component=source.component)
        return source.content

