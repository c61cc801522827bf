"""Source transformation: parse component files and rewrite their references."""

from .context import SourceFile, StyleStrategy, TransformContext
from .parser import ImportKind, ImportNode, SourceModule, parse_module
from .pipeline import TransformPipeline, build_sources, target_path_for
from .transformers import (
    DependencyIdentifierTransformer,
    ImportPathTransformer,
    StyleReferenceTransformer,
    TypeAnnotationTransformer,
)

__all__ = [
    "SourceFile",
    "StyleStrategy",
    "TransformContext",
    "ImportKind",
    "ImportNode",
    "SourceModule",
    "parse_module",
    "TransformPipeline",
    "build_sources",
    "target_path_for",
    "ImportPathTransformer",
    "StyleReferenceTransformer",
    "DependencyIdentifierTransformer",
    "TypeAnnotationTransformer",
]
