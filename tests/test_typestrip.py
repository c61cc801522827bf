"""Tests for TypeScript syntax erasure."""

import pytest

from common.errors import UnsupportedSyntax
from transform.typestrip import referenced_names, strip_types

CARD_TSX = (
    "interface CardProps extends React.HTMLAttributes<HTMLDivElement> {\n"
    "  title?: string;\n"
    "}\n"
    "\n"
    'type Variant = "a" | "b";\n'
    "\n"
    "export function Card({ title, ...props }: CardProps): JSX.Element {\n"
    "  const ref = useRef<HTMLDivElement>(null);\n"
    "  const size = props.size as number;\n"
    "  const config = { dense: true } satisfies Config;\n"
    "  return <div ref={ref!} title={title}>{size}</div>;\n"
    "}\n"
)

STORE_TS = (
    "export abstract class Store<T> extends Base<T> implements Disposable, Iterable<T> {\n"
    "  private readonly items: T[] = [];\n"
    "  declare meta: string;\n"
    "  abstract load(): void;\n"
    "  [key: string]: unknown;\n"
    "  name?: string;\n"
    "  count!: number;\n"
    "  static create<U>(): Store<U>;\n"
    "  static create(): Store<unknown> {\n"
    "    return new (this as any)();\n"
    "  }\n"
    "  public get size(): number {\n"
    "    return this.items.length;\n"
    "  }\n"
    "}\n"
)

PICK_TS = (
    "export function pick<T, K extends keyof T>(obj: T, ...keys: K[]): Pick<T, K>;\n"
    "export function pick(obj: any, ...keys: string[]) {\n"
    "  const out = <Record<string, unknown>>{};\n"
    "  for (const key of keys) out[key] = obj![key];\n"
    "  return out;\n"
    "}\n"
    "export const identity = <T,>(value: T): T => value;\n"
    "declare const VERSION: string;\n"
    "export type { Options };\n"
    "export { pick as choose, type Options as Settings };\n"
    "let total: number | undefined, label: string;\n"
    "function bind(this: Window, handler?: () => void) {}\n"
)


class TestStripTypes:
    """Only type syntax is removed; the remaining text is untouched."""

    def test_declarations_annotations_and_assertions(self):
        assert strip_types("card.tsx", CARD_TSX) == (
            "\n"
            "\n"
            "export function Card({ title, ...props }) {\n"
            "  const ref = useRef(null);\n"
            "  const size = props.size;\n"
            "  const config = { dense: true };\n"
            "  return <div ref={ref} title={title}>{size}</div>;\n"
            "}\n"
        )

    def test_class_members(self):
        assert strip_types("store.ts", STORE_TS) == (
            "export class Store extends Base {\n"
            "  items = [];\n"
            "  name;\n"
            "  count;\n"
            "  static create() {\n"
            "    return new (this)();\n"
            "  }\n"
            "  get size() {\n"
            "    return this.items.length;\n"
            "  }\n"
            "}\n"
        )

    def test_overloads_generics_and_type_exports(self):
        assert strip_types("pick.ts", PICK_TS) == (
            "export function pick(obj, ...keys) {\n"
            "  const out = {};\n"
            "  for (const key of keys) out[key] = obj[key];\n"
            "  return out;\n"
            "}\n"
            "export const identity = (value) => value;\n"
            "export { pick as choose };\n"
            "let total, label;\n"
            "function bind(handler) {}\n"
        )

    @pytest.mark.parametrize("path, text", [("card.tsx", CARD_TSX), ("store.ts", STORE_TS), ("pick.ts", PICK_TS)])
    def test_output_is_stable(self, path, text):
        once = strip_types(path, text)
        assert strip_types(path, once) == once

    def test_plain_javascript_is_untouched(self):
        text = (
            "const ok = a < b && c > d;\n"
            "const flag = !ready && value !== other;\n"
            "const pick = cond ? (a) : b;\n"
            "if (x) {\n  run();\n}\n"
        )
        assert strip_types("plain.ts", text) == text


class TestUnsupportedSyntax:
    """Constructs that emit runtime code cannot be erased."""

    @pytest.mark.parametrize(
        "text, construct, line",
        [
            ("enum Size { Sm, Lg }\n", "enum declaration", 1),
            ("const a = 1;\nexport const enum Dir { Up }\n", "enum declaration", 2),
            ("namespace Util {\n  export const x = 1;\n}\n", "namespace declaration", 1),
            ('import fs = require("fs");\n', "'import ... =' declaration", 1),
            ("class A {\n  constructor(private readonly x: number) {}\n}\n", "parameter property", 2),
            ("@Component()\nclass A {}\n", "decorator", 1),
        ],
    )
    def test_rejects(self, text, construct, line):
        with pytest.raises(UnsupportedSyntax) as excinfo:
            strip_types("widget.ts", text, component="widget")
        assert excinfo.value.construct == construct
        assert excinfo.value.line == line
        assert excinfo.value.component == "widget"
        assert "TypeScript enabled" in str(excinfo.value)


class TestReferencedNames:
    """Identifiers a script uses outside its imports."""

    def test_collects_words_jsx_and_spreads(self):
        text = (
            'import { hidden } from "./hidden";\n'
            "const el = <Panel.Root {...rest}>{obj.prop}</Panel.Root>;\n"
        )
        names = referenced_names("view.tsx", text)
        assert {"el", "Panel", "rest", "obj", "React"} <= names
        assert "hidden" not in names
        assert "prop" not in names
