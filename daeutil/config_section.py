"""Parsed configuration structure: sections, parameters, functions and routing rules."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Union

_MAX_SHOWN_PARAMS = 5

_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def _quote(s: str) -> str:
    """Double-quote a string, escaping quotes, backslashes and unprintables."""
    out = ['"']
    for ch in s:
        if ch in ('"', "\\"):
            out.append("\\" + ch)
        elif ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch.isprintable():
            out.append(ch)
        else:
            cp = ord(ch)
            if cp < 0x80:
                out.append(f"\\x{cp:02x}")
            elif cp < 0x10000:
                out.append(f"\\u{cp:04x}")
            else:
                out.append(f"\\U{cp:08x}")
    out.append('"')
    return "".join(out)


def _indent(text: str) -> str:
    return "\n".join("\t" + line for line in text.split("\n"))


class ItemType(enum.Enum):
    ROUTING_RULE = "RoutingRule"
    PARAM = "Param"
    SECTION = "Section"

    def __str__(self) -> str:
        return self.value


@dataclass
class Function:
    """A call such as ``name(key: value, ...)``, optionally negated with ``!``."""

    name: str
    negated: bool = False
    params: list[Param] = field(default_factory=list)

    def to_string(self, compact: bool, quote_val: bool, omit_empty: bool) -> str:
        parts = ["!" if self.negated else "", self.name]
        if not (omit_empty and not self.params):
            shown = [p.to_string(compact, quote_val) for p in self.params[:_MAX_SHOWN_PARAMS]]
            if len(self.params) > _MAX_SHOWN_PARAMS:
                shown.append("...")
            sep = "," if compact else ", "
            parts.append("(" + sep.join(shown) + ")")
        return "".join(parts)


@dataclass
class Param:
    """A value with an optional key; the value is either text or a chain of functions."""

    key: str = ""
    val: str = ""
    and_functions: list[Function] | None = None
    annotation: list[Param] = field(default_factory=list)

    def to_string(self, compact: bool, quote_val: bool) -> str:
        shown_val = _quote(self.val) if quote_val else self.val
        if self.key == "":
            return shown_val
        if self.and_functions is not None:
            head = self.key + (":" if compact else ": ")
            sep = "&&" if compact else " && "
            return head + sep.join(
                f.to_string(compact, quote_val, False) for f in self.and_functions
            )
        if compact:
            return self.key + ":" + shown_val
        return self.key + ": " + shown_val


@dataclass
class RoutingRule:
    """Functions joined by ``&&`` that lead to an outbound."""

    and_functions: list[Function]
    outbound: Function

    def to_string(self, replace_param_with_n: bool, compact: bool, quote_val: bool) -> str:
        pieces = []
        for f in self.and_functions:
            if replace_param_with_n:
                params = f"[n = {len(f.params)}]"
            else:
                sep = "," if compact else ", "
                params = sep.join(p.to_string(compact, quote_val) for p in f.params)
            sym_not = "!" if f.negated else ""
            pieces.append(f"{sym_not}{f.name}({params})")
        joiner = "&&" if compact else " && "
        arrow = "->" if compact else " -> "
        return joiner.join(pieces) + arrow + self.outbound.to_string(compact, quote_val, True)


@dataclass
class Section:
    """A named block holding items."""

    name: str
    items: list[Item] = field(default_factory=list)

    def to_string(self, compact: bool, quote_val: bool) -> str:
        body = "\n".join(_indent(item.to_string(compact, quote_val)) for item in self.items)
        return "section: " + self.name + "\n" + body


ItemValue = Union[RoutingRule, Param, Section]


@dataclass
class Item:
    """One entry of a section."""

    type: ItemType
    value: object

    @classmethod
    def routing_rule(cls, rule: RoutingRule) -> "Item":
        return cls(ItemType.ROUTING_RULE, rule)

    @classmethod
    def param(cls, param: Param) -> "Item":
        return cls(ItemType.PARAM, param)

    @classmethod
    def section(cls, section: Section) -> "Item":
        # Nested sections are tagged as parameters, as the parser always did.
        return cls(ItemType.PARAM, section)

    def to_string(self, compact: bool, quote_val: bool) -> str:
        value = self.value
        if isinstance(value, RoutingRule):
            content = value.to_string(False, compact, quote_val)
        elif isinstance(value, Param):
            content = value.to_string(False, quote_val)
        elif isinstance(value, Section):
            content = value.to_string(compact, quote_val)
        else:
            return "<Unknown>\n"
        return "type: " + str(self.type) + "\n" + _indent(content)