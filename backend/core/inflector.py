"""
Pluggable naming inflector.

Naming-convention checks (e.g. the expected counter-cache column on an
inverse table) go through an Inflector so applications with their own
pluralization rules can swap it out.
"""
import re
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Inflector(Protocol):
    def underscore(self, name: str) -> str: ...

    def pluralize(self, word: str) -> str: ...

    def tableize(self, class_name: str) -> str: ...


class SimpleInflector:
    """English-ish rules with a small irregular table; good enough for model names."""

    IRREGULAR = {
        "person": "people",
        "man": "men",
        "woman": "women",
        "child": "children",
        "mouse": "mice",
        "goose": "geese",
        "foot": "feet",
        "tooth": "teeth",
        "ox": "oxen",
    }
    UNCOUNTABLE = {"equipment", "information", "rice", "money", "species", "series", "fish", "sheep", "metadata"}

    def __init__(self, irregular: Optional[dict[str, str]] = None):
        self.irregular = dict(self.IRREGULAR)
        if irregular:
            self.irregular.update(irregular)

    def underscore(self, name: str) -> str:
        name = name.split(".")[-1]
        name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
        name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
        return name.replace("-", "_").lower()

    def pluralize(self, word: str) -> str:
        if not word:
            return word
        head, _, last = word.rpartition("_")
        prefix = f"{head}_" if head else ""
        lower = last.lower()
        if lower in self.UNCOUNTABLE:
            return word
        if lower in self.irregular:
            return prefix + self.irregular[lower]
        if re.search(r"(s|x|z|ch|sh)$", lower):
            return prefix + last + "es"
        if re.search(r"[^aeiou]y$", lower):
            return prefix + last[:-1] + "ies"
        if re.search(r"(?:[^f]fe|[lr]f)$", lower):
            return prefix + re.sub(r"fe?$", "ves", last)
        return prefix + last + "s"

    def tableize(self, class_name: str) -> str:
        return self.pluralize(self.underscore(class_name))


default_inflector: Inflector = SimpleInflector()
