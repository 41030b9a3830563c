"""Named attribute values shared by signals, messages and nodes"""

from __future__ import annotations

from dataclasses import dataclass

AttributeScalar = str | int | float


@dataclass(frozen=True)
class AttributeValue:
    """A single DBC attribute assignment (``BA_``)"""

    name: str
    value: AttributeScalar


class AttributeLookup:
    """Name / index lookup over an ordered ``attributes`` tuple.

    Mixed into every definition kind that carries attributes; the host
    class provides the ``attributes`` field.
    """

    attributes: tuple[AttributeValue, ...]

    def find_attribute_by_name(self, name: str) -> AttributeValue | None:
        """Return the first attribute whose name matches, ignoring case."""
        wanted = name.casefold()
        for attribute in self.attributes:
            if attribute.name.casefold() == wanted:
                return attribute
        return None

    def find_attribute_by_index(self, index: int) -> AttributeValue | None:
        """Return the attribute at ``index``, or None when out of range."""
        if index < 0 or index >= len(self.attributes):
            return None
        return self.attributes[index]
