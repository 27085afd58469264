"""
Symbol and label management for the loaded address space.

Holds every named location the loader creates: the entry point,
main, and the hardware register names.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class LabelError(ValueError):
    """Invalid or conflicting label name."""


class LabelType(Enum):
    ENTRY_POINT = "entry_point"
    FUNCTION = "function"
    REGISTER = "register"
    DATA = "data"


_VALID_NAME = re.compile(r"^[A-Za-z_.$][A-Za-z0-9_.$@]*$")


@dataclass
class Label:
    """A named location in the address space."""
    address: int
    name: str
    label_type: LabelType
    section: str = ""

    def to_dict(self) -> dict:
        return {
            "address": f"0x{self.address:08X}",
            "name": self.name,
            "type": self.label_type.value,
            "section": self.section,
        }


class LabelManager:
    """
    Central label/symbol table.

    Names are unique: a name can be bound to one address only. An
    address can carry several names.
    """

    def __init__(self):
        self._names: Dict[str, Label] = {}

    def add(self, label: Label) -> Label:
        """
        Add a label.

        Re-adding an existing name at the same address returns the
        existing label. Raises LabelError for an invalid name or a name
        already bound elsewhere.
        """
        if not _VALID_NAME.match(label.name):
            raise LabelError(f"Invalid label name: {label.name!r}")

        existing = self._names.get(label.name)
        if existing is not None:
            if existing.address == label.address:
                return existing
            raise LabelError(f"Label {label.name} already defined at "
                             f"0x{existing.address:08X}")

        self._names[label.name] = label
        return label

    def get_by_name(self, name: str) -> Optional[Label]:
        """Look up label by name."""
        return self._names.get(name)

    def all_labels(self) -> List[Label]:
        """Return all labels sorted by address."""
        return sorted(self._names.values(), key=lambda l: (l.address, l.name))

    def count(self) -> int:
        return len(self._names)

    def count_by_type(self, label_type: LabelType) -> int:
        return sum(1 for l in self._names.values()
                   if l.label_type == label_type)

    def to_list(self) -> List[dict]:
        """Export all labels as a list of dicts."""
        return [l.to_dict() for l in self.all_labels()]
