"""Formation metadata for the live match tracker.

A formation is an ordered list of slots, each tagged with a position code.
Slot roles only group the on-field picture for display; they carry no
gameplay semantics.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


class FormationType(Enum):
    """Standard soccer formation types."""
    F_4_4_2 = "4-4-2"
    F_4_3_3 = "4-3-3"
    F_3_5_2 = "3-5-2"
    F_4_2_3_1 = "4-2-3-1"
    F_3_4_3 = "3-4-3"
    CUSTOM = "Custom"


class DisplayRole(Enum):
    """Display grouping for slots on the field."""
    GOALKEEPER = "goalkeeper"
    DEFENSE = "defense"
    MIDFIELD = "midfield"
    ATTACK = "attack"
    OTHER = "other"


class Position(Enum):
    """Position codes a formation slot can carry."""
    GOALKEEPER = "GK"
    CENTER_BACK = "CB"
    LEFT_BACK = "LB"
    RIGHT_BACK = "RB"
    WING_BACK = "WB"
    DEFENSIVE_MIDFIELDER = "CDM"
    CENTRAL_MIDFIELDER = "CM"
    ATTACKING_MIDFIELDER = "CAM"
    LEFT_MIDFIELDER = "LM"
    RIGHT_MIDFIELDER = "RM"
    LEFT_WINGER = "LW"
    RIGHT_WINGER = "RW"
    STRIKER = "ST"
    CENTER_FORWARD = "CF"

    @property
    def role(self) -> DisplayRole:
        return ROLE_BY_POSITION[self]


ROLE_BY_POSITION: Dict[Position, DisplayRole] = {
    Position.GOALKEEPER: DisplayRole.GOALKEEPER,
    Position.CENTER_BACK: DisplayRole.DEFENSE,
    Position.LEFT_BACK: DisplayRole.DEFENSE,
    Position.RIGHT_BACK: DisplayRole.DEFENSE,
    Position.WING_BACK: DisplayRole.DEFENSE,
    Position.DEFENSIVE_MIDFIELDER: DisplayRole.MIDFIELD,
    Position.CENTRAL_MIDFIELDER: DisplayRole.MIDFIELD,
    Position.ATTACKING_MIDFIELDER: DisplayRole.MIDFIELD,
    Position.LEFT_MIDFIELDER: DisplayRole.MIDFIELD,
    Position.RIGHT_MIDFIELDER: DisplayRole.MIDFIELD,
    Position.LEFT_WINGER: DisplayRole.ATTACK,
    Position.RIGHT_WINGER: DisplayRole.ATTACK,
    Position.STRIKER: DisplayRole.ATTACK,
    Position.CENTER_FORWARD: DisplayRole.ATTACK,
}


@dataclass(frozen=True)
class FormationSlot:
    """One slot of a formation, e.g. ``("cb2", Position.CENTER_BACK)``."""
    slot_id: str
    position_code: Position

    @property
    def role(self) -> DisplayRole:
        return self.position_code.role

    def to_dict(self) -> Dict:
        return {
            "slot_id": self.slot_id,
            "position_code": self.position_code.value,
            "role": self.role.value,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> FormationSlot:
        return cls(slot_id=data["slot_id"], position_code=Position(data["position_code"]))


@dataclass
class Formation:
    """Represents a formation as an ordered list of slots."""
    name: str
    formation_type: FormationType
    slots: List[FormationSlot] = field(default_factory=list)
    description: str = ""

    def slot_ids(self) -> List[str]:
        return [slot.slot_id for slot in self.slots]

    def role_for_slot(self, slot_id: str) -> DisplayRole:
        """Display role of ``slot_id``; unknown slots fall into ``OTHER``."""
        for slot in self.slots:
            if slot.slot_id == slot_id:
                return slot.role
        return DisplayRole.OTHER

    def get_formation_shape(self) -> Tuple[int, int, int, int]:
        """Get formation shape as (GK, DEF, MID, ATT) tuple."""
        counts = Counter(slot.role for slot in self.slots)
        return (
            counts[DisplayRole.GOALKEEPER],
            counts[DisplayRole.DEFENSE],
            counts[DisplayRole.MIDFIELD],
            counts[DisplayRole.ATTACK],
        )

    def to_dict(self) -> Dict:
        """Convert formation to dictionary for serialization."""
        return {
            "name": self.name,
            "formation_type": self.formation_type.value,
            "slots": [slot.to_dict() for slot in self.slots],
            "shape": list(self.get_formation_shape()),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> Formation:
        """Create formation from dictionary."""
        return cls(
            name=data["name"],
            formation_type=FormationType(data.get("formation_type", FormationType.CUSTOM.value)),
            slots=[FormationSlot.from_dict(slot) for slot in data.get("slots", [])],
            description=data.get("description", ""),
        )


def build_slots(codes: Iterable[Position]) -> List[FormationSlot]:
    """Number repeated position codes: ``[CB, CB]`` -> ``cb1, cb2``."""
    codes = list(codes)
    totals = Counter(codes)
    seen: Counter = Counter()
    slots = []
    for code in codes:
        base = code.value.lower()
        if totals[code] > 1:
            seen[code] += 1
            slot_id = f"{base}{seen[code]}"
        else:
            slot_id = base
        slots.append(FormationSlot(slot_id, code))
    return slots


class FormationTemplates:
    """Pre-defined formation templates for common soccer formations."""

    _LAYOUTS: Dict[FormationType, Tuple[str, List[Position]]] = {
        FormationType.F_4_4_2: ("4-4-2 Classic", [
            Position.GOALKEEPER,
            Position.LEFT_BACK, Position.CENTER_BACK, Position.CENTER_BACK, Position.RIGHT_BACK,
            Position.LEFT_MIDFIELDER, Position.CENTRAL_MIDFIELDER,
            Position.CENTRAL_MIDFIELDER, Position.RIGHT_MIDFIELDER,
            Position.STRIKER, Position.STRIKER,
        ]),
        FormationType.F_4_3_3: ("4-3-3 Attack", [
            Position.GOALKEEPER,
            Position.LEFT_BACK, Position.CENTER_BACK, Position.CENTER_BACK, Position.RIGHT_BACK,
            Position.CENTRAL_MIDFIELDER, Position.CENTRAL_MIDFIELDER, Position.CENTRAL_MIDFIELDER,
            Position.LEFT_WINGER, Position.STRIKER, Position.RIGHT_WINGER,
        ]),
        FormationType.F_3_5_2: ("3-5-2 Control", [
            Position.GOALKEEPER,
            Position.CENTER_BACK, Position.CENTER_BACK, Position.CENTER_BACK,
            Position.LEFT_MIDFIELDER, Position.CENTRAL_MIDFIELDER, Position.CENTRAL_MIDFIELDER,
            Position.CENTRAL_MIDFIELDER, Position.RIGHT_MIDFIELDER,
            Position.STRIKER, Position.STRIKER,
        ]),
        FormationType.F_4_2_3_1: ("4-2-3-1", [
            Position.GOALKEEPER,
            Position.LEFT_BACK, Position.CENTER_BACK, Position.CENTER_BACK, Position.RIGHT_BACK,
            Position.DEFENSIVE_MIDFIELDER, Position.DEFENSIVE_MIDFIELDER,
            Position.LEFT_WINGER, Position.ATTACKING_MIDFIELDER, Position.RIGHT_WINGER,
            Position.STRIKER,
        ]),
        FormationType.F_3_4_3: ("3-4-3", [
            Position.GOALKEEPER,
            Position.CENTER_BACK, Position.CENTER_BACK, Position.CENTER_BACK,
            Position.LEFT_MIDFIELDER, Position.CENTRAL_MIDFIELDER,
            Position.CENTRAL_MIDFIELDER, Position.RIGHT_MIDFIELDER,
            Position.LEFT_WINGER, Position.STRIKER, Position.RIGHT_WINGER,
        ]),
    }

    @staticmethod
    def get_template_by_type(formation_type: FormationType) -> Optional[Formation]:
        """Get template by formation type."""
        layout = FormationTemplates._LAYOUTS.get(formation_type)
        if layout is None:
            return None
        name, codes = layout
        return Formation(name=name, formation_type=formation_type, slots=build_slots(codes))

    @staticmethod
    def get_all_templates() -> List[Formation]:
        """Get all pre-defined formation templates."""
        return [
            FormationTemplates.get_template_by_type(formation_type)
            for formation_type in FormationTemplates._LAYOUTS
        ]


class FormationCatalog:
    """
    Read-only lookup from formation name to its slots.

    Templates are registered under both their display name and their type
    value (``"4-4-2"``); custom formations can be added at runtime.
    """

    def __init__(self, custom: Optional[Iterable[Formation]] = None):
        self._formations: Dict[str, Formation] = {}
        for template in FormationTemplates.get_all_templates():
            self._formations[template.name] = template
            self._formations[template.formation_type.value] = template
        for formation in custom or []:
            self.register(formation)

    def register(self, formation: Formation) -> None:
        self._formations[formation.name] = formation

    def add_custom(self, data: Dict) -> Formation:
        """
        Build a formation from its dict form and register it.

        Raises:
            ValueError: If the payload is malformed or the name is already taken
        """
        try:
            formation = Formation.from_dict(data)
        except KeyError as e:
            raise ValueError(f"Formation is missing {e.args[0]!r}") from e
        except TypeError as e:
            raise ValueError("Formation slots must be objects with slot_id and position_code") from e
        if not str(formation.name).strip():
            raise ValueError("Formation name is required")
        if self.get(formation.name) is not None:
            raise ValueError(f"Formation already exists: {formation.name}")
        slot_ids = formation.slot_ids()
        if not slot_ids:
            raise ValueError("Formation needs at least one slot")
        if len(set(slot_ids)) != len(slot_ids):
            raise ValueError("Formation slot ids must be unique")
        self.register(formation)
        return formation

    def get(self, name: str) -> Optional[Formation]:
        return self._formations.get(name)

    def list_formations(self) -> List[Formation]:
        unique: Dict[str, Formation] = {}
        for formation in self._formations.values():
            unique.setdefault(formation.name, formation)
        return list(unique.values())

    def role_for_slot(self, formation_name: str, slot_id: str) -> DisplayRole:
        formation = self.get(formation_name)
        if formation is None:
            return DisplayRole.OTHER
        return formation.role_for_slot(slot_id)
