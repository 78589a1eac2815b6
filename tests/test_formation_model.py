"""
Unit tests for Formation model functionality.

Tests the formation templates, slot numbering, role lookup and the catalog
used to validate starting lineups.
"""
import unittest

from matchlive.models.formation import (
    DisplayRole,
    Formation,
    FormationCatalog,
    FormationSlot,
    FormationTemplates,
    FormationType,
    Position,
    build_slots,
)


class TestBuildSlots(unittest.TestCase):
    """Test slot id generation."""

    def test_repeated_codes_are_numbered(self) -> None:
        slots = build_slots([Position.GOALKEEPER, Position.CENTER_BACK, Position.CENTER_BACK])
        self.assertEqual([s.slot_id for s in slots], ["gk", "cb1", "cb2"])

    def test_slot_role_follows_position(self) -> None:
        slot = FormationSlot("cdm1", Position.DEFENSIVE_MIDFIELDER)
        self.assertEqual(slot.role, DisplayRole.MIDFIELD)


class TestFormationTemplates(unittest.TestCase):
    """Test FormationTemplates functionality."""

    def test_every_template_has_eleven_unique_slots(self) -> None:
        for formation in FormationTemplates.get_all_templates():
            slot_ids = formation.slot_ids()
            self.assertEqual(len(slot_ids), 11, formation.name)
            self.assertEqual(len(set(slot_ids)), 11, formation.name)

    def test_shape_matches_formation_type(self) -> None:
        formation = FormationTemplates.get_template_by_type(FormationType.F_4_3_3)
        self.assertEqual(formation.get_formation_shape(), (1, 4, 3, 3))

    def test_classic_442_slots(self) -> None:
        formation = FormationTemplates.get_template_by_type(FormationType.F_4_4_2)
        self.assertEqual(formation.name, "4-4-2 Classic")
        self.assertEqual(
            formation.slot_ids(),
            ["gk", "lb", "cb1", "cb2", "rb", "lm", "cm1", "cm2", "rm", "st1", "st2"],
        )

    def test_serialization_round_trip(self) -> None:
        formation = FormationTemplates.get_template_by_type(FormationType.F_4_2_3_1)
        restored = Formation.from_dict(formation.to_dict())
        self.assertEqual(restored.slot_ids(), formation.slot_ids())
        self.assertEqual(restored.formation_type, FormationType.F_4_2_3_1)


class TestFormationCatalog(unittest.TestCase):
    """Test catalog lookup by name and by type."""

    def setUp(self) -> None:
        self.catalog = FormationCatalog()

    def test_lookup_by_name_or_type(self) -> None:
        self.assertIs(self.catalog.get("4-4-2"), self.catalog.get("4-4-2 Classic"))
        self.assertIsNone(self.catalog.get("2-3-5"))

    def test_list_has_no_duplicates(self) -> None:
        names = [f.name for f in self.catalog.list_formations()]
        self.assertEqual(len(names), len(set(names)))
        self.assertEqual(len(names), len(FormationTemplates.get_all_templates()))

    def test_role_for_slot(self) -> None:
        self.assertEqual(self.catalog.role_for_slot("4-3-3", "lw"), DisplayRole.ATTACK)
        self.assertEqual(self.catalog.role_for_slot("4-3-3", "unknown"), DisplayRole.OTHER)
        self.assertEqual(self.catalog.role_for_slot("no-such", "gk"), DisplayRole.OTHER)

    def test_custom_formation_can_be_registered(self) -> None:
        custom = Formation(
            name="Sevens",
            formation_type=FormationType.CUSTOM,
            slots=build_slots([Position.GOALKEEPER] + [Position.CENTRAL_MIDFIELDER] * 6),
        )
        self.catalog.register(custom)
        self.assertEqual(self.catalog.get("Sevens").slot_ids()[-1], "cm6")

    def test_add_custom_from_payload(self) -> None:
        payload = {
            "name": "5-3-2 Low Block",
            "slots": [{"slot_id": "gk", "position_code": "GK"}]
            + [{"slot_id": f"cb{i}", "position_code": "CB"} for i in range(1, 6)]
            + [{"slot_id": f"cm{i}", "position_code": "CM"} for i in range(1, 4)]
            + [{"slot_id": f"st{i}", "position_code": "ST"} for i in range(1, 3)],
        }
        formation = self.catalog.add_custom(payload)

        self.assertIs(self.catalog.get("5-3-2 Low Block"), formation)
        self.assertEqual(formation.formation_type, FormationType.CUSTOM)
        self.assertEqual(formation.to_dict()["shape"], [1, 5, 3, 2])

    def test_add_custom_rejects_bad_payloads(self) -> None:
        with self.assertRaises(ValueError):
            self.catalog.add_custom({"slots": []})
        with self.assertRaises(ValueError):
            self.catalog.add_custom({"name": "4-4-2 Classic", "slots": [{"slot_id": "gk", "position_code": "GK"}]})
        with self.assertRaises(ValueError):
            self.catalog.add_custom({"name": "Twins", "slots": [{"slot_id": "gk", "position_code": "GK"}] * 2})
        with self.assertRaises(ValueError):
            self.catalog.add_custom({"name": "Odd", "slots": [{"slot_id": "x", "position_code": "QB"}]})
        with self.assertRaises(ValueError):
            self.catalog.add_custom({"name": "Flat", "slots": ["gk"]})
        self.assertIsNone(self.catalog.get("Twins"))


if __name__ == "__main__":
    unittest.main()
