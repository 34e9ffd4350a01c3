"""Tests for multi-key menu lookup."""

from order_gateway.services.orders import MenuIndex, Reference

MENU = {
    "menus": [
        {
            "menuGroups": [
                {
                    "items": [
                        {"guid": "g-1", "multiLocationId": "m-1", "referenceId": 7, "name": "Int Ref"},
                        {"guid": "g-2", "multiLocationId": 555, "referenceId": "7", "name": "Str Ref"},
                    ],
                    "menuGroups": [
                        {
                            "items": [{"guid": "g-3", "name": "Nested"}],
                            "menuGroups": [{"items": [{"guid": "g-4", "name": "Deeply Nested"}]}],
                        }
                    ],
                }
            ]
        }
    ],
    "modifierOptionReferences": {
        "100": {"guid": "mod-1", "referenceId": 100, "name": "Extra Shot"},
    },
}


class TestMenuIndexBuild:
    """Indexing a published menu document."""

    def test_nested_groups_are_indexed(self):
        index = MenuIndex.build(MENU)

        assert index.find_item({"guid": "g-3"})["name"] == "Nested"
        assert index.find_item({"guid": "g-4"})["name"] == "Deeply Nested"

    def test_none_document_yields_empty_index(self):
        index = MenuIndex.build(None)

        assert index.find_item({"guid": "g-1"}) is None
        assert index.find_modifier({"referenceId": 100}) is None

    def test_modifiers_come_from_option_references(self):
        index = MenuIndex.build(MENU)

        assert index.find_modifier({"referenceId": 100})["name"] == "Extra Shot"
        assert index.find_modifier({"guid": "mod-1"})["name"] == "Extra Shot"
        assert index.find_item({"guid": "mod-1"}) is None


class TestMenuIndexLookup:
    """Lookup precedence."""

    def test_guid_wins_over_other_identifiers(self):
        index = MenuIndex.build(MENU)

        hit = index.find_item({"guid": "g-2", "multiLocationId": "m-1", "referenceId": 7})
        assert hit["name"] == "Str Ref"

    def test_unknown_guid_does_not_fall_through(self):
        index = MenuIndex.build(MENU)

        assert index.find_item({"guid": "missing", "multiLocationId": "m-1"}) is None

    def test_multi_location_id_then_reference_id(self):
        index = MenuIndex.build(MENU)

        assert index.find_item({"multiLocationId": "m-1"})["name"] == "Int Ref"
        assert index.find_item({"multiLocationId": 555})["name"] == "Str Ref"
        assert index.find_item({"multiLocationId": "nope", "referenceId": 7})["name"] == "Int Ref"

    def test_reference_id_type_matters(self):
        index = MenuIndex.build(MENU)

        assert index.find_item({"referenceId": 7})["name"] == "Int Ref"
        assert index.find_item({"referenceId": "7"})["name"] == "Str Ref"

    def test_empty_reference(self):
        index = MenuIndex.build(MENU)

        assert index.find_item({}) is None
        assert index.find_item(None) is None
        assert index.find_item(Reference()) is None

    def test_reference_objects(self):
        index = MenuIndex.build(MENU)

        assert index.find_item(Reference(reference_id="7"))["guid"] == "g-2"
        assert Reference.from_value({"name": "no ids"}) is None
        assert Reference.from_value({"multiLocationId": 555}).multi_location_id == "555"
