"""Unit tests for the table column contracts."""

from __future__ import annotations

import json

from federation_etl.mappings import (
    ATHLETE,
    CATEGORY,
    EVENT,
    EVENT_TYPE,
    ORGANIZATION,
    RESULT,
    TABLES,
)


class TestOrganization:
    def test_maps_present_fields(self):
        row = ORGANIZATION.map_record({"id": 1, "name": "Club A", "abbr": "CA"})
        assert row == {"id": 1, "name": "Club A", "abbr": "CA"}

    def test_null_fields_are_omitted(self):
        row = ORGANIZATION.map_record({"id": 1, "name": None, "alias": None})
        assert row == {"id": 1}
        assert "alias" not in row

    def test_unknown_source_keys_ignored(self):
        row = ORGANIZATION.map_record({"id": 1, "websiteUrl": "https://x"})
        assert row == {"id": 1}


class TestAthlete:
    def test_camel_case_sources(self):
        row = ATHLETE.map_record({
            "id": 10, "firstname": "Ann", "lastname": "Dua",
            "liveId": "L-10", "organizationId": 4,
        })
        assert row["live_id"] == "L-10"
        assert row["organization_id"] == 4

    def test_embedded_organization_id_fallback(self):
        row = ATHLETE.map_record({"id": 10, "organization": {"id": 4, "name": "Club"}})
        assert row["organization_id"] == 4

    def test_falsy_values_are_kept(self):
        row = ATHLETE.map_record({"id": 10, "dossard": 0})
        assert row["dossard"] == 0


class TestCategory:
    def test_parent_category_id(self):
        row = CATEGORY.map_record({"id": 2, "categoryId": 1, "ageMin": 12, "sortOrder": 3})
        assert row == {"id": 2, "category_id": 1, "age_min": 12, "sort_order": 3}


class TestEvent:
    def test_opaque_fields_serialized(self):
        row = EVENT.map_record({
            "id": 100, "name": "Indoor meeting",
            "facility": {"name": "Topsporthal", "indoor": True},
            "responsible": None,
        })
        assert json.loads(row["facility"]) == {"name": "Topsporthal", "indoor": True}
        assert "responsible" not in row

    def test_empty_containers_kept_falsy_scalars_dropped(self):
        row = EVENT.map_record({"id": 100, "facility": {}, "responsible": 0, "responsible2": False})
        assert row == {"id": 100, "facility": "{}"}

    def test_empty_round_and_heat_stored(self):
        row = RESULT.map_record({"id": 1, "round": {}, "heat": []})
        assert (row["round"], row["heat"]) == ("{}", "[]")


class TestEventType:
    def test_nb_athletes_left_to_default(self):
        row = EVENT_TYPE.map_record({"id": 5, "name_en": "100m"})
        assert "nb_athletes" not in row

    def test_nb_athletes_passed_when_present(self):
        row = EVENT_TYPE.map_record({"id": 5, "nb_athletes": 4})
        assert row["nb_athletes"] == 4


class TestResultForeignKeys:
    def test_flat_ids(self):
        row = RESULT.map_record({"id": 1, "eventTypeId": 20, "categoryId": 30})
        assert (row["event_type_id"], row["category_id"]) == (20, 30)

    def test_flat_event_id_ignored(self):
        row = RESULT.map_record({"id": 1, "eventId": 999, "event": None})
        assert "event_id" not in row

    def test_nested_fallback(self):
        row = RESULT.map_record({
            "id": 1,
            "event": {"id": 10},
            "eventType": {"id": 20},
            "category": {"id": 30},
        })
        assert (row["event_id"], row["event_type_id"], row["category_id"]) == (10, 20, 30)

    def test_flat_category_preferred_over_nested(self):
        row = RESULT.map_record({"id": 1, "categoryId": 30, "category": {"id": 99}})
        assert row["category_id"] == 30

    def test_no_category_leaves_column_unset(self):
        row = RESULT.map_record({"id": 1})
        assert "category_id" not in row
        assert "event_id" not in row

    def test_opaque_result_fields(self):
        row = RESULT.map_record({
            "id": 1,
            "round": {"name": "Final"},
            "result": {"value": "10.52", "wind": 0.4},
            "athleteCategory": {"abbr": "SEN"},
        })
        assert json.loads(row["round"]) == {"name": "Final"}
        assert json.loads(row["athlete_category"]) == {"abbr": "SEN"}
        assert "heat" not in row


def test_every_table_keyed_on_id():
    assert set(TABLES) == {"organization", "athlete", "category", "event", "event_type", "result"}
    for spec in TABLES.values():
        assert spec.key == "id"
        assert spec.columns[0] == "id"
