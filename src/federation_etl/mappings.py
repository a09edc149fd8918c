"""federation_etl.mappings

Column contracts: how each remote record maps onto its destination table.

A FieldMap lists one or more source paths tried in order (the flat id field
first, the nested object id as fallback) and the destination column. Opaque
fields are serialized to JSON text. Anything that resolves to nothing is left
out of the row.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from federation_etl.normalize import ABSENT, first_present, opaque_text


@dataclass(frozen=True)
class FieldMap:
    column: str
    sources: tuple[str, ...]
    opaque: bool = False


def f(column: str, *sources: str, opaque: bool = False) -> FieldMap:
    return FieldMap(column=column, sources=sources or (column,), opaque=opaque)


@dataclass(frozen=True)
class TableSpec:
    name: str
    fields: tuple[FieldMap, ...]
    key: str = "id"

    @property
    def columns(self) -> list[str]:
        return [fm.column for fm in self.fields]

    def map_record(self, record: dict[str, Any]) -> dict[str, Any]:
        """Build a row dict holding only the columns that have a value."""
        row: dict[str, Any] = {}
        for fm in self.fields:
            value = first_present(record, fm.sources)
            if fm.opaque:
                value = opaque_text(value)
            if value is ABSENT:
                continue
            row[fm.column] = value
        return row


# ---------------------------------------------------------------------------
# Table specs
# ---------------------------------------------------------------------------

ORGANIZATION = TableSpec(
    name="organization",
    fields=(
        f("id"),
        f("fed_number"),
        f("type"),
        f("name"),
        f("abbr"),
        f("alias"),
        f("location"),
        f("federation"),
        f("contact_person"),
        f("contact_email"),
        f("contact_phone1"),
        f("contact_phone2"),
    ),
)

ATHLETE = TableSpec(
    name="athlete",
    fields=(
        f("id"),
        f("lastname"),
        f("firstname"),
        f("birthdate"),
        f("live_id", "liveId"),
        f("dossard"),
        f("gender"),
        f("nationality"),
        f("organization_id", "organizationId", "organization.id"),
    ),
)

CATEGORY = TableSpec(
    name="category",
    fields=(
        f("id"),
        f("federation"),
        f("name"),
        f("abbr"),
        f("age_min", "ageMin"),
        f("age_max", "ageMax"),
        f("change_min", "changeMin"),
        f("change_max", "changeMax"),
        f("gender"),
        f("national_code", "nationalCode"),
        f("sort_order", "sortOrder"),
        f("category_id", "categoryId"),
        f("fedinsidelabel"),
    ),
)

EVENT = TableSpec(
    name="event",
    fields=(
        f("id"),
        f("event_number", "eventNumber"),
        f("name"),
        f("date_start"),
        f("date_end"),
        f("start_time"),
        f("championship"),
        f("season"),
        f("facility", opaque=True),
        f("responsible", opaque=True),
        f("responsible2", opaque=True),
        f("type"),
        f("chrono"),
        f("organization_id", "organizationId"),
    ),
)

EVENT_TYPE = TableSpec(
    name="event_type",
    fields=(
        f("id"),
        f("venue"),
        f("distance"),
        f("wind_mode"),
        f("wind_time"),
        f("precision"),
        f("handtime_diff"),
        f("nb_athletes"),
        f("implement"),
        f("hurdles_nb"),
        f("hurdles_first"),
        f("hurdles_interval"),
        f("hurdles_last"),
        f("abbr"),
        f("name_fr"),
        f("name_nl"),
        f("name_de"),
        f("name_en"),
        f("low2high"),
        f("national_code"),
        f("sort_order"),
        f("type_id"),
        f("result_type"),
        f("discipline_group"),
    ),
)

RESULT = TableSpec(
    name="result",
    fields=(
        f("id"),
        f("event_number", "eventNumber"),
        f("name"),
        f("abbr"),
        f("type"),
        f("date"),
        f("validation"),
        f("xml_id", "xmlId"),
        f("round", opaque=True),
        f("heat", opaque=True),
        f("result", opaque=True),
        f("event_category", "eventCategory", opaque=True),
        f("athlete_category", "athleteCategory", opaque=True),
        f("event_id", "event.id"),
        f("event_type_id", "eventTypeId", "eventType.id"),
        f("category_id", "categoryId", "category.id"),
    ),
)

TABLES: dict[str, TableSpec] = {
    spec.name: spec
    for spec in (ORGANIZATION, ATHLETE, CATEGORY, EVENT, EVENT_TYPE, RESULT)
}
