"""Per-source column mappings."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from rowsync.domain.ingest.model.record import CATEGORY, MANUFACTURER, PART_NUMBER


class MappingStatus(StrEnum):
    PENDING = "PENDING"
    READY = "READY"
    COMPLETED = "COMPLETED"


class ColumnMapping(BaseModel):
    """Physical column names (as they appear in the header) for each logical field."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    part_number: str | None = None
    category: str | None = None
    manufacturer: str | None = None

    def logical_columns(self) -> dict[str, str]:
        """Logical key -> physical column, for mapped fields only."""
        columns = {
            PART_NUMBER: self.part_number,
            CATEGORY: self.category,
            MANUFACTURER: self.manufacturer,
        }
        return {logical: physical for logical, physical in columns.items() if physical}


class MappingEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    file_key: str
    mapping: ColumnMapping = ColumnMapping()
    status: MappingStatus = MappingStatus.PENDING
