"""
Conversion between positional spreadsheet rows and AdherenceRecord.

Column order of the remote "Aderência" table:

    N° ROTA | SETOR | TÉCNICO DE SEGURANÇA | MANUTENÇÃO | PRODUÇÃO |
    CONVIDADOS | TODOS PRESENTES? | DATA PREVISTA | DATA REALIZADA | STATUS
"""

from datetime import date
from typing import Any, Sequence

from sst_sync.core.errors import ValidationFailure
from sst_sync.core.models import AdherenceRecord, Route, normalize_presence
from sst_sync.core.result import Err, Ok, Result
from sst_sync.core.validators import RequiredFieldValidator

COLUMNS = (
    "N° ROTA",
    "SETOR",
    "TÉCNICO DE SEGURANÇA",
    "MANUTENÇÃO",
    "PRODUÇÃO",
    "CONVIDADOS",
    "TODOS PRESENTES?",
    "DATA PREVISTA",
    "DATA REALIZADA",
    "STATUS",
)

FIELDS = (
    "route_number",
    "sector",
    "safety_technician",
    "maintenance",
    "production",
    "guests",
    "all_present",
    "planned_date",
    "actual_date",
    "status",
)

COLUMN_LABELS = dict(zip(FIELDS, COLUMNS))

# Checked in this order; the first failure is reported
REQUIRED_FIELDS = ("route_number", "sector", "safety_technician", "planned_date")


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _format_date(value: date | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return value


class DataMapper:
    """Maps adherence rows to and from the remote table."""

    def __init__(self) -> None:
        self.validators = [
            RequiredFieldValidator(name, COLUMN_LABELS[name]) for name in REQUIRED_FIELDS
        ]

    def validate(self, record: AdherenceRecord) -> Result[AdherenceRecord]:
        """
        Check required fields in priority order.

        Returns:
            Ok(record), or Err(ValidationFailure) naming the first missing field
        """
        for validator in self.validators:
            try:
                validator.validate(getattr(record, validator.field_name))
            except ValidationFailure as e:
                return Err(e)
        return Ok(record)

    def to_remote_row(self, record: AdherenceRecord) -> tuple[str, ...]:
        """Positional values in COLUMNS order, status derived."""
        return (
            record.route_number,
            record.sector,
            record.safety_technician,
            record.maintenance,
            record.production,
            record.guests,
            record.all_present.value,
            record.planned_date,
            record.actual_date,
            record.status.value,
        )

    def from_remote_row(self, values: Sequence[Any]) -> AdherenceRecord:
        """
        Build a record from one positional row.

        Short rows are padded with blanks. The remote STATUS cell is not
        trusted; status is recomputed from TODOS PRESENTES?.
        """
        cells = [_cell_text(v) for v in values[: len(COLUMNS)]]
        cells += [""] * (len(COLUMNS) - len(cells))
        named = dict(zip(FIELDS, cells))
        named.pop("status")
        named["all_present"] = normalize_presence(named["all_present"])
        return AdherenceRecord(**named)

    def from_route(
        self,
        route: Route,
        all_present: Any,
        actual_date: date | str | None = None,
    ) -> AdherenceRecord:
        """Adherence row for a route being confirmed."""
        return AdherenceRecord(
            route_number=route.route_number,
            sector=route.sector,
            safety_technician=route.safety_technician,
            maintenance=route.maintenance_representative,
            production=route.production_representative,
            guests=route.guests or "",
            all_present=normalize_presence(all_present),
            planned_date=route.route_date.isoformat(),
            actual_date=_format_date(actual_date),
        )
