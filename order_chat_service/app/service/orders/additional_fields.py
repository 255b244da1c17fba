"""
Validation of order additional fields against the catalog's declared schema.

A service declares its fields as `{name: {label, type, required, options}}`.
Supplied values are checked against that schema when the order is created
and stored as typed `AdditionalField` entries; nothing is trusted as opaque.
"""
import datetime
import math
from typing import Any, Callable, Dict, List

from order_chat_service.app.models import AdditionalField, AdditionalFieldType
from order_chat_service.app.service.exceptions import ValidationError
from order_chat_service.app.service.interfaces.catalog_client import CatalogFieldSpec, CatalogService
from order_chat_service.app.service.orders.models import AdditionalFieldInput

_TRUE_STRINGS = {"true", "yes", "1"}
_FALSE_STRINGS = {"false", "no", "0"}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_text(value: Any, spec: CatalogFieldSpec) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError("must be text")
    return str(value).strip()


def _coerce_number(value: Any, spec: CatalogFieldSpec) -> float:
    if isinstance(value, bool):
        raise ValueError("must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            raise ValueError("must be a number")
    if not isinstance(value, float):
        raise ValueError("must be a number")
    # nan and inf parse as floats but cannot be stored or compared
    if not math.isfinite(value):
        raise ValueError("must be a finite number")
    return value


def _coerce_date(value: Any, spec: CatalogFieldSpec) -> str:
    if isinstance(value, datetime.date):
        return value.isoformat()
    if not isinstance(value, str):
        raise ValueError("must be an ISO-8601 date")
    text = value.strip()
    try:
        return datetime.date.fromisoformat(text).isoformat()
    except ValueError:
        pass
    try:
        return datetime.datetime.fromisoformat(text).isoformat()
    except ValueError:
        raise ValueError("must be an ISO-8601 date")


def _coerce_select(value: Any, spec: CatalogFieldSpec) -> str:
    if not isinstance(value, str):
        raise ValueError("must be one of the listed options")
    choice = value.strip()
    if spec.options and choice not in spec.options:
        raise ValueError(f"must be one of {spec.options}")
    return choice


def _coerce_boolean(value: Any, spec: CatalogFieldSpec) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError("must be true or false")


def _coerce_file(value: Any, spec: CatalogFieldSpec) -> str:
    # File fields carry a reference (URL or storage key) to an already uploaded object.
    if not isinstance(value, str):
        raise ValueError("must be a file reference")
    return value.strip()


_COERCERS: Dict[str, Callable[[Any, CatalogFieldSpec], Any]] = {
    AdditionalFieldType.TEXT.value: _coerce_text,
    AdditionalFieldType.NUMBER.value: _coerce_number,
    AdditionalFieldType.DATE.value: _coerce_date,
    AdditionalFieldType.SELECT.value: _coerce_select,
    AdditionalFieldType.BOOLEAN.value: _coerce_boolean,
    AdditionalFieldType.FILE.value: _coerce_file,
}


def validate_additional_fields(service: CatalogService, supplied: List[AdditionalFieldInput]) -> List[AdditionalField]:
    """
    Checks `supplied` against `service.additional_fields`.

    Raises:
        ValidationError: naming `additional_fields.<name>` for a duplicate,
            unknown, missing required, or wrongly typed field.
    """
    schema = service.additional_fields
    seen: Dict[str, AdditionalFieldInput] = {}
    for item in supplied:
        name = item.field_name
        if name in seen:
            raise ValidationError(f"Additional field '{name}' was supplied more than once.", field=f"additional_fields.{name}")
        if name not in schema:
            raise ValidationError(f"Additional field '{name}' is not defined for service '{service.id}'.", field=f"additional_fields.{name}")
        seen[name] = item

    for name, spec in schema.items():
        if spec.required and (name not in seen or _is_blank(seen[name].field_value)):
            raise ValidationError(f"Additional field '{spec.label or name}' is required.", field=f"additional_fields.{name}")

    fields: List[AdditionalField] = []
    for name, item in seen.items():
        spec = schema[name]
        if _is_blank(item.field_value):
            continue # optional and left empty
        coercer = _COERCERS.get(spec.type)
        if coercer is None:
            raise ValidationError(f"Additional field '{name}' declares unsupported type '{spec.type}'.", field=f"additional_fields.{name}")
        try:
            value = coercer(item.field_value, spec)
        except ValueError as e:
            raise ValidationError(f"Additional field '{spec.label or name}' {e}.", field=f"additional_fields.{name}")
        fields.append(AdditionalField(field_name=name, field_value=value, field_type=spec.type))
    return fields
