"""
Schema building and validation on top of pydantic.

Resources are registered with either a pydantic model class or a
declarative mapping of field definitions:

    {"name": str, "amount": (int, 0), "tags": (list[str], None)}

A bare type means "required"; a `(type, default)` tuple makes the field
optional. Mappings become strict models that reject unknown fields, so
`{"amount": True}` is not silently accepted as `1`.

`validate()` is the single entry point used by the dispatcher; it turns a
`pydantic.ValidationError` into a `ValidationFailure` with JSON-safe
per-field details.
"""

from typing import Any, Dict, List, Mapping, Type

from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from errors import ConfigurationError, ValidationFailure


STRICT_CONFIG = ConfigDict(strict=True, extra="forbid")


def build_schema(name: str, schema: Any) -> Type[BaseModel]:
    """Return a model class for `schema` (model classes pass through)."""

    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema
    if not isinstance(schema, Mapping):
        raise ConfigurationError(
            f"Schema of resource '{name}' must be a pydantic model or a mapping"
        )
    fields: Dict[str, Any] = {}
    for field, definition in schema.items():
        if isinstance(definition, tuple):
            if len(definition) != 2:
                raise ConfigurationError(
                    f"Field '{field}' of resource '{name}' must be a type or a (type, default) pair"
                )
            fields[field] = definition
        else:
            fields[field] = (definition, ...)
    model_name = "".join(part.capitalize() for part in name.replace("-", "_").split("_")) or "Resource"
    return create_model(model_name, __config__=STRICT_CONFIG, **fields)


def declares_field(model: Type[BaseModel], field: str) -> bool:
    return field in model.model_fields


def format_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    """Reduce pydantic errors to `{field, message, type}` dicts."""

    details = []
    for err in exc.errors(include_url=False):
        details.append({
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        })
    return details


def validate(model: Type[BaseModel], candidate: Any) -> BaseModel:
    """Validate `candidate` against `model` or raise `ValidationFailure`."""

    if not isinstance(candidate, Mapping):
        raise ValidationFailure([{
            "field": "",
            "message": "Input should be an object",
            "type": "dict_type",
        }])
    try:
        return model.model_validate(dict(candidate))
    except ValidationError as e:
        raise ValidationFailure(format_errors(e)) from e


def validate_partial(model: Type[BaseModel], candidate: Any) -> None:
    """Check only the fields present in `candidate`; missing ones are fine.

    Used by partial updates to reject bad values before the stored record
    is fetched. The merged record still goes through `validate_payload`.
    """

    try:
        validate(model, candidate)
    except ValidationFailure as e:
        errors = [err for err in e.errors if err["type"] != "missing"]
        if errors:
            raise ValidationFailure(errors) from e


def validate_payload(model: Type[BaseModel], candidate: Any) -> Dict[str, Any]:
    """Validate a record payload and return the JSON-ready values to store.

    Defaults of fields the caller did not send are filled in, so every
    stored payload carries the full declared shape.
    """

    return validate(model, candidate).model_dump(mode="json")
