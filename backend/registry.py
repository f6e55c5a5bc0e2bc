"""
Resource registry: which resources exist, their schemas and options.

A single `ResourceRegistry` is built at start-up (see `resources.py`) and
handed to the dispatcher and the view formatter. Registration is expected
to finish before requests are served; the registry is read-only after that.

View definitions are accepted in three shapes and normalised here into
tagged variants so the formatter never inspects runtime types:

    callable          -> TransformView
    list/tuple of str -> FieldListView
    mapping str->str  -> RenameMapView
"""

from typing import Annotated, Any, Callable, Dict, List, Literal, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from errors import ConfigurationError
from validation import build_schema


class TransformView(BaseModel):
    kind: Literal["transform"] = "transform"
    transform: Callable[[Dict[str, Any]], Any]


class FieldListView(BaseModel):
    kind: Literal["fields"] = "fields"
    field_names: List[str]


class RenameMapView(BaseModel):
    kind: Literal["rename"] = "rename"
    mapping: Dict[str, str]


View = Annotated[Union[TransformView, FieldListView, RenameMapView], Field(discriminator="kind")]


def build_view(resource: str, name: str, spec: Any) -> View:
    if isinstance(spec, (TransformView, FieldListView, RenameMapView)):
        return spec
    if callable(spec):
        return TransformView(transform=spec)
    if isinstance(spec, (list, tuple)) and all(isinstance(f, str) for f in spec):
        return FieldListView(field_names=list(spec))
    if isinstance(spec, Mapping) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in spec.items()
    ):
        return RenameMapView(mapping=dict(spec))
    raise ConfigurationError(f"View '{name}' of resource '{resource}' has an unsupported definition")


class ResourceOptions(BaseModel):
    """Per-resource options.

    `single`: at most one record per user; CREATE turns into REPLACE when a
    record already exists and LIST returns that record instead of a list.
    `views`: named output shapes, see module docstring.
    """

    model_config = ConfigDict(frozen=True)

    single: bool = False
    views: Optional[Dict[str, View]] = None


class ResourceDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    schema_model: Type[BaseModel]
    options: ResourceOptions = Field(default_factory=ResourceOptions)


class ResourceRegistry:
    """Name -> definition table.

    `get_schema`, `get_options` and `get_definition` raise
    `ConfigurationError` while nothing has been registered at all; an
    unknown name on a populated registry simply returns None.
    """

    def __init__(self):
        self._definitions: Optional[Dict[str, ResourceDefinition]] = None

    def register(
        self,
        name: str,
        schema: Any,
        options: Union[ResourceOptions, Mapping[str, Any], None] = None,
    ) -> ResourceDefinition:
        if isinstance(options, ResourceOptions):
            resolved = options
        else:
            raw = dict(options or {})
            unknown = set(raw) - {"single", "views"}
            if unknown:
                raise ConfigurationError(
                    f"Unknown options for resource '{name}': {', '.join(sorted(unknown))}"
                )
            views = raw.get("views")
            if views is not None:
                if not isinstance(views, Mapping):
                    raise ConfigurationError(f"Views of resource '{name}' must be a mapping")
                views = {view: build_view(name, view, spec) for view, spec in views.items()}
            resolved = ResourceOptions(single=bool(raw.get("single", False)), views=views)

        definition = ResourceDefinition(
            name=name,
            schema_model=build_schema(name, schema),
            options=resolved,
        )
        if self._definitions is None:
            self._definitions = {}
        self._definitions[name] = definition
        return definition

    def get_definition(self, name: str) -> Optional[ResourceDefinition]:
        if self._definitions is None:
            raise ConfigurationError("No resources are registered")
        return self._definitions.get(name)

    def get_schema(self, name: str) -> Optional[Type[BaseModel]]:
        definition = self.get_definition(name)
        return definition.schema_model if definition else None

    def get_options(self, name: str) -> Optional[ResourceOptions]:
        definition = self.get_definition(name)
        return definition.options if definition else None

    def names(self) -> List[str]:
        return sorted(self._definitions or {})

    def __contains__(self, name: str) -> bool:
        return name in (self._definitions or {})
