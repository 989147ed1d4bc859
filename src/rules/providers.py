"""Catalog of known analytics provider SDKs for Go.

Each provider is one variant of the closed ``ProviderId`` set and carries its
own argument-role schema: how a client is constructed, which methods track
events, and where the event name, user id and properties live in the payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, get_args

ProviderId = Literal["segment", "mixpanel", "amplitude", "posthog", "snowplow"]

PayloadKind = Literal["struct", "event_batch"]

VALID_PROVIDER_IDS = frozenset(get_args(ProviderId))


@dataclass(frozen=True)
class TrackingMethod:
    """A client method that sends events.

    ``payload_index`` is the argument carrying the event(s);
    ``context_index`` is the argument holding a ``context.Context``, if any.
    """

    name: str
    payload_index: int
    payload: PayloadKind = "struct"
    context_index: int | None = None


@dataclass(frozen=True)
class StructEventShape:
    """An event built as a typed struct literal with named fields."""

    type_name: str
    event_field: str
    user_id_field: str | None = None
    property_fields: tuple[str, ...] = ()
    extra_fields_as_properties: bool = False


@dataclass(frozen=True)
class FactoryEventShape:
    """An event built by a positional factory call, e.g. ``mp.NewEvent(...)``."""

    method: str
    event_index: int
    user_id_index: int | None = None
    properties_index: int | None = None


@dataclass(frozen=True)
class PropertyBuilder:
    """A chained property container: ``pkg.NewProperties().Set(k, v)...``."""

    constructor: str
    setter: str
    typed_setters: bool = False


@dataclass(frozen=True)
class ProviderSignature:
    """Full argument-role schema for one provider."""

    provider: ProviderId
    import_paths: tuple[str, ...]
    package_name: str
    constructors: tuple[str, ...]
    methods: tuple[TrackingMethod, ...]
    event_shapes: tuple[StructEventShape, ...] = ()
    event_factories: tuple[FactoryEventShape, ...] = ()
    property_builder: PropertyBuilder | None = None
    value_wrappers: frozenset[str] = field(default_factory=frozenset)

    def method(self, name: str) -> TrackingMethod | None:
        for method in self.methods:
            if method.name == name:
                return method
        return None

    def event_shape(self, type_name: str) -> StructEventShape | None:
        for shape in self.event_shapes:
            if shape.type_name == type_name:
                return shape
        return None

    def event_factory(self, method: str) -> FactoryEventShape | None:
        for factory in self.event_factories:
            if factory.method == method:
                return factory
        return None

    def matches_import(self, import_path: str) -> bool:
        return any(
            import_path == prefix or import_path.startswith(f"{prefix}/")
            for prefix in self.import_paths
        )


PROVIDER_CATALOG: dict[ProviderId, ProviderSignature] = {
    "segment": ProviderSignature(
        provider="segment",
        import_paths=(
            "github.com/segmentio/analytics-go",
            "gopkg.in/segmentio/analytics-go.v3",
        ),
        package_name="analytics",
        constructors=("New", "NewWithConfig"),
        methods=(TrackingMethod(name="Enqueue", payload_index=0),),
        event_shapes=(
            StructEventShape(
                type_name="Track",
                event_field="Event",
                user_id_field="UserId",
                property_fields=("Properties",),
            ),
        ),
        property_builder=PropertyBuilder(
            constructor="NewProperties", setter="Set", typed_setters=True
        ),
    ),
    "mixpanel": ProviderSignature(
        provider="mixpanel",
        import_paths=("github.com/mixpanel/mixpanel-go",),
        package_name="mixpanel",
        constructors=("NewApiClient", "NewClient"),
        methods=(
            TrackingMethod(
                name="Track",
                payload_index=1,
                payload="event_batch",
                context_index=0,
            ),
        ),
        event_shapes=(
            StructEventShape(
                type_name="Event",
                event_field="Name",
                property_fields=("Properties",),
            ),
        ),
        event_factories=(
            FactoryEventShape(
                method="NewEvent",
                event_index=0,
                user_id_index=1,
                properties_index=2,
            ),
        ),
    ),
    "amplitude": ProviderSignature(
        provider="amplitude",
        import_paths=("github.com/amplitude/analytics-go/amplitude",),
        package_name="amplitude",
        constructors=("NewClient",),
        methods=(TrackingMethod(name="Track", payload_index=0),),
        event_shapes=(
            StructEventShape(
                type_name="Event",
                event_field="EventType",
                user_id_field="UserID",
                property_fields=("EventProperties", "EventOptions"),
            ),
        ),
    ),
    "posthog": ProviderSignature(
        provider="posthog",
        import_paths=("github.com/posthog/posthog-go",),
        package_name="posthog",
        constructors=("New", "NewWithConfig"),
        methods=(TrackingMethod(name="Enqueue", payload_index=0),),
        event_shapes=(
            StructEventShape(
                type_name="Capture",
                event_field="Event",
                user_id_field="DistinctId",
                property_fields=("Properties",),
            ),
        ),
        property_builder=PropertyBuilder(constructor="NewProperties", setter="Set"),
    ),
    "snowplow": ProviderSignature(
        provider="snowplow",
        import_paths=("github.com/snowplow/snowplow-golang-tracker",),
        package_name="tracker",
        constructors=("InitTracker",),
        methods=(TrackingMethod(name="TrackStructEvent", payload_index=0),),
        event_shapes=(
            StructEventShape(
                type_name="StructuredEvent",
                event_field="Action",
                extra_fields_as_properties=True,
            ),
        ),
        value_wrappers=frozenset(
            {"NewString", "NewFloat64", "NewInt64", "NewBool"}
        ),
    ),
}

if frozenset(PROVIDER_CATALOG) != VALID_PROVIDER_IDS:
    msg = "PROVIDER_CATALOG must define exactly one signature per ProviderId"
    raise RuntimeError(msg)


def provider_for_import(import_path: str) -> ProviderSignature | None:
    """Return the catalog entry whose import paths cover ``import_path``."""
    for signature in PROVIDER_CATALOG.values():
        if signature.matches_import(import_path):
            return signature
    return None


def _normalize_role_name(name: str) -> str:
    return name.replace("_", "").lower()


def _catalog_field_names(attr: str) -> frozenset[str]:
    names: set[str] = set()
    for signature in PROVIDER_CATALOG.values():
        for shape in signature.event_shapes:
            value = getattr(shape, attr)
            if isinstance(value, tuple):
                names.update(_normalize_role_name(v) for v in value)
            elif value:
                names.add(_normalize_role_name(value))
    return frozenset(names)


# Parameter-name vocabulary used when inferring custom wrapper roles. Seeded
# from the catalog's own field names so that a wrapper mirroring a provider's
# payload is recognised the same way.
EVENT_NAME_VOCABULARY: frozenset[str] = _catalog_field_names("event_field") | {
    "eventname",
    "eventtype",
    "eventkey",
    "action",
    "name",
}
USER_ID_VOCABULARY: frozenset[str] = _catalog_field_names("user_id_field") | {
    "userid",
    "distinctid",
    "anonymousid",
    "uid",
    "user",
}
PROPERTIES_VOCABULARY: frozenset[str] = _catalog_field_names("property_fields") | {
    "properties",
    "props",
    "params",
    "attributes",
    "attrs",
    "traits",
    "payload",
    "metadata",
    "data",
}


def role_for_parameter_name(name: str) -> str | None:
    """Classify a declared parameter name into a semantic role, if any."""
    normalized = _normalize_role_name(name)
    if normalized in USER_ID_VOCABULARY:
        return "user_id"
    if normalized in EVENT_NAME_VOCABULARY:
        return "event_name"
    if normalized in PROPERTIES_VOCABULARY:
        return "properties"
    return None


__all__ = [
    "EVENT_NAME_VOCABULARY",
    "PROPERTIES_VOCABULARY",
    "PROVIDER_CATALOG",
    "USER_ID_VOCABULARY",
    "VALID_PROVIDER_IDS",
    "FactoryEventShape",
    "PayloadKind",
    "PropertyBuilder",
    "ProviderId",
    "ProviderSignature",
    "StructEventShape",
    "TrackingMethod",
    "provider_for_import",
    "role_for_parameter_name",
]
