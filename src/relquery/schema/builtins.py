"""Built-in content types shipped with relquery."""
from __future__ import annotations

from relquery.schema.registry import SchemaRegistry
from relquery.schema.types import EntityType, ScalarAttribute, ScalarType

# Links a localized entry to the entity it translates.
LOCALIZATION_TYPE = EntityType(
    name="localization",
    attributes=(
        ScalarAttribute("ref_id", ScalarType.STRING),
        ScalarAttribute("ref_type", ScalarType.STRING),
        ScalarAttribute("locale", ScalarType.STRING),
    ),
    collection_name="strapi_i18n_localizations",
    info={"name": "Localization"},
)

BUILTIN_TYPES: tuple[EntityType, ...] = (LOCALIZATION_TYPE,)


def register_builtin_types(registry: SchemaRegistry) -> None:
    """Register every built-in type the registry does not already hold."""
    for entity_type in BUILTIN_TYPES:
        if entity_type.name not in registry:
            registry.register(entity_type)
