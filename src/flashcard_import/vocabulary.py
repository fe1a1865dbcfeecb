"""Version-specific field and model vocabularies.

Each Anki generation spells its stock note types and field names slightly
differently. All of that drift lives in the tables below; adding a variant
means adding a table, not a branch.
"""

from types import MappingProxyType
from typing import Dict, Mapping, Optional

from flashcard_import.data_objects import CardKind
from flashcard_import.package_models import ContainerVariant

EARLY = "early"
COMMON = "common"
FUTURE = "future"

VARIANT_TABLE_KEYS: Mapping[ContainerVariant, str] = MappingProxyType(
    {
        ContainerVariant.SUPPORTED_2_0: EARLY,
        ContainerVariant.SUPPORTED_2_1: COMMON,
        ContainerVariant.KNOWN_UNSUPPORTED_2_3: FUTURE,
    }
)

FIELD_NAME_TABLES: Mapping[str, Mapping[str, str]] = MappingProxyType(
    {
        EARLY: MappingProxyType(
            {
                "Front": "front",
                "Back": "back",
                "Text": "text",
                "Extra": "extra",
                "MyMedia": "media",
            }
        ),
        COMMON: MappingProxyType(
            {
                "Front": "front",
                "Back": "back",
                "Text": "text",
                "Extra": "extra",
                "Back Extra": "extra",
                "Header": "header",
                "Image": "image",
                "MyMedia": "media",
            }
        ),
        FUTURE: MappingProxyType(
            {
                "Front": "front",
                "Back": "back",
                "Text": "text",
                "Extra": "extra",
                "Back Extra": "extra",
                "Header": "header",
                "Image": "image",
                "Occlusion": "image",
                "MyMedia": "media",
            }
        ),
    }
)

MODEL_NAME_TABLES: Mapping[str, Mapping[str, CardKind]] = MappingProxyType(
    {
        EARLY: MappingProxyType(
            {
                "Basic": CardKind.BASIC,
                "Basic (and reversed card)": CardKind.BASIC_REVERSED,
                "Cloze": CardKind.CLOZE,
                "Basic (type in the answer)": CardKind.BASIC,
            }
        ),
        COMMON: MappingProxyType(
            {
                "Basic": CardKind.BASIC,
                "Basic (and reversed card)": CardKind.BASIC_REVERSED,
                "Basic (optional reversed card)": CardKind.BASIC_REVERSED,
                "Basic (type in the answer)": CardKind.BASIC,
                "Cloze": CardKind.CLOZE,
                "Image Occlusion": CardKind.IMAGE_OCCLUSION,
            }
        ),
        FUTURE: MappingProxyType(
            {
                "Basic": CardKind.BASIC,
                "Basic (and reversed card)": CardKind.BASIC_REVERSED,
                "Cloze": CardKind.CLOZE,
                "Image Occlusion Enhanced": CardKind.IMAGE_OCCLUSION,
            }
        ),
    }
)


class FieldNameMapper:
    def __init__(
        self,
        field_tables: Mapping[str, Mapping[str, str]] = FIELD_NAME_TABLES,
        model_tables: Mapping[str, Mapping[str, CardKind]] = MODEL_NAME_TABLES,
    ) -> None:
        self.field_tables = field_tables
        self.model_tables = model_tables

    @staticmethod
    def table_key(variant: Optional[ContainerVariant]) -> str:
        if variant is None:
            return COMMON
        return VARIANT_TABLE_KEYS.get(variant, COMMON)

    def map_fields(
        self, variant: Optional[ContainerVariant], fields: Mapping[str, str]
    ) -> Dict[str, str]:
        """Rename external field names to canonical roles, keeping order.

        When two names land on the same role the first non-empty value wins.
        """
        table = self.field_tables[self.table_key(variant)]
        mapped: Dict[str, str] = {}
        for name, value in fields.items():
            role = table.get(name) or name.lower()
            if role not in mapped or (not mapped[role] and value):
                mapped[role] = value
        return mapped

    def model_kind(
        self, variant: Optional[ContainerVariant], model_name: Optional[str]
    ) -> Optional[CardKind]:
        if not model_name:
            return None
        return self.model_tables[self.table_key(variant)].get(model_name)


DEFAULT_MAPPER = FieldNameMapper()
