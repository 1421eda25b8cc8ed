from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, Field

ALL_FIELDS_SENTINEL = "__ALL__"
EXISTENCE_CHECK_SENTINEL = "__EXISTENCE_CHECK__"


class Position(BaseModel):
    # Both 0-based; `character` counts characters, not bytes.
    line: int = 0
    character: int = 0

    def as_tuple(self) -> tuple[int, int]:
        return (self.line, self.character)


class Range(BaseModel):
    start: Position
    end: Position


class UsageLocation(BaseModel):
    """
    Everything one source file does with one dictionary key.

    `keys_used` holds the dotted field paths that were resolved statically.
    Paths that could not be determined are kept apart in `unknown_prefixes`
    ("" meaning the whole dictionary). `existence_only` is set when the file
    calls the accessor without binding its result at all.
    """

    file_path: str
    declaration_range: Range
    keys_used: Set[str] = Field(default_factory=set)
    unknown_prefixes: Set[str] = Field(default_factory=set)
    existence_only: bool = False
    key_locations: Dict[str, List[Range]] = Field(default_factory=dict)

    def sentinel_keys(self) -> Set[str]:
        """Flattened view using the string sentinels editors expect."""
        keys = set(self.keys_used)
        for prefix in self.unknown_prefixes:
            keys.add(f"{prefix}.{ALL_FIELDS_SENTINEL}" if prefix else ALL_FIELDS_SENTINEL)
        if self.existence_only:
            keys.add(EXISTENCE_CHECK_SENTINEL)
        return keys

    def uses_all_fields(self) -> bool:
        return "" in self.unknown_prefixes

    def is_field_used(self, field_path: str) -> bool:
        if field_path in self.keys_used:
            return True
        for prefix in self.unknown_prefixes:
            if not prefix or field_path == prefix or field_path.startswith(prefix + "."):
                return True
        return False


class ResolutionOrigin(BaseModel):
    dictionary_key: str
    field_path: List[str] = Field(default_factory=list)
    # Import specifier of the accessor, e.g. "react-intlayer" or "next-intlayer/server".
    module_source: Optional[str] = None


class DictionaryRecord(BaseModel):
    key: str
    content: Any = None
    file_path: Optional[str] = Field(default=None, alias="filePath")
    location: Literal["local", "remote", "local&remote"] = "local"

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def is_remote_only(self) -> bool:
        return self.location == "remote"


class ProjectConfig(BaseModel):
    base_dir: str
    unmerged_dictionaries_dir: str
    dictionaries_dir: str
    default_locale: str = "en"
    cms_url: str = ""


class HoverEntry(BaseModel):
    kind: Literal["remote", "translation", "object", "value"]
    file_path: Optional[str] = None
    dashboard_url: Optional[str] = None
    translations: Dict[str, Any] = Field(default_factory=dict)
    json_text: Optional[str] = None
    value: Any = None


class HoverInfo(BaseModel):
    dictionary_key: str
    path: str
    type: str
    entries: List[HoverEntry] = Field(default_factory=list)


class DefinitionTarget(BaseModel):
    file_path: str
    range: Range
    # False when the field was not found and the target is the file start.
    exact: bool = True


class LocationLink(BaseModel):
    file_path: str
    range: Range


class UnusedKey(BaseModel):
    key: str
    range: Range
    message: str


class UnusedReport(BaseModel):
    dictionary_key: str
    dictionary_used: bool
    unused: List[UnusedKey] = Field(default_factory=list)


class InlineDecoration(BaseModel):
    line: int
    text: str


class AnalysisRequest(BaseModel):
    file_path: str
    # Unsaved editor buffer; the file on disk is read when omitted.
    text: Optional[str] = None
    line: int = 0
    character: int = 0
