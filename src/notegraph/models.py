"""Pydantic models for vault files, graphs, bases and conversations.

Models that form the JSON contract of the CLI and the MCP server serialize
with camelCase aliases (``model_dump(by_alias=True)``) and accept either
spelling on input.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for models exchanged with callers (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─────────────────────────────────────────────────────────────────────────────
# Storage
# ─────────────────────────────────────────────────────────────────────────────


class FileStat(ApiModel):
    size: int = 0
    ctime: float = 0  # Epoch milliseconds
    mtime: float = 0  # Epoch milliseconds


class VaultFile(ApiModel):
    """A file listed from a vault."""

    path: str  # Vault-relative, forward slashes
    name: str  # File name without extension
    extension: str  # Including the dot, e.g. ".md"
    stat: FileStat = Field(default_factory=FileStat)


class InlineField(ApiModel):
    """A Dataview-style `key:: value` line."""

    key: str
    value: str
    line: int  # 1-based


class NoteContent(ApiModel):
    """A note read from storage. Built fresh on every read."""

    path: str
    content: str  # Raw text including front matter
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    body: str = ""
    tags: list[str] = Field(default_factory=list)
    links: list[str] = Field(default_factory=list)  # Raw, unresolved targets
    embeds: list[str] = Field(default_factory=list)
    inline_fields: list[InlineField] = Field(default_factory=list)


class VaultInfo(ApiModel):
    name: str
    path: str
    note_count: int
    file_count: int


# ─────────────────────────────────────────────────────────────────────────────
# Link graph
# ─────────────────────────────────────────────────────────────────────────────


class GraphNode(ApiModel):
    """A note in a graph snapshot."""

    model_config = ConfigDict(frozen=True)

    path: str
    title: str
    tags: tuple[str, ...] = ()
    outgoing: tuple[str, ...] = ()  # Resolved target paths
    incoming: tuple[str, ...] = ()  # Resolved source paths
    embeds: tuple[str, ...] = ()  # Raw embed targets


class VaultGraph(ApiModel):
    """An immutable snapshot of the vault's resolved link structure."""

    model_config = ConfigDict(frozen=True)

    nodes: dict[str, GraphNode] = Field(default_factory=dict)
    unresolved_links: frozenset[str] = frozenset()
    build_time_ms: float = 0.0


class NodeSummary(ApiModel):
    path: str
    title: str
    tags: list[str] = Field(default_factory=list)
    outgoing_count: int | None = None
    incoming_count: int | None = None


class OutgoingLinks(ApiModel):
    path: str
    outgoing_count: int
    links: list[NodeSummary] = Field(default_factory=list)


class Backlinks(ApiModel):
    path: str
    backlink_count: int
    backlinks: list[NodeSummary] = Field(default_factory=list)


class NeighborsResult(ApiModel):
    path: str
    depth: int
    direction: Literal["outgoing", "incoming", "both"]
    neighbor_count: int
    neighbors: list[NodeSummary] = Field(default_factory=list)


class PathSteps(ApiModel):
    length: int
    steps: list[str]


class PathResult(ApiModel):
    source: str = Field(serialization_alias="from")
    target: str = Field(serialization_alias="to")
    paths_found: int
    shortest_length: int | None = None
    paths: list[PathSteps] = Field(default_factory=list)


class OrphansResult(ApiModel):
    orphan_count: int
    orphans: list[NodeSummary] = Field(default_factory=list)


class LinkCount(ApiModel):
    path: str
    incoming_count: int | None = None
    outgoing_count: int | None = None


class GraphStats(ApiModel):
    total_nodes: int
    total_edges: int
    orphan_count: int
    unresolved_count: int
    avg_outgoing: float
    avg_incoming: float
    most_linked: list[LinkCount] = Field(default_factory=list)
    most_linking: list[LinkCount] = Field(default_factory=list)
    build_time_ms: float = 0.0


# ─────────────────────────────────────────────────────────────────────────────
# Bases
# ─────────────────────────────────────────────────────────────────────────────


class OrderSpec(ApiModel):
    property: str
    direction: Literal["asc", "desc"] = "asc"


class GroupBySpec(ApiModel):
    property: str
    direction: Literal["asc", "desc"] = "asc"


class ViewConfig(ApiModel):
    """A named, independently filtered/sorted/limited projection of a base."""

    model_config = ConfigDict(extra="allow")

    type: str = "table"  # table | list | cards
    name: str = "Default"
    filters: Any = None
    order: list[OrderSpec] | None = None
    limit: int | None = None
    columns: list[str] | None = None
    group_by: GroupBySpec | None = None

    @field_validator("order", mode="before")
    @classmethod
    def _accept_bare_properties(cls, value: Any) -> Any:
        # Obsidian writes `order: [file.name, status]`; treat bare names as ascending.
        if isinstance(value, list):
            return [{"property": item} if isinstance(item, str) else item for item in value]
        return value


class BaseDefinition(ApiModel):
    """The content of a .base file."""

    model_config = ConfigDict(extra="allow")

    filters: Any = None  # str | {and|or|not: [...]}
    formulas: dict[str, str] | None = None
    properties: dict[str, Any] | None = None  # Display hints only
    views: list[ViewConfig] = Field(default_factory=list)

    @field_validator("formulas", mode="before")
    @classmethod
    def _formulas_as_text(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(name): str(formula) for name, formula in value.items()}
        return value


class NoteContext(ApiModel):
    """Per-note record fed to the filter evaluator. Read-only."""

    model_config = ConfigDict(frozen=True)

    path: str
    name: str
    folder: str
    extension: str
    size: int = 0
    ctime: float = 0
    mtime: float = 0
    tags: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    properties: dict[str, Any] = Field(default_factory=dict)


class NoteRow(ApiModel):
    path: str
    name: str
    properties: dict[str, Any] = Field(default_factory=dict)


class BaseQueryResult(ApiModel):
    documents: list[NoteRow] = Field(default_factory=list)
    total: int = 0  # Matches before the view limit
    view: ViewConfig


class BaseSummary(ApiModel):
    path: str
    name: str
    size: int
    modified: str  # ISO timestamp


class BaseFile(ApiModel):
    """A .base file and its parsed definition."""

    path: str
    definition: BaseDefinition
    view_count: int = 0
    has_filters: bool = False
    has_formulas: bool = False


# ─────────────────────────────────────────────────────────────────────────────
# Conversations
# ─────────────────────────────────────────────────────────────────────────────


class AISource(str, Enum):
    """Assistants recognized in conversation exports."""

    CLAUDE = "Claude"
    CHATGPT = "ChatGPT"
    PERPLEXITY = "Perplexity"
    MISTRAL = "Mistral"
    DEEPSEEK = "DeepSeek"
    GEMINI = "Gemini"


class ConversationCallout(ApiModel):
    type: str  # NOTE, INFO, TIP, ...
    title: str = ""
    content: str = ""


class ConversationMessage(ApiModel):
    role: Literal["user", "assistant"]
    speaker: str  # "User", "Claude", "ChatGPT", ...
    content: str
    callouts: list[ConversationCallout] = Field(default_factory=list)


class ConversationMetadata(ApiModel):
    is_conversation: bool = False
    source: AISource | None = None
    message_count: int = 0
    user_message_count: int = 0
    assistant_message_count: int = 0
    speakers: list[str] = Field(default_factory=list)
    has_callouts: bool = False
    callout_types: list[str] = Field(default_factory=list)


class ConversationSummary(ApiModel):
    path: str
    title: str
    source: AISource | None = None
    created: str | None = None
    updated: str | None = None
    message_count: int = 0
    speakers: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    callout_types: list[str] = Field(default_factory=list)


class ConversationSearchResult(ApiModel):
    result_count: int = 0
    filters: dict[str, Any] = Field(default_factory=dict)
    conversations: list[ConversationSummary] = Field(default_factory=list)


class ConversationAnalysis(ApiModel):
    path: str
    is_conversation: bool
    source: AISource | None = None
    title: str | None = None
    created: str | None = None
    updated: str | None = None
    tags: list[str] = Field(default_factory=list)
    message_count: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    speakers: list[str] = Field(default_factory=list)
    word_count: int = 0
    avg_message_length: int = 0
    has_callouts: bool = False
    callout_types: list[str] = Field(default_factory=list)
    callout_count: int = 0
    messages: list[ConversationMessage] = Field(default_factory=list)


class ConversationStats(ApiModel):
    total_conversations: int = 0
    total_messages: int = 0
    avg_messages_per_conversation: int = 0
    by_source: dict[str, int] = Field(default_factory=dict)
    by_month: dict[str, int] = Field(default_factory=dict)
