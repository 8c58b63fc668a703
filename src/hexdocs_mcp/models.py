"""Structured records produced by the index builder and signature extractor.

All records are built once per request and never mutated afterwards.
"""

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Anchor(_Record):
    id: str
    anchor: str


class ModuleEntry(_Record):
    name: str
    summary: str | None = None
    url: str
    markdown_url: str
    deprecated: bool = False
    group: str | None = None


class GuideEntry(_Record):
    id: str
    title: str
    group: str | None = None
    url: str
    headers: list[Anchor] | None = None


class TaskEntry(_Record):
    id: str
    title: str
    url: str
    deprecated: bool = False
    group: str | None = None
    sections: list[Anchor] | None = None


class Entrypoint(_Record):
    label: str
    url: str


class TaskMapEntry(_Record):
    id: str
    title: str
    description: str
    entrypoints: list[Entrypoint]


class IndexSource(_Record):
    api_reference: str
    sidebar_items: str | None = None


class PackageIndex(_Record):
    package: str
    version: str | None = None
    is_versioned: bool
    base_path: str
    origin: str
    last_modified: str | None = None
    source: IndexSource
    modules: list[ModuleEntry] = Field(default_factory=list)
    guides: list[GuideEntry] = Field(default_factory=list)
    tasks: list[TaskEntry] = Field(default_factory=list)
    task_map: list[TaskMapEntry] = Field(default_factory=list)
    generated_at: str

    def to_json_dict(self) -> dict:
        """JSON-ready mapping with unset optional fields left out."""
        return self.model_dump(mode="json", exclude_none=True)


class OptionEntry(_Record):
    key: str
    required: bool
    type: str


class SpecEntry(_Record):
    name: str
    spec: str
    opts_type: str | None = None
