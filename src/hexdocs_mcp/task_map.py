"""Curated "common task" entries inferred from what a package index contains.

Each rule fires when any of its trigger names is present, then resolves
its entrypoints by exact name against the index. Rules are evaluated in
declaration order and never affect each other; a rule that resolves no
entrypoints is dropped.
"""

from hexdocs_mcp.models import (
    Entrypoint,
    GuideEntry,
    ModuleEntry,
    TaskEntry,
    TaskMapEntry,
)

# trigger: names whose presence fires the rule
# modules / tasks / guides: entrypoints resolved in that order
# first_guide: only the first guide present is used
_TASK_RULES: list[dict] = [
    {
        "id": "getting-started",
        "title": "Get started",
        "description": "Install and configure the library.",
        "trigger": {"guides": ["getting-started", "readme"]},
        "guides": ["getting-started", "readme"],
        "first_guide": True,
    },
    {
        "id": "migrations",
        "title": "Run database migrations",
        "description": "Create and apply schema changes safely.",
        "trigger": {
            "modules": ["Ecto.Migration", "Ecto.Migrator"],
            "tasks": ["mix ecto.migrate"],
        },
        "modules": ["Ecto.Migration", "Ecto.Migrator"],
        "tasks": ["mix ecto.gen.migration", "mix ecto.migrate", "mix ecto.rollback"],
        "guides": ["safe-ecto-migrations"],
    },
    {
        "id": "repo-setup",
        "title": "Configure and manage the repo",
        "description": "Connect to the database and manage lifecycle tasks.",
        "trigger": {"modules": ["Ecto.Repo"], "tasks": ["mix ecto.create"]},
        "modules": ["Ecto.Repo"],
        "tasks": ["mix ecto.create", "mix ecto.drop", "mix ecto.reset"],
        "guides": ["getting-started"],
    },
    {
        "id": "schemas",
        "title": "Define schemas and validate data",
        "description": "Map data structures and validate changes.",
        "trigger": {"modules": ["Ecto.Schema", "Ecto.Changeset"]},
        "modules": ["Ecto.Schema", "Ecto.Changeset"],
        "guides": ["getting-started"],
    },
    {
        "id": "queries",
        "title": "Query data",
        "description": "Build composable, secure queries.",
        "trigger": {"modules": ["Ecto.Query"]},
        "modules": ["Ecto.Query"],
        "guides": ["getting-started"],
    },
]


def build_task_map(
    modules: list[ModuleEntry],
    guides: list[GuideEntry],
    tasks: list[TaskEntry],
    rules: list[dict] | None = None,
) -> list[TaskMapEntry]:
    """Evaluate the task rules against an index's modules, guides and tasks."""
    module_by_name = {m.name: m for m in modules}
    task_by_title = {t.title: t for t in tasks}
    guide_by_id = {g.id: g for g in guides}

    def fires(trigger: dict) -> bool:
        return (
            any(name in module_by_name for name in trigger.get("modules", []))
            or any(title in task_by_title for title in trigger.get("tasks", []))
            or any(gid in guide_by_id for gid in trigger.get("guides", []))
        )

    def entrypoints(rule: dict) -> list[Entrypoint]:
        points: list[Entrypoint] = []
        for name in rule.get("modules", []):
            if module := module_by_name.get(name):
                points.append(Entrypoint(label=module.name, url=module.url))
        for title in rule.get("tasks", []):
            if task := task_by_title.get(title):
                points.append(Entrypoint(label=task.title, url=task.url))
        guide_ids = [gid for gid in rule.get("guides", []) if gid in guide_by_id]
        if rule.get("first_guide"):
            guide_ids = guide_ids[:1]
        for gid in guide_ids:
            guide = guide_by_id[gid]
            points.append(Entrypoint(label=guide.title, url=guide.url))

        seen: set[str] = set()
        unique = []
        for point in points:
            if point.url not in seen:
                seen.add(point.url)
                unique.append(point)
        return unique

    task_map: list[TaskMapEntry] = []
    for rule in _TASK_RULES if rules is None else rules:
        if not fires(rule["trigger"]):
            continue
        points = entrypoints(rule)
        if not points:
            continue
        task_map.append(
            TaskMapEntry(
                id=rule["id"],
                title=rule["title"],
                description=rule["description"],
                entrypoints=points,
            )
        )
    return task_map
