"""CLI entry point - thin adapter over lexitree-core."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Coroutine, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, NamedTuple, NoReturn, TypeVar

import typer
from pydantic import ValidationError
from rich import print as rprint
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from lexitree_core import VERSION
from lexitree_core.completeness import (
    CompletenessCache,
    classify_leaf,
    compute_stats,
)
from lexitree_core.config.settings import Settings, get_settings
from lexitree_core.editing import (
    add_target_language,
    create_project,
    export_translation,
    remove_target_language,
    rename_project,
    set_master_value,
    set_translation,
)
from lexitree_core.keypath import (
    MISSING,
    InvalidDocumentError,
    build_key_tree,
    flatten_keys,
    get_value,
)
from lexitree_core.membership import MembershipService
from lexitree_core.ports.membership import MembershipError
from lexitree_core.ports.observability import LogSinkProtocol
from lexitree_core.ports.storage import StorageError
from lexitree_core.ports.sync import SyncError
from lexitree_core.ports.translation import TranslationError
from lexitree_core.sync import DualStoreSync
from lexitree_core.translation import suggest_translation
from lexitree_core.util.logging import configure_logging
from lexitree_io.shared.sqlite import SqliteSharedStore
from lexitree_io.storage.filesystem import FileSystemProjectStore
from lexitree_io.storage.identity import FileSystemIdentityProvider
from lexitree_io.storage.log_sink import build_log_sink
from lexitree_io.translation.azure import AzureTranslator
from lexitree_schemas.config import LoggingConfig, LogSinkConfig
from lexitree_schemas.exit_codes import DOMAIN_PREFIXES, ExitCode, resolve_exit_code
from lexitree_schemas.identity import Identity
from lexitree_schemas.membership import InviteCode, JoinResult
from lexitree_schemas.primitives import (
    JsonValue,
    LeafStatus,
    LogSinkType,
    ProjectRefKind,
    ProjectRole,
)
from lexitree_schemas.project import (
    EditingSession,
    KeyNode,
    PersistResult,
    Project,
    ProjectRef,
    SharedProject,
)
from lexitree_schemas.responses import ApiResponse, ErrorResponse, MetaInfo
from lexitree_schemas.stats import ProjectStatsResult

DATA_DIR_OPTION = typer.Option(
    None, "--data-dir", help="Override the lexitree data directory"
)
SHARED_DB_OPTION = typer.Option(
    None, "--shared-db", help="Override the shared store database path"
)
JSON_OPTION = typer.Option(False, "--json", help="Output as a JSON response")
LANGUAGE_OPTION = typer.Option(
    None, "--language", "-l", help="Target language (master when omitted)"
)
PROJECT_ARGUMENT = typer.Argument(..., help="Project identifier")

PROFILE_FILE = "profile.json"
EVENT_LOG_FILE = Path("logs") / "events.jsonl"

_STATUS_MARKERS = {
    LeafStatus.COMPLETE: "[green]●[/green]",
    LeafStatus.PARTIAL: "[yellow]◐[/yellow]",
    LeafStatus.MISSING: "[red]○[/red]",
}

app = typer.Typer(
    help="Hierarchical localization manager",
    no_args_is_help=True,
)
profile_app = typer.Typer(help="Manage the local user profile", no_args_is_help=True)
project_app = typer.Typer(help="Manage projects", no_args_is_help=True)
lang_app = typer.Typer(help="Manage target languages", no_args_is_help=True)
shared_app = typer.Typer(help="Browse shared projects", no_args_is_help=True)
invite_app = typer.Typer(help="Manage invite codes", no_args_is_help=True)
app.add_typer(profile_app, name="profile")
app.add_typer(project_app, name="project")
app.add_typer(lang_app, name="lang")
app.add_typer(shared_app, name="shared")
app.add_typer(invite_app, name="invite")

ResponseT = TypeVar("ResponseT")
ResultT = TypeVar("ResultT")


class _ConfigError(Exception):
    """Raised for CLI configuration issues."""


class _Runtime(NamedTuple):
    settings: Settings
    project_store: FileSystemProjectStore
    identity_provider: FileSystemIdentityProvider
    shared_store: SqliteSharedStore
    log_sink: LogSinkProtocol
    sync: DualStoreSync
    membership: MembershipService


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Path | None = DATA_DIR_OPTION,
    shared_db: Path | None = SHARED_DB_OPTION,
) -> None:
    """Lexitree CLI."""
    settings = get_settings()
    overrides: dict[str, Path] = {}
    if data_dir is not None:
        overrides["data_dir"] = data_dir
    if shared_db is not None:
        overrides["shared_db"] = shared_db
    if overrides:
        settings = settings.model_copy(update=overrides)
    configure_logging(settings.log_level, settings.log_file)
    ctx.obj = settings


@app.command()
def version() -> None:
    """Display version information."""
    rprint(f"[bold]lexitree[/bold] v{VERSION}")


# ---- profile ----


@profile_app.command("show")
def profile_show(ctx: typer.Context) -> None:
    """Show the local identity and profile."""
    runtime = _build_runtime(ctx)
    identity = _execute(runtime.identity_provider.get_identity())
    table = Table.grid(padding=(0, 1))
    table.add_column(justify="right", style="bold")
    table.add_column()
    table.add_row("User ID", identity.user_id)
    table.add_row("Email", identity.email or "[dim]not set[/dim]")
    table.add_row(
        "Name", escape(identity.name) if identity.name else "[dim]not set[/dim]"
    )
    rprint(table)


@profile_app.command("set")
def profile_set(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Profile email"),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
) -> None:
    """Record the profile required for sharing and joining projects."""
    runtime = _build_runtime(ctx)
    identity = _execute(runtime.identity_provider.set_profile(email, name))
    rprint(f"Profile saved for [bold]{escape(identity.email or email)}[/bold]")


# ---- project ----


@project_app.command("import")
def project_import(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Master JSON document to import"),
    name: str | None = typer.Option(None, "--name", "-n", help="Project name"),
    master_language: str | None = typer.Option(
        None, "--master-language", "-m", help="Master language code"
    ),
) -> None:
    """Create a local project from a master JSON document."""
    runtime = _build_runtime(ctx)
    project = _execute(
        _import_async(runtime, path, name or path.stem, master_language)
    )
    leaf_count = len(flatten_keys(project.master_data))
    rprint(
        f"Imported [bold]{escape(project.name)}[/bold] ({project.id}) with "
        f"{leaf_count} keys, master language {project.master_language}"
    )


@project_app.command("list")
def project_list(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """List local-only projects, most recently modified first."""
    runtime = _build_runtime(ctx)
    projects = _execute(_list_local_async(runtime), json_output=json_output)
    if json_output:
        response: ApiResponse[list[Project]] = ApiResponse(
            data=projects, error=None, meta=MetaInfo(timestamp=_now_timestamp())
        )
        print(response.model_dump_json())
        return
    if not projects:
        rprint("[dim]No local projects[/dim]")
        return
    table = Table(title="Local projects")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Master")
    table.add_column("Targets")
    table.add_column("Modified")
    for project in projects:
        table.add_row(
            project.id,
            escape(project.name),
            project.master_language,
            ", ".join(project.target_languages) or "-",
            project.last_modified,
        )
    rprint(table)


@project_app.command("rename")
def project_rename(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    name: str = typer.Argument(..., help="New project name"),
) -> None:
    """Rename a project."""
    runtime = _build_runtime(ctx)
    result = _execute(
        _edit_async(runtime, project_id, lambda project: rename_project(project, name))
    )
    _report_persist(result)


@project_app.command("delete")
def project_delete(ctx: typer.Context, project_id: str = PROJECT_ARGUMENT) -> None:
    """Delete a project; shared projects can only be deleted by their owner."""
    runtime = _build_runtime(ctx)
    _execute(_delete_async(runtime, project_id))
    rprint(f"Deleted project {project_id}")


@project_app.command("export")
def project_export(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    language: str = typer.Argument(..., help="Language to export"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write to a file instead of stdout"
    ),
) -> None:
    """Export one language's document as JSON."""
    runtime = _build_runtime(ctx)
    session = _execute(_open_async(runtime, project_id))
    try:
        payload = export_translation(session.project, language)
    except KeyError as exc:
        _fail(_error_from_exception(exc))
    if output is None:
        print(payload)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(payload + "\n", encoding="utf-8")
    rprint(f"Wrote {language} to {output}")


# ---- languages ----


@lang_app.command("add")
def lang_add(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    language: str = typer.Argument(..., help="Language code to add"),
) -> None:
    """Add a target language."""
    runtime = _build_runtime(ctx)
    result = _execute(
        _edit_async(
            runtime,
            project_id,
            lambda project: add_target_language(project, language),
        )
    )
    _report_persist(result)


@lang_app.command("remove")
def lang_remove(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    language: str = typer.Argument(..., help="Language code to remove"),
) -> None:
    """Remove a target language and its translations."""
    runtime = _build_runtime(ctx)
    result = _execute(
        _edit_async(
            runtime,
            project_id,
            lambda project: remove_target_language(project, language),
        )
    )
    _report_persist(result)


# ---- keys and values ----


@app.command("keys")
def keys(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    language: str | None = LANGUAGE_OPTION,
) -> None:
    """Show the key tree with per-folder completeness."""
    runtime = _build_runtime(ctx)
    session = _execute(_open_async(runtime, project_id))
    rprint(_build_key_tree_view(session.project, language))


@app.command("stats")
def stats(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    json_output: bool = JSON_OPTION,
) -> None:
    """Show translation completeness per language."""
    runtime = _build_runtime(ctx)
    session = _execute(_open_async(runtime, project_id), json_output=json_output)
    result = _build_stats_result(session.project)
    if json_output:
        response: ApiResponse[ProjectStatsResult] = ApiResponse(
            data=result, error=None, meta=MetaInfo(timestamp=_now_timestamp())
        )
        print(response.model_dump_json())
        return
    table = Table(title=f"{escape(session.project.name)} ({session.role})")
    table.add_column("Language")
    table.add_column("Done", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Progress", justify="right")
    for progress in result.languages:
        table.add_row(
            progress.language,
            str(progress.done),
            str(progress.total),
            f"{progress.percent}%",
        )
    rprint(table)
    rprint(
        f"Keys: {result.stats.total} "
        f"(complete {result.stats.translated}, partial {result.stats.partial}, "
        f"missing {result.stats.missing}) - {result.stats.progress}% complete"
    )


@app.command("get")
def get(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    path: str = typer.Argument(..., help="Dotted key path"),
    language: str | None = LANGUAGE_OPTION,
) -> None:
    """Print the value at a key path."""
    runtime = _build_runtime(ctx)
    session = _execute(_open_async(runtime, project_id))
    document = _language_document(session.project, language)
    value = get_value(document, path)
    if value is MISSING:
        rprint("[yellow](missing)[/yellow]")
        return
    print(json.dumps(value, ensure_ascii=False))


@app.command("set")
def set_(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    path: str = typer.Argument(..., help="Dotted key path"),
    value: str = typer.Argument(..., help="Value to write"),
    language: str | None = LANGUAGE_OPTION,
    json_value: bool = typer.Option(
        False, "--json-value", help="Parse the value as JSON"
    ),
) -> None:
    """Write a value at a key path."""
    runtime = _build_runtime(ctx)
    try:
        parsed: JsonValue = json.loads(value) if json_value else value
    except ValueError as exc:
        _fail(_error_from_exception(exc))

    def _apply(project: Project) -> Project:
        if language is None:
            return set_master_value(project, path, parsed)
        return set_translation(project, language, path, parsed)

    result = _execute(_edit_async(runtime, project_id, _apply))
    _report_persist(result)


# ---- sharing ----


@app.command("promote")
def promote(ctx: typer.Context, project_id: str = PROJECT_ARGUMENT) -> None:
    """Share a local project through the shared store."""
    runtime = _build_runtime(ctx)
    shared_project = _execute(_promote_async(runtime, project_id))
    rprint(
        f"Promoted [bold]{escape(shared_project.name)}[/bold] "
        f"({shared_project.id}) to the shared store"
    )


@shared_app.command("list")
def shared_list(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """List shared projects you own or belong to."""
    runtime = _build_runtime(ctx)
    identity, projects = _execute(
        _list_shared_async(runtime), json_output=json_output
    )
    if json_output:
        response: ApiResponse[list[SharedProject]] = ApiResponse(
            data=projects, error=None, meta=MetaInfo(timestamp=_now_timestamp())
        )
        print(response.model_dump_json())
        return
    if not projects:
        rprint("[dim]No shared projects[/dim]")
        return
    table = Table(title="Shared projects")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Members", justify="right")
    table.add_column("Version", justify="right")
    table.add_column("Updated")
    for project in projects:
        table.add_row(
            project.id,
            escape(project.name),
            _role_label(project, identity),
            str(len(project.members)),
            str(project.version),
            project.updated_at,
        )
    rprint(table)


@invite_app.command("create")
def invite_create(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    role: ProjectRole = typer.Option(
        ProjectRole.EDITOR, "--role", "-r", help="Role granted (editor|viewer)"
    ),
    max_uses: int | None = typer.Option(
        None, "--max-uses", min=1, help="Maximum number of joins"
    ),
    expires_in_days: int | None = typer.Option(
        None, "--expires-in-days", min=1, help="Lifetime in days"
    ),
) -> None:
    """Create an invite code for a shared project (owner only)."""
    runtime = _build_runtime(ctx)
    invite = _execute(
        _create_invite_async(runtime, project_id, role, max_uses, expires_in_days)
    )
    rprint(f"Invite code: [bold]{invite.code}[/bold] ({invite.role})")


@invite_app.command("list")
def invite_list(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    json_output: bool = JSON_OPTION,
) -> None:
    """List a shared project's invite codes (owner only)."""
    runtime = _build_runtime(ctx)
    invites = _execute(
        _list_invites_async(runtime, project_id), json_output=json_output
    )
    if json_output:
        response: ApiResponse[list[InviteCode]] = ApiResponse(
            data=invites, error=None, meta=MetaInfo(timestamp=_now_timestamp())
        )
        print(response.model_dump_json())
        return
    if not invites:
        rprint("[dim]No invite codes[/dim]")
        return
    table = Table(title="Invite codes")
    table.add_column("ID")
    table.add_column("Code")
    table.add_column("Role")
    table.add_column("Uses", justify="right")
    table.add_column("Expires")
    for invite in invites:
        limit = str(invite.max_uses) if invite.max_uses is not None else "∞"
        table.add_row(
            invite.id,
            invite.code,
            str(invite.role),
            f"{invite.uses}/{limit}",
            invite.expires_at or "never",
        )
    rprint(table)


@invite_app.command("delete")
def invite_delete(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    invite_id: str = typer.Argument(..., help="Invite code record identifier"),
) -> None:
    """Delete an invite code (owner only)."""
    runtime = _build_runtime(ctx)
    _execute(_delete_invite_async(runtime, project_id, invite_id))
    rprint(f"Deleted invite {invite_id}")


@app.command("join")
def join(
    ctx: typer.Context,
    code: str = typer.Argument(..., help="Invite code"),
) -> None:
    """Join a shared project with an invite code."""
    runtime = _build_runtime(ctx)
    result = _execute(_join_async(runtime, code))
    rprint(
        f"Joined [bold]{escape(result.project.name)}[/bold] "
        f"({result.project.id}) as {result.role}"
    )


@app.command("suggest")
def suggest(
    ctx: typer.Context,
    project_id: str = PROJECT_ARGUMENT,
    path: str = typer.Argument(..., help="Dotted key path"),
    language: str = typer.Argument(..., help="Target language"),
    apply: bool = typer.Option(
        False, "--apply", help="Store the suggestion as the translation"
    ),
) -> None:
    """Suggest a machine translation for a master value."""
    runtime = _build_runtime(ctx)
    if not runtime.settings.translator_configured:
        rprint("[yellow]Machine translation is not configured[/yellow]")
        return
    suggestion = _execute(_suggest_async(runtime, project_id, path, language, apply))
    if suggestion is None:
        rprint("[yellow]No suggestion available[/yellow]")
        return
    print(suggestion)


# ---- runtime wiring ----


def _now_timestamp() -> str:
    timestamp = datetime.now(UTC).isoformat()
    return timestamp.replace("+00:00", "Z")


def _build_runtime(ctx: typer.Context) -> _Runtime:
    settings = ctx.obj if isinstance(ctx.obj, Settings) else get_settings()
    data_dir = settings.resolved_data_dir
    project_store = FileSystemProjectStore(data_dir)
    shared_store = SqliteSharedStore(settings.resolved_shared_db)
    log_sink = build_log_sink(
        LoggingConfig(sinks=[LogSinkConfig(type=LogSinkType.FILE)]),
        data_dir / EVENT_LOG_FILE,
    )
    return _Runtime(
        settings=settings,
        project_store=project_store,
        identity_provider=FileSystemIdentityProvider(data_dir / PROFILE_FILE),
        shared_store=shared_store,
        log_sink=log_sink,
        sync=DualStoreSync(project_store, shared_store, log_sink=log_sink),
        membership=MembershipService(shared_store, log_sink=log_sink),
    )


def _execute(
    awaitable: Coroutine[Any, Any, ResultT], *, json_output: bool = False
) -> ResultT:
    try:
        return asyncio.run(awaitable)
    except Exception as exc:
        _fail(_error_from_exception(exc), json_output=json_output)


def _fail(error: ErrorResponse, *, json_output: bool = False) -> NoReturn:
    if json_output:
        response: ApiResponse[None] = _error_response(error)
        print(response.model_dump_json())
    else:
        rprint(f"[red]Error:[/red] {escape(error.message)}")
    raise typer.Exit(code=error.exit_code or ExitCode.RUNTIME_ERROR)


def _report_persist(result: PersistResult) -> None:
    if result.shared_written:
        rprint(
            f"Saved [bold]{escape(result.project.name)}[/bold] "
            f"(shared version {result.shared_version})"
        )
        return
    rprint(f"Saved [bold]{escape(result.project.name)}[/bold] locally")


def _role_label(project: SharedProject, identity: Identity) -> str:
    if project.owner_id == identity.user_id:
        return str(ProjectRole.OWNER)
    for member in project.members:
        if member.user_id == identity.user_id:
            return str(member.role)
    return str(ProjectRole.VIEWER)


def _language_document(project: Project, language: str | None) -> JsonValue:
    if language is None:
        return project.master_data
    code = language.strip().lower()
    if code == project.master_language:
        return project.master_data
    if code not in project.target_languages:
        _fail(
            _error_with_exit_code(
                ErrorResponse(
                    code="validation_error",
                    message=f"{code!r} is not a target language of this project",
                    details=None,
                )
            )
        )
    return project.translations.get(code, {})


def _build_stats_result(project: Project) -> ProjectStatsResult:
    tree = build_key_tree(flatten_keys(project.master_data))
    paths = flatten_keys(project.master_data)
    cache = CompletenessCache()
    return ProjectStatsResult(
        project_id=project.id,
        stats=compute_stats(tree, project.translations, project.target_languages),
        languages=[
            cache.language_progress(paths, project.translations, language)
            for language in project.target_languages
        ],
    )


def _build_key_tree_view(project: Project, language: str | None) -> Tree:
    nodes = build_key_tree(flatten_keys(project.master_data))
    document = _language_document(project, language) if language else None
    overall = compute_stats(nodes, project.translations, project.target_languages)
    root = Tree(
        f"[bold]{escape(project.name)}[/bold] "
        f"[dim]{overall.translated}/{overall.total} ({overall.progress}%)[/dim]"
    )
    _add_tree_nodes(root, nodes, project, document, CompletenessCache())
    return root


def _add_tree_nodes(
    branch: Tree,
    nodes: Sequence[KeyNode],
    project: Project,
    document: JsonValue | None,
    cache: CompletenessCache,
) -> None:
    for node in nodes:
        if node.is_leaf:
            status = classify_leaf(
                node.path, project.translations, project.target_languages
            )
            label = f"{_STATUS_MARKERS[LeafStatus(status)]} {escape(node.name)}"
            if document is not None:
                value = get_value(document, node.path)
                shown = "[dim]-[/dim]" if value is MISSING else escape(str(value))
                label = f"{label}: {shown}"
            branch.add(label)
            continue
        stats = cache.stats(node, project.translations, project.target_languages)
        child = branch.add(
            f"[bold]{escape(node.name)}[/bold] "
            f"[dim]{stats.translated}/{stats.total} ({stats.progress}%)[/dim]"
        )
        _add_tree_nodes(child, node.children, project, document, cache)


# ---- async command bodies ----


async def _import_async(
    runtime: _Runtime, path: Path, name: str, master_language: str | None
) -> Project:
    payload = await asyncio.to_thread(path.read_text, encoding="utf-8")
    document = json.loads(payload)
    project = create_project(
        name, document, master_language=master_language, filename=path.name
    )
    return await runtime.project_store.save(project)


async def _list_local_async(runtime: _Runtime) -> list[Project]:
    identity = await runtime.identity_provider.get_identity()
    return await runtime.sync.list_local_projects(identity)


async def _list_shared_async(
    runtime: _Runtime,
) -> tuple[Identity, list[SharedProject]]:
    identity = await runtime.identity_provider.get_identity()
    return identity, await runtime.sync.list_shared_projects(identity)


async def _open_async(runtime: _Runtime, project_id: str) -> EditingSession:
    identity = await runtime.identity_provider.get_identity()
    return await runtime.sync.load_for_editing(
        ProjectRef(kind=ProjectRefKind.LOCAL, id=project_id), identity
    )


async def _edit_async(
    runtime: _Runtime, project_id: str, edit: Callable[[Project], Project]
) -> PersistResult:
    identity = await runtime.identity_provider.get_identity()
    session = await runtime.sync.load_for_editing(
        ProjectRef(kind=ProjectRefKind.LOCAL, id=project_id), identity
    )
    updated = edit(session.project)
    result = await runtime.sync.persist(
        updated,
        ProjectRole(session.role),
        identity=identity,
        shared_project_id=session.shared_project_id,
        expected_version=session.shared_version,
    )
    if session.shared_project_id is not None and not result.shared_written:
        rprint(
            "[yellow]Viewers cannot update the shared project; "
            "changes were kept locally[/yellow]"
        )
    return result


async def _delete_async(runtime: _Runtime, project_id: str) -> None:
    session = await _open_async(runtime, project_id)
    if session.shared_project_id is not None:
        identity = await runtime.identity_provider.get_identity()
        await runtime.shared_store.delete_project(
            session.shared_project_id, identity.user_id
        )
    await runtime.project_store.delete(project_id)


async def _promote_async(runtime: _Runtime, project_id: str) -> SharedProject:
    identity = await runtime.identity_provider.get_identity()
    session = await runtime.sync.load_for_editing(
        ProjectRef(kind=ProjectRefKind.LOCAL, id=project_id), identity
    )
    return await runtime.sync.promote(session.project, identity)


async def _require_profile(runtime: _Runtime) -> Identity:
    identity = await runtime.identity_provider.get_identity()
    if not identity.has_profile:
        raise _ConfigError(
            "A profile is required; run `lexitree profile set EMAIL` first"
        )
    return identity


async def _create_invite_async(
    runtime: _Runtime,
    project_id: str,
    role: ProjectRole,
    max_uses: int | None,
    expires_in_days: int | None,
) -> InviteCode:
    identity = await _require_profile(runtime)
    return await runtime.membership.create_invite_code(
        project_id,
        identity,
        role=role,
        max_uses=max_uses,
        expires_in_days=expires_in_days,
    )


async def _list_invites_async(runtime: _Runtime, project_id: str) -> list[InviteCode]:
    identity = await runtime.identity_provider.get_identity()
    return await runtime.membership.list_invite_codes(project_id, identity)


async def _delete_invite_async(
    runtime: _Runtime, project_id: str, invite_id: str
) -> None:
    identity = await runtime.identity_provider.get_identity()
    await runtime.membership.delete_invite_code(project_id, invite_id, identity)


async def _join_async(runtime: _Runtime, code: str) -> JoinResult:
    identity = await _require_profile(runtime)
    result = await runtime.membership.join(code, identity)
    await runtime.project_store.save(result.project)
    return result


async def _suggest_async(
    runtime: _Runtime, project_id: str, path: str, language: str, apply: bool
) -> str | None:
    identity = await runtime.identity_provider.get_identity()
    session = await runtime.sync.load_for_editing(
        ProjectRef(kind=ProjectRefKind.LOCAL, id=project_id), identity
    )
    project = session.project
    source = get_value(project.master_data, path)
    if source is MISSING or not isinstance(source, str):
        raise ValueError(f"No master text at {path!r}")
    suggestion = await suggest_translation(
        AzureTranslator(runtime.settings),
        source,
        project.master_language,
        language,
    )
    if suggestion is not None and apply:
        await runtime.sync.persist(
            set_translation(project, language, path, suggestion),
            ProjectRole(session.role),
            identity=identity,
            shared_project_id=session.shared_project_id,
            expected_version=session.shared_version,
        )
    return suggestion


# ---- errors ----


def _error_response(error: ErrorResponse) -> ApiResponse[ResponseT]:
    return ApiResponse(
        data=None,
        error=error,
        meta=MetaInfo(timestamp=_now_timestamp()),
    )


def _error_with_exit_code(
    error: ErrorResponse, domain: str | None = None
) -> ErrorResponse:
    exit_code = resolve_exit_code(error.code, domain=domain)
    return error.model_copy(update={"exit_code": int(exit_code)})


def _error_from_exception(exc: Exception) -> ErrorResponse:
    if isinstance(exc, (SyncError, MembershipError, StorageError, TranslationError)):
        return _error_with_exit_code(
            exc.info.to_error_response(), DOMAIN_PREFIXES[type(exc).__name__]
        )
    if isinstance(exc, InvalidDocumentError):
        return _error_with_exit_code(
            ErrorResponse(code="invalid_document", message=str(exc), details=None)
        )
    if isinstance(exc, _ConfigError):
        return _error_with_exit_code(
            ErrorResponse(code="config_error", message=str(exc), details=None)
        )
    if isinstance(exc, ValidationError):
        message = "Validation failed"
        errors = exc.errors()
        if errors:
            first = errors[0]
            loc = first.get("loc", [])
            label = ".".join(str(part) for part in loc) if loc else ""
            detail = first.get("msg", "")
            if label and detail:
                message = f"Validation failed: {label} - {detail}"
            elif detail:
                message = f"Validation failed: {detail}"
        return _error_with_exit_code(
            ErrorResponse(code="validation_error", message=message, details=None)
        )
    if isinstance(exc, KeyError):
        message = str(exc.args[0]) if exc.args else "Unknown key"
        return _error_with_exit_code(
            ErrorResponse(code="validation_error", message=message, details=None)
        )
    if isinstance(exc, OSError):
        return _error_with_exit_code(
            ErrorResponse(
                code="io_error", message=str(exc) or "I/O error", details=None
            ),
            "storage",
        )
    if isinstance(exc, ValueError):
        return _error_with_exit_code(
            ErrorResponse(
                code="validation_error",
                message=str(exc) or "Invalid value",
                details=None,
            )
        )
    return _error_with_exit_code(
        ErrorResponse(
            code="runtime_error", message=str(exc) or type(exc).__name__, details=None
        )
    )


if __name__ == "__main__":
    app()
