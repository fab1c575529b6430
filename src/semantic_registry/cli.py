"""Command-line interface for the semantic registry."""

import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from semantic_registry import __version__
from semantic_registry.config import RegistryConfig, RegistrySettings, load_config
from semantic_registry.criteria.codec import decode_criteria, encode_criteria_list
from semantic_registry.domain.criteria import FilterCriteria
from semantic_registry.domain.errors import InvalidCriteria, SemanticRegistryError
from semantic_registry.observability.logging import bind_context, get_logger, setup_logging
from semantic_registry.registry import AspectUsageFilter, SemanticRegistry

app = typer.Typer(
    name="semantic-registry",
    help="Semantic registry: aspect hierarchies and device-type selectables",
    no_args_is_help=True,
)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to registry.yaml"),
]
CatalogOption = Annotated[
    Optional[Path],
    typer.Option("--catalog", help="Catalog document, overrides the configured source"),
]
CriteriaOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--criteria",
        "-C",
        help="Criterion in short form {function}_{aspect}_{device_class}_{interaction}",
    ),
]


@app.callback()
def callback(ctx: typer.Context) -> None:
    """Semantic registry CLI."""
    bind_context(command=ctx.invoked_subcommand)


def _load(config: Optional[Path], catalog: Optional[Path]) -> RegistryConfig:
    settings = RegistrySettings()
    if config:
        settings = RegistrySettings(config_file=config)
    cfg = load_config(settings)
    if catalog:
        cfg = cfg.model_copy(
            update={"catalog": cfg.catalog.model_copy(update={"source": "file", "path": catalog})}
        )
    return cfg


def _registry(config: Optional[Path], catalog: Optional[Path]) -> SemanticRegistry:
    return _build(_load(config, catalog))


def _build(cfg: RegistryConfig) -> SemanticRegistry:
    setup_logging(cfg.observability.log_level, cfg.observability.log_format)
    try:
        return SemanticRegistry.from_config(cfg)
    except SemanticRegistryError as e:
        typer.echo(f"Catalog error: {e}", err=True)
        raise typer.Exit(1) from e


def _criteria(values: Optional[list[str]]) -> list[FilterCriteria]:
    try:
        return [decode_criteria(v) for v in values or []]
    except InvalidCriteria as e:
        typer.echo(f"Invalid criteria: {e}", err=True)
        raise typer.Exit(2) from e


def _emit(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


@app.command()
def validate(config: ConfigOption = None, catalog: CatalogOption = None) -> None:
    """Validate configuration and catalog without running a query."""
    try:
        cfg = _load(config, catalog)
    except Exception as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1)

    registry = _build(cfg)
    typer.echo("Configuration valid")
    typer.echo(f"  Catalog source: {cfg.catalog.source}")
    typer.echo(f"  Aspect nodes: {len(registry.forest)}")
    typer.echo(f"  Aspect roots: {len(registry.forest.snapshot.root_ids)}")
    typer.echo(f"  Functions: {len(registry.engine.classifier.functions)}")
    typer.echo(f"  Generic duplicate filtering: {cfg.selection.filter_generic_duplicates}")


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"semantic-registry {__version__}")


@app.command()
def aspects(
    config: ConfigOption = None,
    catalog: CatalogOption = None,
    measuring_function_only: Annotated[
        bool,
        typer.Option("--measuring-function-only", help="Only aspects used by measuring functions"),
    ] = False,
    ancestors: Annotated[bool, typer.Option(help="Count usage on ancestors")] = False,
    descendants: Annotated[bool, typer.Option(help="Count usage on descendants")] = True,
) -> None:
    """List aspect nodes."""
    registry = _registry(config, catalog)
    usage_filter = None
    if measuring_function_only:
        usage_filter = AspectUsageFilter(
            include_ancestors=ancestors, include_descendants=descendants
        )
    _emit([n.to_dict() for n in registry.list_aspect_nodes(usage_filter)])


@app.command("measuring-functions")
def measuring_functions(
    aspect_id: Annotated[str, typer.Argument(help="Aspect node id")],
    config: ConfigOption = None,
    catalog: CatalogOption = None,
    ancestors: Annotated[bool, typer.Option(help="Include functions used on ancestors")] = False,
    descendants: Annotated[bool, typer.Option(help="Include functions used on descendants")] = True,
) -> None:
    """List measuring functions used on an aspect."""
    registry = _registry(config, catalog)
    try:
        functions = registry.list_aspect_node_measuring_functions(aspect_id, ancestors, descendants)
    except SemanticRegistryError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    _emit([f.to_dict() for f in functions])


@app.command()
def dedup(
    config: ConfigOption = None,
    catalog: CatalogOption = None,
    criteria: CriteriaOption = None,
) -> None:
    """Remove generic duplicate criteria and print the survivors in short form."""
    registry = _registry(config, catalog)
    result = registry.filter_generic_duplicate_criteria(_criteria(criteria))
    _emit(encode_criteria_list(result))


@app.command()
def selectables(
    config: ConfigOption = None,
    catalog: CatalogOption = None,
    criteria: CriteriaOption = None,
    path_prefix: Annotated[Optional[str], typer.Option(help="Prefix for reported paths")] = None,
    interaction: Annotated[
        Optional[list[str]], typer.Option("--interaction", "-i", help="Allowed interactions")
    ] = None,
    include_modified: Annotated[bool, typer.Option(help="Include service-group variants")] = False,
) -> None:
    """Query device-type selectables (any criterion matches)."""
    registry = _registry(config, catalog)
    try:
        result = registry.query_device_type_selectables(
            _criteria(criteria),
            path_prefix=path_prefix,
            interactions_filter=interaction or [],
            include_modified_ids=include_modified,
        )
    except InvalidCriteria as e:
        typer.echo(f"Invalid criteria: {e}", err=True)
        raise typer.Exit(2) from e
    get_logger(__name__).debug("selectables", criteria=criteria, results=len(result))
    _emit([s.to_dict() for s in result])


@app.command("selectables-v2")
def selectables_v2(
    config: ConfigOption = None,
    catalog: CatalogOption = None,
    criteria: CriteriaOption = None,
    path_prefix: Annotated[Optional[str], typer.Option(help="Prefix for reported paths")] = None,
    include_modified: Annotated[bool, typer.Option(help="Include service-group variants")] = False,
    match_all: Annotated[
        bool, typer.Option("--match-all", help="Services must match every criterion")
    ] = False,
) -> None:
    """Query device-type selectables with the v2 inclusion rules."""
    registry = _registry(config, catalog)
    try:
        result = registry.query_device_type_selectables_v2(
            _criteria(criteria),
            path_prefix=path_prefix,
            include_modified_ids=include_modified,
            services_must_match_all_criteria=match_all,
        )
    except InvalidCriteria as e:
        typer.echo(f"Invalid criteria: {e}", err=True)
        raise typer.Exit(2) from e
    get_logger(__name__).debug("selectables-v2", criteria=criteria, results=len(result))
    _emit([s.to_dict() for s in result])


if __name__ == "__main__":
    app()
