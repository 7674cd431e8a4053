from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from click import BadParameter, ClickException, MissingParameter
from rich.markup import escape
from rich.tree import Tree
from typer import Argument, Context, Option

from ...core import InvalidArgumentError, StoreError
from ...store import BaseStore, Node
from ..utils import commit_changes
from ._utils import (
    MainTyper,
    console,
    get_root_context,
    import_object,
    logger,
    lookup_param,
)

if TYPE_CHECKING:
    from .main import RootContext


app = MainTyper(
    "tree",
    help="Operations on tree or subtree",
)


@app.callback()
def main(
    ctx: Context,
    path: str
    | None = Option(
        None,
        help="Path of node on which to perform operation, e.g. '/content/site'",
    ),
):
    root_context = get_root_context(ctx)
    store = root_context.create_store()

    if path is not None and not path.startswith("/"):
        raise BadParameter(
            f"path '{path}' must be absolute",
            ctx=ctx,
            param=lookup_param(ctx, "path"),
        )

    tree_context = TreeContext(
        root_context=root_context,
        store=store,
        target_path=path or root_context.store_config.target_path,
    )

    # replace with new context
    ctx.obj = tree_context


@app.command()
def push(
    ctx: Context,
    model_fqcn: str
    | None = Argument(
        None,
        help="Fully-qualified name of class or zero-argument factory producing the object to persist",
    ),
    shallow: bool = Option(
        False,
        "--shallow",
        help="Only write the object's own properties, not nested objects",
    ),
    dry_run: bool = Option(
        False,
        "--dry-run",
        help="Only show pending changes",
    ),
    yes: bool = Option(
        False,
        "-y",
        "--yes",
        help="Don't ask for confirmation before committing changes",
    ),
):
    """
    Persist object to target path, or the path it identifies
    """

    tree_context = _get_tree_context(ctx)
    root_model_fqcn = tree_context.root_context.store_config.root_model_fqcn
    fqcn = model_fqcn or root_model_fqcn

    if not fqcn:
        raise MissingParameter(
            "must be passed when root_model_fqcn not set in config file",
            ctx=ctx,
            param=lookup_param(ctx, "model_fqcn"),
        )

    factory = import_object(fqcn)

    if not callable(factory):
        raise ClickException(
            f"fully-qualified name '{fqcn}' is not a class or factory: {factory}"
        )

    try:
        instance = factory()
    except Exception as e:
        raise ClickException(f"failed to instantiate '{fqcn}': {e}")

    store = tree_context.store
    persister = tree_context.root_context.create_persister()

    try:
        if tree_context.target_path:
            persister.persist_at(
                tree_context.target_path, instance, store, deep=not shallow
            )
        else:
            persister.persist(instance, store, deep=not shallow)
    except (InvalidArgumentError, StoreError) as e:
        store.revert()
        raise ClickException(f"failed to persist '{fqcn}': {e}")

    # print summary and commit changes
    commit_changes(store, console, dry_run=dry_run, yes=yes, logger=logger)


@app.command()
def show(
    ctx: Context,
    properties: bool = Option(
        False,
        "--properties",
        help="Show properties of each node",
    ),
):
    """
    Show subtree at target path
    """

    tree_context = _get_tree_context(ctx)
    store = tree_context.store
    path = tree_context.target_path or "/"

    node = store.get_node(path)

    if node is None:
        raise ClickException(f"node '{path}' does not exist")

    console.print(_build_tree(store, node, properties=properties))


@dataclass(kw_only=True)
class TreeContext:
    root_context: RootContext
    store: BaseStore
    target_path: str | None


def _get_tree_context(ctx: Context) -> TreeContext:
    tree_context = ctx.obj
    assert isinstance(tree_context, TreeContext)
    return tree_context


def _build_tree(
    store: BaseStore,
    node: Node,
    *,
    properties: bool,
    tree: Tree | None = None,
) -> Tree:
    """
    Recursively render node and its descendants.
    """
    label = f"[bold]{escape(node.name or '/')}[/bold] [dim]({escape(store.get_type(node))})[/dim]"
    branch = tree.add(label) if tree else Tree(label)

    if properties:
        for name, value in store.get_properties(node).items():
            branch.add(f"[cyan]{escape(name)}[/cyan] = {escape(repr(value))}")

    for child in store.get_children(node):
        _build_tree(store, child, properties=properties, tree=branch)

    return branch
