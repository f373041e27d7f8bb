import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from pydantic import ValidationError

from domain_models.config import TreeConfig
from domain_models.constants import DEFAULT_PATH_SEPARATOR
from domain_models.manifest import Node
from domain_models.query import ChildrenQuery
from domain_models.types import OnDelete, Record
from pathtree.config import get_database_path, get_log_level
from pathtree.exceptions import PathTreeError
from pathtree.tree import MaterializedPathTree
from pathtree.utils.records import get_children, get_field, get_id
from pathtree.utils.store import SqliteDocumentStore

# Configure logging to stderr so it doesn't interfere with stdout output
logging.basicConfig(
    level=get_log_level(), format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="pathtree",
    help="pathtree: Materialized-path hierarchies stored in a SQLite document collection.",
    add_completion=False,
)

DbOption = Annotated[
    Path,
    typer.Option(
        "--db",
        envvar="PATHTREE_DB",
        help="Path to the SQLite database file.",
        dir_okay=False,
    ),
]
SeparatorOption = Annotated[
    str, typer.Option("--separator", "-s", help="Path separator character.")
]


def _fail_with_error(message: str) -> NoReturn:
    """Centralized error handling: Log error and exit with code 1."""
    typer.echo(message, err=True)
    logger.error(message)
    raise typer.Exit(code=1)


@contextmanager
def _open_tree(
    db: Path, separator: str, on_delete: OnDelete = OnDelete.DELETE
) -> Iterator[MaterializedPathTree]:
    """Open the store and the tree on top of it; report domain errors cleanly."""
    try:
        config = TreeConfig(path_separator=separator, on_delete=on_delete)
    except ValidationError as e:
        _fail_with_error(f"Invalid configuration: {e}")

    try:
        with SqliteDocumentStore(db_path=db, config=config) as store:
            yield MaterializedPathTree(store, config)
    except PathTreeError as e:
        logger.exception("Operation failed.")
        _fail_with_error(f"Error: {e}")
    except ValueError as e:
        _fail_with_error(f"Invalid input: {e}")


def _label(item: Node | Record) -> str:
    name = get_field(item, "name")
    return f"{name} ({get_id(item)})" if name else str(get_id(item))


def _echo_tree(items: list[Any], depth: int = 0) -> None:
    for item in items:
        typer.echo(f"{'  ' * depth}{_label(item)}")
        _echo_tree(get_children(item) or [], depth + 1)


@app.command()
def add(
    node_id: Annotated[str, typer.Argument(help="Id of the new node.")],
    parent: Annotated[str | None, typer.Option("--parent", "-p", help="Parent id.")] = None,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Display name.")] = None,
    db: DbOption = get_database_path(),
    separator: SeparatorOption = DEFAULT_PATH_SEPARATOR,
) -> None:
    """
    Create a node, optionally under an existing parent.
    """
    with _open_tree(db, separator) as tree:
        data: Record = {"id": node_id, "parent": parent}
        if name:
            data["name"] = name
        node = tree.create(data)
        typer.echo(f"Created {node.id} at {node.path}")


@app.command()
def move(
    node_id: Annotated[str, typer.Argument(help="Id of the node to move.")],
    parent: Annotated[str | None, typer.Option("--parent", "-p", help="New parent id.")] = None,
    root: Annotated[bool, typer.Option("--root", help="Make the node a root.")] = False,
    db: DbOption = get_database_path(),
    separator: SeparatorOption = DEFAULT_PATH_SEPARATOR,
) -> None:
    """
    Move a node under a new parent and rewrite the paths of its subtree.
    """
    if (parent is None) == (not root):
        _fail_with_error("Specify exactly one of --parent or --root.")
    with _open_tree(db, separator) as tree:
        node = tree.change_parent(node_id, None if root else parent)
        typer.echo(f"Moved {node.id} to {node.path}")


@app.command()
def remove(
    node_id: Annotated[str, typer.Argument(help="Id of the node to remove.")],
    reparent: Annotated[
        bool,
        typer.Option(
            "--reparent/--cascade",
            help="Promote the children instead of deleting the whole subtree.",
        ),
    ] = False,
    db: DbOption = get_database_path(),
    separator: SeparatorOption = DEFAULT_PATH_SEPARATOR,
) -> None:
    """
    Remove a node and either its subtree or just the node itself.
    """
    on_delete = OnDelete.REPARENT if reparent else OnDelete.DELETE
    with _open_tree(db, separator, on_delete) as tree:
        deleted = tree.remove(node_id)
        typer.echo(f"Removed {deleted} node(s).")


@app.command()
def children(
    node_id: Annotated[str, typer.Argument(help="Id of the parent node.")],
    recursive: Annotated[
        bool, typer.Option("--recursive", "-r", help="List every descendant.")
    ] = False,
    db: DbOption = get_database_path(),
    separator: SeparatorOption = DEFAULT_PATH_SEPARATOR,
) -> None:
    """
    List the children of a node.
    """
    with _open_tree(db, separator) as tree:
        node = tree.get(node_id)
        if node is None:
            _fail_with_error(f"Node {node_id} not found.")
        for child in tree.get_children(node, ChildrenQuery(recursive=recursive)):
            typer.echo(f"{_label(child)}\t{get_field(child, 'path')}")


@app.command()
def ancestors(
    node_ids: Annotated[list[str], typer.Argument(help="Ids of the nodes.")],
    db: DbOption = get_database_path(),
    separator: SeparatorOption = DEFAULT_PATH_SEPARATOR,
) -> None:
    """
    Show the ancestors of one or more nodes, root first.
    """
    with _open_tree(db, separator) as tree:
        nodes = []
        for node_id in node_ids:
            node = tree.get(node_id)
            if node is None:
                _fail_with_error(f"Node {node_id} not found.")
            nodes.append(node)
        for node, chain in zip(nodes, tree.get_ancestors_many(nodes), strict=True):
            typer.echo(f"{_label(node)}: {' > '.join(_label(a) for a in chain) or '-'}")


@app.command()
def tree(
    root_id: Annotated[
        str | None, typer.Option("--root", help="Only show the subtree below this node.")
    ] = None,
    db: DbOption = get_database_path(),
    separator: SeparatorOption = DEFAULT_PATH_SEPARATOR,
) -> None:
    """
    Print the hierarchy as an indented tree.
    """
    with _open_tree(db, separator) as active_tree:
        root = None
        if root_id is not None:
            root = active_tree.get(root_id)
            if root is None:
                _fail_with_error(f"Node {root_id} not found.")
        _echo_tree(active_tree.get_children_tree(root))


if __name__ == "__main__":
    app()
