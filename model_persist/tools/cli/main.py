"""
Entry point of `model-persist` CLI.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import dotenv
from click.exceptions import BadParameter, MissingParameter
from pydantic import ValidationError
from typer import Context, Exit, Option

from ...core import ModelPersister, StoreError
from ...store import FsStore
from ..config import Config, StoreConfig
from . import tree
from ._utils import MainTyper, get_root_context, logger, lookup_param

dotenv.load_dotenv()

app = MainTyper(
    "model-persist",
    help="ModelPersist CLI Toolkit",
)


@app.callback()
def main(
    ctx: Context,
    store_dir: Path
    | None = Option(
        None,
        help="Folder containing store. Can also be set via MODEL_PERSIST_STORE_DIR environment variable.",
        envvar="MODEL_PERSIST_STORE_DIR",
        exists=True,
        file_okay=False,
    ),
    instance_name: str
    | None = Option(
        None,
        "--instance",
        help="Store name as configured in .yaml",
        envvar="MODEL_PERSIST_INSTANCE",
    ),
    config_file: Path = Option(
        "model-persist.yaml",
        help=".yaml file containing store info, only applicable with --instance",
        envvar="MODEL_PERSIST_CONFIG_FILE",
        dir_okay=False,
    ),
):
    # Load environment variables from .env file if it exists
    dotenv.load_dotenv(Path(".env").resolve(), override=True)

    if instance_name:
        if store_dir:
            raise BadParameter(
                message="cannot be passed with --instance",
                ctx=ctx,
                param=lookup_param(ctx, "store_dir"),
            )

        root_context = RootContext.from_config(
            ctx=ctx, instance_name=instance_name, config_file=config_file
        )
    else:
        if not store_dir:
            raise MissingParameter(
                message="either --store-dir/MODEL_PERSIST_STORE_DIR or --instance/MODEL_PERSIST_INSTANCE must be provided",
                ctx=ctx,
                param_hint=["store_dir", "instance"],
                param_type="option",
            )

        root_context = RootContext(
            ctx=ctx,
            store_config=StoreConfig(store_dir=store_dir),
            from_file=False,
        )

    ctx.obj = root_context


app.add_typer(tree.app)


@app.command()
def check(ctx: Context):
    """
    Check store can be loaded
    """
    root_context = get_root_context(ctx)
    store = root_context.create_store()
    node_count = sum(1 for _ in store.walk())

    logger.info(f"Loaded store '{store.root_dir}' with {node_count} nodes")


def run():
    app()


@dataclass(kw_only=True)
class RootContext:
    ctx: Context
    store_config: StoreConfig
    from_file: bool

    @classmethod
    def from_config(
        cls,
        *,
        ctx: Context,
        instance_name: str,
        config_file: Path,
    ) -> RootContext:
        # ensure config file exists
        if not config_file.is_file():
            raise BadParameter(
                message=f"file does not exist: {config_file}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get config from file
        try:
            config = Config.load_yaml(config_file)
        except (ValueError, ValidationError) as e:
            raise BadParameter(
                f"failed to load config file '{config_file}': {e}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get store from config
        store_config = config.stores.get(instance_name)
        if not store_config:
            raise BadParameter(
                f"store '{instance_name}' not found in '{config_file}'",
                ctx=ctx,
                param=lookup_param(ctx, "instance_name"),
            )

        if not store_config.store_dir:
            raise BadParameter(
                f"store '{instance_name}' has no store_dir and no root_store_dir is configured in '{config_file}'",
                ctx=ctx,
                param=lookup_param(ctx, "instance_name"),
            )

        return RootContext(ctx=ctx, store_config=store_config, from_file=True)

    def create_store(self) -> FsStore:
        try:
            return self.store_config.create_store(logger=logger)
        except (StoreError, ValueError) as e:
            logger.error(f"Failed to open store: {e}")
            raise Exit(code=1)

    def create_persister(self) -> ModelPersister:
        # committing is handled after confirmation
        return self.store_config.create_persister(
            logger=logger, auto_commit=False
        )


if __name__ == "__main__":
    app()
