"""
Interface to create models with associated .yaml storage.
"""

from decimal import Decimal
from pathlib import Path
from typing import Self

import yaml
from pydantic import BaseModel

__all__ = [
    "BaseYamlModel",
]

DECIMAL_TAG = "!decimal"


class _Dumper(yaml.SafeDumper):
    """
    Safe dumper which additionally represents decimals losslessly.
    """


class _Loader(yaml.SafeLoader):
    """
    Safe loader which additionally constructs decimals.
    """


def _represent_decimal(dumper: yaml.SafeDumper, value: Decimal) -> yaml.Node:
    return dumper.represent_scalar(DECIMAL_TAG, str(value))


def _construct_decimal(loader: yaml.SafeLoader, node: yaml.Node) -> Decimal:
    assert isinstance(node, yaml.ScalarNode)
    return Decimal(loader.construct_scalar(node))


_Dumper.add_representer(Decimal, _represent_decimal)
_Loader.add_constructor(DECIMAL_TAG, _construct_decimal)


class BaseYamlModel(BaseModel):
    """
    Base pydantic model with additional functionality to load to and dump from
    .yaml file.
    """

    @classmethod
    def load_yaml(cls, file: Path) -> Self:
        """
        Load model from .yaml file.
        """
        assert file.is_file()

        with file.open() as fh:
            model = yaml.load(fh, Loader=_Loader)

        if not isinstance(model, dict):
            raise ValueError(f"Invalid yaml contents: {model}")

        return cls(**model)

    def dump_yaml(self, file: Path):
        """
        Dump model to .yaml file.
        """
        model = self.model_dump(by_alias=True)
        model_yaml = yaml.dump(
            model,
            Dumper=_Dumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        file.write_text(model_yaml)
