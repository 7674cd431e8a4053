import logging
from pathlib import Path
from typing import Generator

from pytest import FixtureRequest, Parser, fixture

from model_persist import FsStore, MemoryStore, ModelPersister

logging.basicConfig(level=logging.WARNING)

LOGGER_NAME = "model-persist"


def pytest_addoption(parser: Parser):
    parser.addoption(
        "--cli-stdout",
        action="store_true",
        help="Print stdout of CLI commands",
    )


class LogHandler(logging.Handler):
    """
    Handler to create a list of log records for testcases to access for
    verification.
    """

    records: list[logging.LogRecord]

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record: logging.LogRecord):
        self.records.append(record)

    def messages(self, level: int = logging.DEBUG) -> list[str]:
        return [r.getMessage() for r in self.records if r.levelno >= level]


@fixture(autouse=True)
def newline(request: FixtureRequest):
    """
    Print a newline and underline test name.
    """
    print("\n" + "-" * len(request.node.nodeid))


@fixture
def log_records() -> Generator[LogHandler, None, None]:
    """
    Capture records logged by the package, including debug records.
    """
    logger = logging.getLogger(LOGGER_NAME)
    handler = LogHandler()

    level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield handler

    logger.removeHandler(handler)
    logger.setLevel(level)


@fixture
def store() -> MemoryStore:
    return MemoryStore()


@fixture
def fs_store(tmp_path: Path) -> FsStore:
    store_dir = tmp_path / "store"
    store_dir.mkdir()
    return FsStore(store_dir)


@fixture
def persister() -> ModelPersister:
    return ModelPersister()


