"""Shared pytest fixtures for vtree tests."""
import tempfile
from pathlib import Path
from typing import Dict, Generator

import pytest

from vtree.infrastructure.logger import Logger, LogLevel, set_global_logger
from vtree.store.tree_store import TreeStore
from vtree.tree.model import Tree
from vtree.tree.mutator import Mutator


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def quiet_logger() -> Generator[Logger, None, None]:
    """Fresh global logger per test so configuration does not leak."""
    logger = Logger("vtree", level=LogLevel.WARNING)
    set_global_logger(logger)
    yield logger
    set_global_logger(None)


@pytest.fixture
def real_files(temp_dir: Path) -> Dict[str, Path]:
    """Real files that references can point at."""
    data = temp_dir / "real" / "221006"
    data.mkdir(parents=True)

    files = {
        "a": data / "experiment_221006-A.csv",
        "b": data / "experiment_221006-B.csv",
        "notes": temp_dir / "real" / "notes.md",
    }
    files["a"].write_text("t,value\n0,1.5\n1,2.5\n")
    files["b"].write_text("t,value\n0,0.5\n")
    files["notes"].write_text("# Notes\n")
    files["dir"] = data
    return files


@pytest.fixture
def store(temp_dir: Path) -> TreeStore:
    """Empty store inside the temporary directory."""
    return TreeStore(temp_dir / "store")


@pytest.fixture
def sample_tree(real_files: Dict[str, Path]) -> Tree:
    """Project_A with /data/a, /data/b, /data/raw/ and /notes."""
    tree = Tree.new("Project_A", description="Experiment data")
    mutator = Mutator(tree)
    mutator.mkdir("/", "data")
    mutator.mkdir("/data", "raw")
    mutator.add_reference("/data", "a", str(real_files["a"]), description="run A")
    mutator.add_reference("/data", "b", str(real_files["b"]))
    mutator.add_reference("/", "notes", str(real_files["notes"]))
    return tree


@pytest.fixture
def saved_tree(store: TreeStore, sample_tree: Tree) -> Tree:
    """sample_tree persisted in the store."""
    store.save(sample_tree)
    return sample_tree
