import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

SECRET = b"hello-secret-key-material"
PASSWORD = "correct password"


@pytest.fixture
def secret() -> bytes:
    return SECRET


@pytest.fixture
def password() -> str:
    return PASSWORD


@pytest.fixture(scope="session")
def sample_container() -> bytes:
    from keyseal.container.core import protect

    return protect(SECRET, PASSWORD)
