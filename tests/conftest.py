import pytest
import embedlite


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")


@pytest.fixture
def conn():
    conn = embedlite.connect(":memory:")
    yield conn
    conn.close()
