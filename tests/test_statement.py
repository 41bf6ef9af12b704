import pytest
import embedlite
from embedlite import StatementState


@pytest.fixture
def foo(conn):
    conn.exec("CREATE TABLE foo (id INTEGER PRIMARY KEY, name TEXT)")
    conn.exec("INSERT INTO foo VALUES (1, 'alice'), (2, 'bob')")
    return conn


def test_statement_step(foo):
    stmt = foo.prepare("SELECT id, name FROM foo ORDER BY id")
    assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.state is StatementState.HAS_ROW
    assert stmt.columns(int, str) == (1, "alice")
    assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.row() == (2, "bob")
    assert stmt.step() == embedlite.SQLITE_DONE
    assert stmt.state is StatementState.EXHAUSTED
    stmt.close()


def test_step_after_done_does_not_rerun(foo):
    stmt = foo.prepare("INSERT INTO foo (name) VALUES ('carol')")
    assert stmt.step() == embedlite.SQLITE_DONE
    assert stmt.step() == embedlite.SQLITE_DONE
    assert foo.query_row("SELECT count(*) FROM foo").scan(int) == (3,)
    stmt.close()


def test_statement_bind_and_column(foo):
    stmt = foo.prepare("SELECT name FROM foo WHERE id = ?")
    assert stmt.bind_count == 1
    assert stmt.column_count == 1
    assert stmt.column_names == ["name"]

    stmt.bind(2)
    assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.columns(str) == ("bob",)
    stmt.close()


def test_reset_reruns(foo):
    stmt = foo.prepare("SELECT name FROM foo WHERE id = ?")
    stmt.bind(1)
    assert stmt.step() == embedlite.SQLITE_ROW
    stmt.reset()
    assert stmt.state is StatementState.READY
    # Bindings survive a reset
    assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.columns(str) == ("alice",)
    stmt.close()


def test_reset_is_noop_when_ready(foo):
    stmt = foo.prepare("SELECT 1")
    stmt.reset()
    assert stmt.state is StatementState.READY
    stmt.close()


def test_clear_bindings(foo):
    stmt = foo.prepare("SELECT ?")
    stmt.bind("x")
    assert stmt.step() == embedlite.SQLITE_ROW
    stmt.clear_bindings()
    assert stmt.state is StatementState.READY
    assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.row() == (None,)
    stmt.close()


def test_bind_arity(foo):
    stmt = foo.prepare("SELECT ?, ?")
    with pytest.raises(embedlite.BindArityError):
        stmt.bind(1)
    with pytest.raises(embedlite.ArityError):
        stmt.bind(1, 2, 3)
    stmt.close()


def test_query_arity_is_strict(foo):
    with pytest.raises(embedlite.BindArityError):
        foo.query("SELECT * FROM foo WHERE id = ?")


def test_bind_requires_ready_state(foo):
    stmt = foo.prepare("SELECT ?")
    stmt.bind(1)
    assert stmt.step() == embedlite.SQLITE_ROW
    with pytest.raises(embedlite.MisuseError):
        stmt.bind(2)
    stmt.reset()
    stmt.bind(2)
    assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.row() == (2,)
    stmt.close()


def test_bind_single_value(foo):
    stmt = foo.prepare("SELECT ?, ?")
    stmt.bind_value(2, "b")
    stmt.bind_value(1, "a")
    assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.row() == ("a", "b")
    stmt.close()


def test_named_parameters(foo):
    stmt = foo.prepare("SELECT :a, @b, $c")
    stmt.bind({"a": 1, "b": 2, "c": 3})
    assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.row() == (1, 2, 3)
    stmt.close()


def test_named_parameters_errors(foo):
    stmt = foo.prepare("SELECT :a, :b")
    with pytest.raises(embedlite.BindArityError):
        stmt.bind({"a": 1})
    with pytest.raises(embedlite.BindArityError):
        stmt.bind({"a": 1, "b": 2, "c": 3})
    with pytest.raises(embedlite.BindError, match="Missing parameter 'b'") as excinfo:
        stmt.bind({"a": 1, "c": 2})
    assert not isinstance(excinfo.value, embedlite.ArityError)
    stmt.close()


def test_named_arity_mismatch_is_arity_error(foo):
    stmt = foo.prepare("SELECT :a, :b, :c")
    for params in ({}, {"a": 1}, {"a": 1, "b": 2}):
        with pytest.raises(embedlite.ArityError):
            stmt.bind(params)
    stmt.close()


def test_mapping_on_positional_statement_is_a_value(foo):
    stmt = foo.prepare("SELECT ?")
    with pytest.raises(embedlite.UnsupportedBindTypeError):
        stmt.bind({"a": 1})
    stmt.close()

    with pytest.raises(embedlite.UnsupportedTypeError):
        foo.exec("SELECT ?", {"x": 1})


def test_numbered_parameters_are_positional(foo):
    stmt = foo.prepare("SELECT ?2, ?1")
    with pytest.raises(embedlite.BindArityError):
        stmt.bind({"1": "a", "2": "b"})
    stmt.bind("a", "b")
    assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.row() == ("b", "a")
    stmt.close()


class Tags(dict):
    """A mapping that stores itself as comma-separated keys."""

    def to_bind_value(self):
        return ",".join(sorted(self))


def test_mapping_with_bind_hook_binds_positionally(foo):
    assert foo.query_row("SELECT ?", Tags(b=1, a=2)).scan(str) == ("a,b",)


def test_extract_arity(foo):
    stmt = foo.prepare("SELECT id, name FROM foo")
    assert stmt.step() == embedlite.SQLITE_ROW
    with pytest.raises(embedlite.ExtractArityError):
        stmt.columns(int)
    stmt.close()


def test_extract_requires_row(foo):
    stmt = foo.prepare("SELECT id FROM foo WHERE id = 99")
    with pytest.raises(embedlite.MisuseError):
        stmt.columns(int)
    assert stmt.step() == embedlite.SQLITE_DONE
    with pytest.raises(embedlite.MisuseError):
        stmt.row()
    stmt.close()


def test_step_failure_latches(foo):
    stmt = foo.prepare("INSERT INTO foo (id, name) VALUES (1, 'dup')")
    with pytest.raises(embedlite.StepError) as excinfo:
        stmt.step()
    assert stmt.state is StatementState.FAILED
    assert excinfo.value.code == embedlite.SQLITE_CONSTRAINT

    with pytest.raises(embedlite.StepError) as again:
        stmt.step()
    assert again.value is excinfo.value

    # reset() leaves FAILED without raising the replayed error
    stmt.reset()
    assert stmt.state is StatementState.READY
    stmt.close()


def test_statement_context_manager(foo):
    with foo.prepare("SELECT 1") as stmt:
        assert stmt.step() == embedlite.SQLITE_ROW
    assert stmt.closed
