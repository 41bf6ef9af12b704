import pytest
import embedlite


@pytest.fixture
def users(conn):
    conn.exec("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)")
    conn.exec("INSERT INTO users (name, age) VALUES ('alice', 30), ('bob', 25), ('carol', 35)")
    return conn


def test_query_api(users):
    rows = users.query("SELECT name, age FROM users WHERE age > ? ORDER BY age", 26)
    result = []
    while rows.next():
        result.append(rows.scan(str, int))
    assert rows.done
    assert rows.error is None
    rows.close()
    assert result == [("alice", 30), ("carol", 35)]


def test_query_iteration(users):
    with users.query("SELECT name FROM users ORDER BY id") as rows:
        assert rows.columns == ["name"]
        assert [name for (name,) in rows] == ["alice", "bob", "carol"]


def test_scan_before_next(users):
    with users.query("SELECT name FROM users") as rows:
        with pytest.raises(embedlite.NoRowsError):
            rows.scan(str)


def test_scan_after_end(users):
    with users.query("SELECT name FROM users WHERE id = 99") as rows:
        assert not rows.next()
        assert rows.done
        with pytest.raises(embedlite.NoRowsError):
            rows.scan(str)


def test_step_error_is_latched(users):
    # abs() of the smallest integer overflows at run time, on the second row
    users.exec("CREATE TABLE nums (n INTEGER)")
    users.exec("INSERT INTO nums VALUES (1), (?)", -(2**63))
    rows = users.query("SELECT abs(n) FROM nums ORDER BY rowid")
    assert rows.next()
    assert rows.scan(int) == (1,)
    assert not rows.next()
    assert isinstance(rows.error, embedlite.StepError)
    assert not rows.done
    assert not rows.next()
    with pytest.raises(embedlite.StepError):
        rows.scan(int)
    rows.close()


def test_iteration_raises_step_error(users):
    users.exec("CREATE TABLE nums (n INTEGER)")
    users.exec("INSERT INTO nums VALUES (?)", -(2**63))
    with users.query("SELECT abs(n) FROM nums") as rows:
        with pytest.raises(embedlite.StepError):
            list(rows)


def test_closed_rows(users):
    rows = users.query("SELECT 1")
    rows.close()
    rows.close()
    assert rows.closed
    with pytest.raises(embedlite.MisuseError):
        rows.next()


def test_query_row(users):
    assert users.query_row("SELECT name, age FROM users WHERE id = ?", 2).scan(str, int) == (
        "bob",
        25,
    )


def test_query_row_should_error_not_found_if_no_result(users):
    row = users.query_row("SELECT name FROM users WHERE id = ?", 99)
    with pytest.raises(embedlite.NoRowsError):
        row.scan(str)


def test_query_row_prepare_error(users):
    row = users.query_row("SELECT nope FROM users")
    with pytest.raises(embedlite.PrepareError):
        row.scan(str)


def test_query_row_step_error_is_cause(users):
    users.exec("CREATE TABLE nums (n INTEGER)")
    users.exec("INSERT INTO nums VALUES (?)", -(2**63))
    row = users.query_row("SELECT abs(n) FROM nums")
    with pytest.raises(embedlite.NoRowsError) as excinfo:
        row.scan(int)
    assert isinstance(excinfo.value.__cause__, embedlite.StepError)


def test_query_row_returns_statement_to_cache(users):
    sql = "SELECT name FROM users WHERE id = ?"
    users.query_row(sql, 1).scan(str)
    before = users.stats['prepare_count']
    users.query_row(sql, 2).scan(str)
    assert users.stats['prepare_count'] == before
