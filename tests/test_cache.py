import embedlite


def test_statement_cache_reuse(tmp_path):
    db_path = str(tmp_path / "cache_test.db")
    conn = embedlite.connect(db_path, stmt_cache_size=10)

    conn.exec("CREATE TABLE foo (id INTEGER)")
    conn.exec("INSERT INTO foo VALUES (1)")

    initial_prepares = conn.stats['prepare_count']
    assert initial_prepares == 2

    sql = "SELECT * FROM foo WHERE id = ?"

    # 1. First execution - should prepare
    assert conn.query_row(sql, 1).scan(int) == (1,)
    prepares_after_1 = conn.stats['prepare_count']
    assert prepares_after_1 == initial_prepares + 1

    # 2. A different statement in between
    conn.query_row("SELECT count(*) FROM foo").scan(int)
    prepares_after_interim = conn.stats['prepare_count']
    assert prepares_after_interim == prepares_after_1 + 1

    # 3. Go back to first SQL. Should hit cache.
    assert conn.query_row(sql, 1).scan(int) == (1,)
    assert conn.stats['prepare_count'] == prepares_after_interim, "Should hit cache"
    assert conn.stats['cache_hit'] > 0

    conn.close()


def test_cache_eviction(tmp_path):
    db_path = str(tmp_path / "eviction_test.db")
    conn = embedlite.connect(db_path, stmt_cache_size=2)  # Small cache

    conn.exec("SELECT 1")
    conn.exec("SELECT 2")
    # Cache: ["SELECT 1", "SELECT 2"]

    conn.exec("SELECT 3")
    # Cache: ["SELECT 2", "SELECT 3"] (SELECT 1 evicted)

    before = conn.stats['prepare_count']
    conn.exec("SELECT 1")
    after = conn.stats['prepare_count']
    assert after == before + 1, "Should be a cache miss (evicted)"

    before = conn.stats['prepare_count']
    conn.exec("SELECT 3")
    assert conn.stats['prepare_count'] == before, "Should be a cache hit"

    conn.close()


def test_cache_disabled():
    conn = embedlite.connect(":memory:", stmt_cache_size=0)
    conn.exec("SELECT 1")
    conn.exec("SELECT 1")
    assert conn.stats['prepare_count'] == 2
    assert conn.stats['cache_hit'] == 0
    conn.close()


def test_open_rows_do_not_share_a_statement(conn):
    conn.exec("CREATE TABLE foo (id INTEGER)")
    conn.exec("INSERT INTO foo VALUES (1), (2)")
    sql = "SELECT id FROM foo ORDER BY id"
    outer = conn.query(sql)
    inner = conn.query(sql)
    assert outer.next() and inner.next()
    assert inner.next()
    assert outer.scan(int) == (1,)
    assert inner.scan(int) == (2,)
    outer.close()
    inner.close()


def test_recycled_statement_has_no_stale_bindings(conn):
    conn.exec("CREATE TABLE foo (id INTEGER, name TEXT)")
    conn.exec("INSERT INTO foo VALUES (?, ?)", 1, "a")
    conn.exec("INSERT INTO foo VALUES (?, ?)", 2, None)
    assert conn.query_row("SELECT name FROM foo WHERE id = 2").scan(object) == (None,)
