from seekinsight.db.postgres import _parse_status, split_statements


class TestSplitStatements:

    def test_single_statement(self):
        assert split_statements("SELECT 1") == ["SELECT 1"]

    def test_trailing_semicolon(self):
        assert split_statements("SELECT 1;") == ["SELECT 1"]

    def test_multiple_statements(self):
        sql = "CREATE TABLE t (id INT); INSERT INTO t VALUES (1); SELECT * FROM t"

        assert split_statements(sql) == [
            "CREATE TABLE t (id INT)",
            "INSERT INTO t VALUES (1)",
            "SELECT * FROM t",
        ]

    def test_semicolon_inside_string_literal(self):
        sql = "SELECT 'a;b' AS s; SELECT 2"

        assert split_statements(sql) == ["SELECT 'a;b' AS s", "SELECT 2"]

    def test_semicolon_inside_quoted_identifier(self):
        sql = 'SELECT 1 AS "x;y"; SELECT 2'

        assert split_statements(sql) == ['SELECT 1 AS "x;y"', "SELECT 2"]

    def test_empty_statements_are_skipped(self):
        assert split_statements(";; SELECT 1 ;;") == ["SELECT 1"]

    def test_blank_input(self):
        assert split_statements("   ") == []


class TestParseStatus:

    def test_insert_status(self):
        assert _parse_status("INSERT 0 3") == ("INSERT", 3)

    def test_update_status(self):
        assert _parse_status("UPDATE 2") == ("UPDATE", 2)

    def test_ddl_status_has_no_count(self):
        assert _parse_status("CREATE TABLE") == ("CREATE", None)

    def test_missing_status(self):
        assert _parse_status(None) == ("", None)
