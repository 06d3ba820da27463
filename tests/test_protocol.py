"""
子进程输出解复用测试
"""

import json

from seekinsight.sandbox.protocol import (
    CommandLine,
    DisplayBlockLine,
    PlainLine,
    PlotLine,
    SchemaLine,
    demultiplex,
    parse_line,
    split_lines,
)


class TestSplitLines:

    def test_trailing_newline_produces_no_empty_line(self):
        assert split_lines("a\nb\n") == ["a", "b"]

    def test_only_newline(self):
        assert split_lines("\n") == []

    def test_empty(self):
        assert split_lines("") == []

    def test_interior_blank_lines_kept(self):
        assert split_lines("a\n\nb") == ["a", "", "b"]

    def test_carriage_returns_stripped(self):
        assert split_lines("a\r\nb\r\n") == ["a", "b"]


class TestParseLine:

    def test_plain(self):
        assert parse_line("hello") == PlainLine("hello")

    def test_plot(self):
        assert parse_line('__PLOTLY_DATA__:{"data": []}') == PlotLine({"data": []})

    def test_schema(self):
        assert parse_line('__SCHEMA_JSON__:{"x": 1}') == SchemaLine({"x": 1})

    def test_invalid_plot_json_dropped(self):
        assert parse_line("__PLOTLY_DATA__:{not json") is None

    def test_display_block_keeps_raw(self):
        raw = '__SI_DISPLAY_BLOCK__:{"type": "markdown", "content": "# Hi"}'

        parsed = parse_line(raw)

        assert isinstance(parsed, DisplayBlockLine)
        assert parsed.raw == raw
        assert parsed.payload["type"] == "markdown"

    def test_command(self):
        parsed = parse_line('__SI_CMD__:{"action": "layout", "payload": {"showSidebar": false}}')

        assert isinstance(parsed, CommandLine)
        assert parsed.payload["payload"] == {"showSidebar": False}

    def test_invalid_display_json_is_plain(self):
        assert parse_line("__SI_DISPLAY_BLOCK__:oops") == PlainLine("__SI_DISPLAY_BLOCK__:oops")


class TestDemultiplex:

    def test_logs_plot_and_schema_separated(self):
        plot = {"data": [{"type": "bar"}], "layout": {}}
        stdout = "\n".join([
            "a",
            "__PLOTLY_DATA__:" + json.dumps(plot),
            "b",
            '__SCHEMA_JSON__:{"n": {"type": "slider"}}',
            "c",
        ]) + "\n"

        out = demultiplex(stdout)

        assert out.logs == ["a", "b", "c"]
        assert out.plotly_data == plot
        assert out.schema_data == {"n": {"type": "slider"}}

    def test_last_plot_wins(self):
        stdout = '__PLOTLY_DATA__:{"n": 1}\n__PLOTLY_DATA__:{"n": 2}\n'

        assert demultiplex(stdout).plotly_data == {"n": 2}

    def test_invalid_plot_json_dropped_not_logged(self):
        out = demultiplex("x\n__PLOTLY_DATA__:{broken\ny\n")

        assert out.logs == ["x", "y"]
        assert out.plotly_data is None

    def test_display_and_command_lines_stay_in_logs_in_order(self):
        display = '__SI_DISPLAY_BLOCK__:{"type": "html", "content": "<b>x</b>", "height": 400}'
        command = '__SI_CMD__:{"action": "layout", "payload": {"showHeader": false}}'

        out = demultiplex(f"start\n{display}\n{command}\nend\n")

        assert out.logs == ["start", display, command, "end"]

    def test_no_output(self):
        out = demultiplex("")

        assert out.logs == []
        assert out.plotly_data is None
        assert out.schema_data is None
