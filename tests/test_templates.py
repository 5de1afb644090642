import re
from datetime import datetime
from pathlib import Path

import pytest

from stitch.errors import (
    ExecCommandFailed,
    ExtendWithNoPageContent,
    MissingArgument,
    TemplateNotFound,
    TemplateRecursionError,
    ToplevelPageContent,
    UnclosedDirective,
)
from stitch.pages import Page, PageConfig
from stitch.protocols import CommandResult, CommandRunner
from stitch.templates import TemplateResolver, render_nav_items

FIXED_NOW = datetime(2024, 3, 9, 14, 5, 7)


class FakeRunner:
    """Command runner returning canned results and recording calls."""

    def __init__(self, result: CommandResult | None = None):
        self.result = result or CommandResult(0, b"ok", b"")
        self.calls: list[tuple[str, list[str]]] = []

    def run(self, command, args):
        self.calls.append((command, args))
        return self.result


def make_resolver(tmp_path: Path, templates: dict[str, str] | None = None, runner=None):
    templates_dir = tmp_path / "templates"
    templates_dir.mkdir(exist_ok=True)
    for name, text in (templates or {}).items():
        (templates_dir / f"{name}.html").write_text(text, encoding="utf-8")
    return TemplateResolver(
        templates_dir, clock=lambda: FIXED_NOW, runner=runner or FakeRunner()
    )


def test_content_without_directives_is_trimmed(tmp_path):
    resolver = make_resolver(tmp_path)
    page = Page(name="p", content="")
    assert resolver.resolve("  <p>plain</p>\n", page, [page]) == "<p>plain</p>"


def test_pagename(tmp_path):
    resolver = make_resolver(tmp_path)
    page = Page(name="about", content="")
    assert resolver.resolve("<h1>{{ pagename }}</h1>", page, [page]) == "<h1>about</h1>"


def test_extends_splices_body_at_pagecontent(tmp_path):
    resolver = make_resolver(
        tmp_path,
        {"base": "<title>{{ pagename }}</title>\n<main>{{ pagecontent }}</main>\n"},
    )
    page = Page(name="Home", content="")
    result = resolver.resolve("{{ extends base }}\nHello", page, [page])
    assert result == "<title>Home</title>\n<main>\nHello</main>"


def test_extends_chain(tmp_path):
    resolver = make_resolver(
        tmp_path,
        {
            "outer": "<html>{{ pagecontent }}</html>",
            "inner": "{{ extends outer }}<body>{{ pagecontent }}</body>",
        },
    )
    page = Page(name="p", content="")
    assert resolver.resolve("{{ extends inner }}x", page, [page]) == (
        "<html><body>x</body></html>"
    )


def test_extends_without_pagecontent(tmp_path):
    resolver = make_resolver(tmp_path, {"foo": "<p>{{ pagename }}</p>"})
    page = Page(name="p", content="")
    with pytest.raises(ExtendWithNoPageContent):
        resolver.resolve("{{ extends foo }}", page, [page])


def test_toplevel_pagecontent(tmp_path):
    resolver = make_resolver(tmp_path)
    page = Page(name="p", content="")
    with pytest.raises(ToplevelPageContent):
        resolver.resolve("before {{ pagecontent }} after", page, [page])


def test_use_inlines_resolved_template(tmp_path):
    resolver = make_resolver(
        tmp_path, {"header": "  <header>{{ pagename }}</header>\n", "footer": "<f/>"}
    )
    page = Page(name="p", content="")
    result = resolver.resolve("{{ use header }}body{{ use footer }}", page, [page])
    assert result == "<header>p</header>body<f/>"


def test_missing_template(tmp_path):
    resolver = make_resolver(tmp_path)
    page = Page(name="p", content="")
    with pytest.raises(TemplateNotFound) as exc_info:
        resolver.resolve("{{ use nope }}", page, [page])
    assert exc_info.value.template_name == "nope"


def test_recursive_use_is_bounded(tmp_path):
    resolver = make_resolver(tmp_path, {"loop": "{{ use loop }}"})
    resolver.max_depth = 5
    page = Page(name="p", content="")
    with pytest.raises(TemplateRecursionError):
        resolver.resolve("{{ use loop }}", page, [page])


def test_navitems_marks_active_and_skips_navignore(tmp_path):
    resolver = make_resolver(tmp_path)
    home = Page(name="Home", content="", config=PageConfig(title="Home", path="/"))
    about = Page(name="about", content="")
    hidden = Page(name="secret", content="", config=PageConfig(navignore=True))
    pages = [home, about, hidden]

    result = resolver.resolve("<nav>{{ navitems }}</nav>", about, pages)
    assert result == (
        '<nav><a href="/">Home</a>\n<a href="/about" class="active">about</a></nav>'
    )
    assert "secret" not in result
    assert result.count('class="active"') == 1


def test_render_nav_items_escapes():
    page = Page(name="Q&A", content="")
    assert render_nav_items(page, [page]) == (
        '<a href="/Q&amp;A" class="active">Q&amp;A</a>'
    )


def test_currentdate_default_format(tmp_path):
    resolver = make_resolver(tmp_path)
    page = Page(name="p", content="")
    result = resolver.resolve("{{ currentdate }}", page, [page])
    assert result == "2024-03-09 14:05:07"
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", result)


def test_currentdate_custom_format(tmp_path):
    resolver = make_resolver(tmp_path)
    page = Page(name="p", content="")
    assert resolver.resolve("{{ currentdate '%Y' }}", page, [page]) == "2024"


def test_currentdate_wall_clock(tmp_path):
    resolver = TemplateResolver(tmp_path)
    page = Page(name="p", content="")
    result = resolver.resolve("{{ currentdate }}", page, [page])
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", result)
    year = resolver.resolve("{{ currentdate '%Y' }}", page, [page])
    assert re.fullmatch(r"\d{4}", year)


def test_exec_substitutes_stdout(tmp_path):
    runner = FakeRunner(CommandResult(0, b"v1.2.3\n", b""))
    resolver = make_resolver(tmp_path, runner=runner)
    page = Page(name="p", content="")
    result = resolver.resolve(
        "version: {{ exec git describe '--tags' \"a b\" }}!", page, [page]
    )
    assert result == "version: v1.2.3\n!"
    assert runner.calls == [("git", ["describe", "--tags", "a b"])]


def test_exec_invalid_utf8_is_replaced(tmp_path):
    runner = FakeRunner(CommandResult(0, b"caf\xe9", b""))
    resolver = make_resolver(tmp_path, runner=runner)
    page = Page(name="p", content="")
    assert resolver.resolve("{{ exec x }}", page, [page]) == "caf\ufffd"


def test_exec_failure(tmp_path):
    runner = FakeRunner(CommandResult(2, b"", b"boom"))
    resolver = make_resolver(tmp_path, runner=runner)
    page = Page(name="p", content="")
    with pytest.raises(ExecCommandFailed) as exc_info:
        resolver.resolve("{{ exec false }}", page, [page])
    assert exc_info.value.status == 2
    assert exc_info.value.stderr == "boom"


def test_exec_runs_in_document_order(tmp_path):
    runner = FakeRunner()
    resolver = make_resolver(tmp_path, {"t": "{{ exec second }}"}, runner=runner)
    page = Page(name="p", content="")
    resolver.resolve("{{ exec first }}{{ use t }}{{ exec third }}", page, [page])
    assert [call[0] for call in runner.calls] == ["first", "second", "third"]


def test_parser_errors_propagate(tmp_path):
    resolver = make_resolver(tmp_path)
    page = Page(name="p", content="")
    with pytest.raises(UnclosedDirective):
        resolver.resolve("{{ pagename", page, [page])
    with pytest.raises(MissingArgument):
        resolver.resolve("{{ use }}", page, [page])


def test_fake_runner_satisfies_protocol():
    assert isinstance(FakeRunner(), CommandRunner)


def test_currentdate_empty_format(tmp_path):
    resolver = make_resolver(tmp_path)
    page = Page(name="p", content="")
    assert resolver.resolve("[{{ currentdate '' }}]", page, [page]) == "[]"
