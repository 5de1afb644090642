import pytest

from stitch.directives import (
    CurrentDate,
    DirectiveInstance,
    DirectiveSpan,
    Exec,
    Extends,
    NavItems,
    PageContent,
    PageName,
    Use,
    find_directive,
    find_next_directive,
    find_next_span,
    parse_directive,
    tokenize,
)
from stitch.errors import (
    EmptyDirective,
    MissingArgument,
    UnclosedDirective,
    UnclosedQuote,
    UnknownDirective,
)

# --- Scanner ---


def test_find_next_span_covers_directive():
    text = "a {{ x }} b"
    span = find_next_span(text)
    assert span == DirectiveSpan(start_pos=2, end_pos=8, inner=" x ")
    assert text[span.start_pos : span.end_pos + 1] == "{{ x }}"
    assert span.inner.strip() == "x"


def test_find_next_span_none_without_opener():
    assert find_next_span("plain text } and }}") is None


def test_find_next_span_unclosed():
    with pytest.raises(UnclosedDirective):
        find_next_span("some content {{ extends 'foo bar' more content")


def test_find_next_directive_positions():
    found = find_next_directive("some content {{extends foo}} more content")
    assert found == DirectiveInstance(13, 27, Extends(name="foo"))

    found = find_next_directive("some content {{ extends foo }} more content")
    assert found == DirectiveInstance(13, 29, Extends(name="foo"))

    found = find_next_directive("some content {{ extends 'foo bar' }} more content")
    assert found == DirectiveInstance(13, 35, Extends(name="foo bar"))

    assert find_next_directive("some content more content") is None


@pytest.mark.parametrize("text", ["a {{}} b", "a {{  }} b", "{{\n\t}}"])
def test_find_next_directive_empty(text):
    with pytest.raises(EmptyDirective):
        find_next_directive(text)


def test_nested_openers_are_unclosed():
    with pytest.raises(UnclosedDirective):
        find_next_directive("a {{{{ b")


def test_find_directive_skips_other_kinds():
    found = find_directive("a {{ pagename }} b {{ pagecontent }} c", "pagecontent")
    assert found == DirectiveInstance(19, 35, PageContent())


def test_find_directive_offsets_after_several_skips():
    text = "{{ pagename }}{{ navitems }}x{{ use a }}  {{ pagecontent }}"
    found = find_directive(text, "pagecontent")
    assert text[found.start_pos : found.end_pos + 1] == "{{ pagecontent }}"


def test_find_directive_missing():
    assert find_directive("a {{ pagename }} b", "pagecontent") is None
    assert find_directive("", "pagecontent") is None


def test_find_directive_propagates_parse_errors():
    with pytest.raises(UnknownDirective):
        find_directive("{{ bogus }} {{ pagecontent }}", "pagecontent")


def test_instance_replace_and_remove():
    text = "a {{ x }} b"
    instance = DirectiveInstance(2, 8, PageName())
    assert instance.replace(text, "Y") == "a Y b"
    assert instance.remove(text) == "a  b"


# --- Tokenizer and parser ---


def test_tokenize_quotes():
    assert tokenize("""do "some stuff"   'with "quotes"' yeah""") == [
        "do",
        "some stuff",
        'with "quotes"',
        "yeah",
    ]


def test_tokenize_empty_quoted_token():
    assert tokenize("currentdate ''") == ["currentdate", ""]


def test_tokenize_unclosed_quote():
    with pytest.raises(UnclosedQuote):
        tokenize("extends 'foo bar")


def test_parse_general():
    assert parse_directive("extends foo") == Extends(name="foo")
    assert parse_directive(" \textends   foo ") == Extends(name="foo")
    assert parse_directive('extends "foo bar"') == Extends(name="foo bar")
    assert parse_directive("\"extends\"  'foo \"bar\"'") == Extends(name='foo "bar"')


def test_parse_errors():
    with pytest.raises(EmptyDirective):
        parse_directive("")
    with pytest.raises(EmptyDirective):
        parse_directive(" \t\n ")
    with pytest.raises(UnclosedQuote):
        parse_directive("extends 'foo bar")
    with pytest.raises(UnknownDirective) as exc_info:
        parse_directive("thisdoesnotexist")
    assert exc_info.value.name == "thisdoesnotexist"


def test_parse_is_case_sensitive():
    with pytest.raises(UnknownDirective):
        parse_directive("PageName")


@pytest.mark.parametrize("kind", ["extends", "use"])
def test_parse_missing_name(kind):
    with pytest.raises(MissingArgument) as exc_info:
        parse_directive(kind)
    assert exc_info.value.which == "name"


def test_parse_use():
    assert parse_directive("use foo") == Use(name="foo")


def test_parse_argumentless_directives_ignore_extras():
    assert parse_directive("pagename") == PageName()
    assert parse_directive("navitems extra tokens") == NavItems()
    assert parse_directive("pagecontent x") == PageContent()


def test_parse_currentdate():
    assert parse_directive("currentdate") == CurrentDate(format=None)
    assert parse_directive("currentdate 'some format'") == CurrentDate(
        format="some format"
    )


def test_parse_exec():
    assert parse_directive("exec ls") == Exec(command="ls", args=())

    directive = parse_directive("""exec do "some stuff"   'with "quotes"' yeah""")
    assert directive.command == "do"
    assert list(directive.args) == ["some stuff", 'with "quotes"', "yeah"]

    with pytest.raises(MissingArgument) as exc_info:
        parse_directive(" exec  ")
    assert exc_info.value.which == "command"


def test_directive_kinds():
    assert [d.kind for d in (Extends("a"), Use("a"), PageName(), NavItems())] == [
        "extends",
        "use",
        "pagename",
        "navitems",
    ]
    assert CurrentDate().kind == "currentdate"
    assert Exec("ls").kind == "exec"
    assert PageContent().kind == "pagecontent"
