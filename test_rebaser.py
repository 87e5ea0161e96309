"""
End-to-end tests for markup rebasing.
"""

import asyncio
import posixpath

import pytest
from bs4 import BeautifulSoup

from htmlrebase import (
    HookError,
    MalformedSourceMapError,
    NoOwningRegionError,
    RebaseEvent,
    RebaseOptions,
    create_rebaser,
)
from htmlrebase.utils.sourcemaps import SourceMapBuilder


def _srcs(html: bytes):
    soup = BeautifulSoup(html, 'lxml')
    return [img.get('src') for img in soup.find_all('img')]


@pytest.mark.asyncio
async def test_two_file_document_is_rebased_per_source(two_file_document):
    result = await create_rebaser(two_file_document.map).rebase(two_file_document.html)

    assert result.data.decode("utf-8") == (
        "<html>\n<head>\n"
        '  <img src="fixtures/partials/x.png">\n'
        '  <img src="fixtures/assets/a.png">\n'
        "</head>\n</html>\n"
    )
    assert result.map == two_file_document.map
    assert result.events == [
        RebaseEvent("fixtures/partials/x.png", "fixtures/partials/x.png"),
        RebaseEvent("fixtures/assets/a.png", "fixtures/assets/a.png"),
    ]


@pytest.mark.asyncio
async def test_default_rebasing_preserves_resolution(compiler):
    owners = ["site/index.twig", "site/partials/nav.twig", "site/partials/deep/icon.twig"]
    document = compiler(
        (owners[0], '<body>\n  <img src="logo.png">\n'),
        (owners[1], '  <img src="../img/nav.png">\n'),
        (owners[2], '  <img src="./icon.svg">\n'),
        (owners[0], '  <img src="img/footer.png">\n</body>\n'),
    )
    before = _srcs(document.html)

    result = await create_rebaser(document.map).rebase(document.html)
    after = _srcs(result.data)

    for owner, original, rebased in zip([owners[0], owners[1], owners[2], owners[0]], before, after):
        expected = posixpath.normpath(posixpath.join(posixpath.dirname(owner), original))
        assert rebased == expected


@pytest.mark.asyncio
async def test_rebase_event_listener(two_file_document):
    rebaser = create_rebaser(two_file_document.map, rebase=lambda source, resolved: posixpath.join("foo", resolved))
    rebased_paths = []
    resolved_paths = []

    rebaser.on("rebase", lambda rebased, resolved: (rebased_paths.append(rebased), resolved_paths.append(resolved)))
    await rebaser.rebase(two_file_document.html)

    assert rebased_paths == ["foo/fixtures/partials/x.png", "foo/fixtures/assets/a.png"]
    assert resolved_paths == ["fixtures/partials/x.png", "fixtures/assets/a.png"]


def test_unknown_event_is_rejected(two_file_document):
    with pytest.raises(ValueError):
        create_rebaser(two_file_document.map).on("finish", lambda *args: None)


@pytest.mark.asyncio
async def test_remote_absolute_and_fragment_references_are_untouched(compiler):
    document = compiler(("fixtures/partials/remote.twig", (
        '<a href="http://example.com/page">x</a>\n'
        '<img src="//cdn.example.com/a.png">\n'
        '<link rel="stylesheet" href="/abs/site.css">\n'
        '<a href="#top">top</a>\n'
        '<img src="data:image/png;base64,iVBORw0KGgo=">\n'
        '<a href="mailto:someone@example.com">mail</a>\n'
    )))
    calls = []

    def hook(source, resolved_path):
        calls.append(resolved_path)

    result = await create_rebaser(document.map, rebase=hook).rebase(document.html)

    assert result.data == document.html
    assert result.events == []
    assert calls == []


@pytest.mark.asyncio
async def test_hook_false_leaves_reference_and_fires_no_event(two_file_document):
    rebaser = create_rebaser(two_file_document.map, rebase=lambda source, resolved: False)
    events = []
    rebaser.on("rebase", lambda rebased, resolved: events.append(rebased))

    result = await rebaser.rebase(two_file_document.html)

    assert result.data == two_file_document.html
    assert events == []


@pytest.mark.asyncio
@pytest.mark.parametrize("outcome", [None, ""])
async def test_hook_none_uses_default(two_file_document, outcome):
    rebaser = create_rebaser(two_file_document.map, rebase=lambda source, resolved: outcome)

    result = await rebaser.rebase(two_file_document.html)

    assert result.events[0] == RebaseEvent("fixtures/partials/x.png", "fixtures/partials/x.png")
    assert 'src="fixtures/partials/x.png"' in result.data.decode("utf-8")


@pytest.mark.asyncio
async def test_hook_string_overrides(two_file_document):
    rebaser = create_rebaser(two_file_document.map, rebase=lambda source, resolved: "/foo")

    result = await rebaser.rebase(two_file_document.html)

    assert [e.rebased_path for e in result.events] == ["/foo", "/foo"]
    assert _srcs(result.data) == ["foo", "foo"]


@pytest.mark.asyncio
async def test_output_order_survives_hook_latency(compiler):
    names = [f"img{i}.png" for i in range(6)]
    document = compiler(
        ("templates/index.twig", "<div>\n"),
        *[("templates/parts/p.twig", f'  <img src="{name}">\n') for name in names],
        ("templates/index.twig", "</div>\n"),
    )
    seen = []

    async def hook(source, resolved_path):
        # Earlier references answer last
        delay = 0.03 - 0.005 * len(seen)
        seen.append(resolved_path)
        await asyncio.sleep(max(delay, 0))
        return "cdn/" + posixpath.basename(resolved_path)

    result = await create_rebaser(document.map, rebase=hook).rebase(document.html)

    assert seen == [f"templates/parts/{name}" for name in names]
    assert [e.rebased_path for e in result.events] == [f"cdn/{name}" for name in names]
    assert _srcs(result.data) == [f"cdn/{name}" for name in names]


@pytest.mark.asyncio
async def test_small_chunks_give_same_output(two_file_document):
    whole = await create_rebaser(two_file_document.map).rebase(two_file_document.html)
    chunked = await create_rebaser(two_file_document.map, RebaseOptions(chunk_size=3)).rebase(two_file_document.html)

    assert chunked.data == whole.data
    assert chunked.events == whole.events


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        RebaseOptions(chunk_size=0)


@pytest.mark.asyncio
async def test_hook_failure_aborts_without_partial_output(two_file_document):
    def hook(source, resolved_path):
        if resolved_path.endswith("a.png"):
            raise RuntimeError("asset store unavailable")
        return None

    rebaser = create_rebaser(two_file_document.map, rebase=hook)
    events = []
    rebaser.on("rebase", lambda rebased, resolved: events.append(rebased))

    with pytest.raises(HookError) as info:
        await rebaser.rebase(two_file_document.html)

    assert isinstance(info.value.__cause__, RuntimeError)
    # Work stops at the failing reference
    assert events == ["fixtures/partials/x.png"]


@pytest.mark.asyncio
async def test_badly_formed_map_is_rejected(two_file_document):
    with pytest.raises(MalformedSourceMapError):
        await create_rebaser(b"foo").rebase(two_file_document.html)


@pytest.mark.asyncio
async def test_badly_formed_map_is_not_read_without_references():
    result = await create_rebaser(b"foo").rebase(b"<p>no assets here</p>")

    assert result.data == b"<p>no assets here</p>"


@pytest.mark.asyncio
async def test_reference_before_first_mapping_fails():
    builder = SourceMapBuilder()
    builder.add_mapping(3, 0, "fixtures/index.twig")
    html = b'<img src="a.png">\n\n<p>mapped</p>\n'

    with pytest.raises(NoOwningRegionError):
        await create_rebaser(builder.to_bytes()).rebase(html)


@pytest.mark.asyncio
async def test_empty_map_fails_for_eligible_reference():
    empty = b'{"version": 3, "sources": [], "names": [], "mappings": ""}'

    with pytest.raises(NoOwningRegionError):
        await create_rebaser(empty).rebase(b'<img src="a.png">')


@pytest.mark.asyncio
async def test_tag_on_region_boundary_belongs_to_preceding_region(compiler):
    # The partial's tag starts exactly where the partial's region starts
    document = compiler(
        ("fixtures/index.twig", "<p>"),
        ("fixtures/partials/partial.twig", '<img src="x.png">'),
        ("fixtures/index.twig", '  <img src="y.png"></p>'),
    )

    result = await create_rebaser(document.map).rebase(document.html)

    assert _srcs(result.data) == ["fixtures/x.png", "fixtures/y.png"]


@pytest.mark.asyncio
async def test_one_liner(compiler):
    document = compiler(
        ("fixtures/one-liner/index.twig", "<div> "),
        ("fixtures/one-liner/partials/p.twig", ' <img src="foo.png">'),
        ("fixtures/one-liner/index.twig", ' <img src="../assets/foo.png"></div>'),
    )

    result = await create_rebaser(document.map).rebase(document.html)

    assert result.data.decode("utf-8") == (
        '<div>  <img src="fixtures/one-liner/partials/foo.png">'
        ' <img src="fixtures/assets/foo.png"></div>'
    )


@pytest.mark.asyncio
async def test_map_and_markup_not_belonging_to_each_other(compiler):
    markup = compiler(
        ("fixtures/index.twig", "<body>\n"),
        ("fixtures/index.twig", '  <img src="a.png">\n  <img src="b.png">\n</body>\n'),
    )
    other = compiler(
        ("other/index.twig", "<section>\n"),
        ("other/deep/partial.twig", "  <p>partial</p>\n"),
        ("other/index.twig", "</section>\n"),
    )

    first = await create_rebaser(other.map).rebase(markup.html)
    second = await create_rebaser(other.map).rebase(markup.html)

    # Line 2 falls in the partial's region, line 3 back in the index's
    assert _srcs(first.data) == ["other/deep/a.png", "other/b.png"]
    assert first.data == second.data


@pytest.mark.asyncio
async def test_idempotent_for_root_level_sources(compiler):
    document = compiler(("index.twig", '<img src="assets/a.png">\n<a href="docs/page.html">docs</a>\n'))
    rebaser = create_rebaser(document.map)

    once = await rebaser.rebase(document.html)
    twice = await rebaser.rebase(once.data)

    assert once.data == document.html
    assert twice.data == once.data


@pytest.mark.asyncio
async def test_rest_of_document_is_untouched(compiler):
    body = (
        "<!DOCTYPE html>\n"
        "<!-- generated -->\n"
        "<html lang='en'>\n"
        "<head><meta charset=utf-8><title>Fish &amp; chips</title>\n"
        "<script>var s = '<img src=\"x.png\">';</script>\n"
        "</head>\n"
        "<body class=\"main\" data-x='1'>\n"
        "  <IMG SRC='pic.png' ALT=\"A &amp; B\">\n"
        "  <p>caf&eacute; &#169;</p>\n"
        "</body>\n"
        "</html>\n"
    )
    document = compiler(("fixtures/html/index.html", body))

    result = await create_rebaser(document.map).rebase(document.html)

    expected = body.replace(
        "<IMG SRC='pic.png' ALT=\"A &amp; B\">",
        '<IMG src="fixtures/html/pic.png" alt="A &amp; B">',
    )
    assert result.data.decode("utf-8") == expected


def _styled_document(compiler):
    return compiler(
        ("fixtures/index.twig", "<html>\n<head>\n"),
        ("fixtures/partials/partial.twig", (
            "  <style>\n"
            "    .a { background: url(x.png) }\n"
            "  </style>\n"
            '  <link rel="icon" href="x.png">\n'
        )),
        ("fixtures/index.twig", "</head>\n</html>\n"),
    )


@pytest.mark.asyncio
async def test_inline_style_is_rebased_like_attributes(compiler):
    document = _styled_document(compiler)

    result = await create_rebaser(document.map).rebase(document.html)

    soup = BeautifulSoup(result.data, "lxml")
    assert "url(fixtures/partials/x.png)" in soup.style.string
    assert soup.link["href"] == "fixtures/partials/x.png"
    assert result.events == [
        RebaseEvent("fixtures/partials/x.png", "fixtures/partials/x.png"),
        RebaseEvent("fixtures/partials/x.png", "fixtures/partials/x.png"),
    ]


@pytest.mark.asyncio
async def test_inline_style_uses_hook_and_emits_events(compiler):
    document = _styled_document(compiler)
    rebaser = create_rebaser(document.map, rebase=lambda source, resolved: "foo")
    events = []
    rebaser.on("rebase", lambda rebased, resolved: events.append((rebased, resolved)))

    result = await rebaser.rebase(document.html)

    text = result.data.decode("utf-8")
    assert "    .a { background: url(foo) }\n" in text
    assert '<link rel="icon" href="foo">' in text
    assert events == [("foo", "fixtures/partials/x.png"), ("foo", "fixtures/partials/x.png")]


@pytest.mark.asyncio
async def test_concurrent_invocations_are_independent(compiler):
    first = compiler(("a/index.twig", "<div>\n"), ("a/p/one.twig", '  <img src="1.png">\n'))
    second = compiler(("b/index.twig", "<div>\n"), ("b/q/two.twig", '  <img src="2.png">\n'))

    async def slow(source, resolved_path):
        await asyncio.sleep(0.01)
        return None

    rebaser_a = create_rebaser(first.map, rebase=slow)
    rebaser_b = create_rebaser(second.map, rebase=slow)
    shared = create_rebaser(first.map, rebase=slow)

    a, b, a_again = await asyncio.gather(
        rebaser_a.rebase(first.html),
        rebaser_b.rebase(second.html),
        shared.rebase(first.html),
    )

    assert _srcs(a.data) == ["a/p/1.png"]
    assert _srcs(b.data) == ["b/q/2.png"]
    assert a_again.data == a.data
    assert a.events == [RebaseEvent("a/p/1.png", "a/p/1.png")]
    assert b.events == [RebaseEvent("b/q/2.png", "b/q/2.png")]


@pytest.mark.asyncio
async def test_same_rebaser_runs_concurrent_invocations(compiler):
    document = compiler(("a/index.twig", "<div>\n"), ("a/p/one.twig", '  <img src="1.png">\n'))
    rebaser = create_rebaser(document.map)

    results = await asyncio.gather(*[rebaser.rebase(document.html) for _ in range(5)])

    assert len({r.data for r in results}) == 1
    assert all(len(r.events) == 1 for r in results)


def test_rebase_sync(two_file_document):
    result = create_rebaser(two_file_document.map).rebase_sync(two_file_document.html)

    assert _srcs(result.data) == ["fixtures/partials/x.png", "fixtures/assets/a.png"]
