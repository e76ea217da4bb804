"""
Tests for HTML link and asset extraction.
"""

import unittest

from site_mirror.extraction.html_parser import (
    FONT,
    IMAGE,
    MEDIA,
    SCRIPT,
    STYLE,
    PageLinks,
    Resource,
    classify_stylesheet_href,
    extract_page_links,
)

PAGE = "https://example.com/docs/index.html"


class TestExtractLinks(unittest.TestCase):

    def test_anchor_links_resolved(self):
        html = """
        <a href="/about">About</a>
        <a href="guide.html">Guide</a>
        <a href="https://other.org/">Other</a>
        """
        found = extract_page_links(html, PAGE)
        self.assertEqual(found.links, [
            "https://example.com/about",
            "https://example.com/docs/guide.html",
            "https://other.org/",
        ])

    def test_duplicates_and_fragments_collapse(self):
        html = '<a href="/a#one">1</a><a href="/a#two">2</a><a href="/a">3</a>'
        found = extract_page_links(html, PAGE)
        self.assertEqual(found.links, ["https://example.com/a"])

    def test_non_navigable_links_skipped(self):
        html = """
        <a href="#top">top</a>
        <a href="javascript:void(0)">js</a>
        <a href="mailto:a@b.c">mail</a>
        <a href="">empty</a>
        """
        found = extract_page_links(html, PAGE)
        self.assertEqual(found.links, [])

    def test_base_href_honoured(self):
        html = '<head><base href="https://example.com/root/"></head><a href="x.html">x</a>'
        found = extract_page_links(html, PAGE)
        self.assertEqual(found.links, ["https://example.com/root/x.html"])

    def test_bytes_input(self):
        found = extract_page_links(b'<a href="/b">b</a>', PAGE)
        self.assertEqual(found.links, ["https://example.com/b"])


class TestExtractAssets(unittest.TestCase):

    def _kinds(self, html):
        return {r.url: r.kind for r in extract_page_links(html, PAGE).assets}

    def test_stylesheet_script_image(self):
        html = """
        <link rel="stylesheet" href="/css/site.css">
        <script src="app.js"></script>
        <img src="/img/logo.png">
        """
        self.assertEqual(self._kinds(html), {
            "https://example.com/css/site.css": STYLE,
            "https://example.com/docs/app.js": SCRIPT,
            "https://example.com/img/logo.png": IMAGE,
        })

    def test_inline_script_ignored(self):
        self.assertEqual(self._kinds("<script>var a = 1;</script>"), {})

    def test_fonts(self):
        html = """
        <link rel="stylesheet" href="/f/icons.woff2">
        <link rel="preload" as="font" href="/f/body.ttf">
        """
        self.assertEqual(self._kinds(html), {
            "https://example.com/f/icons.woff2": FONT,
            "https://example.com/f/body.ttf": FONT,
        })

    def test_icon_is_image(self):
        html = '<link rel="shortcut icon" href="/favicon.ico">'
        self.assertEqual(self._kinds(html), {"https://example.com/favicon.ico": IMAGE})

    def test_media(self):
        html = """
        <video src="/v/intro.mp4"></video>
        <audio><source src="/a/theme.ogg"></audio>
        """
        self.assertEqual(self._kinds(html), {
            "https://example.com/v/intro.mp4": MEDIA,
            "https://example.com/a/theme.ogg": MEDIA,
        })

    def test_inline_background_image(self):
        html = """<div style="background: url('/img/bg.jpg') no-repeat"></div>"""
        self.assertEqual(self._kinds(html), {"https://example.com/img/bg.jpg": IMAGE})

    def test_style_import(self):
        html = '<style>@import url("/css/extra.css");</style>'
        self.assertEqual(self._kinds(html), {"https://example.com/css/extra.css": STYLE})

    def test_data_uri_image_skipped(self):
        self.assertEqual(self._kinds('<img src="data:image/png;base64,AAA">'), {})

    def test_asset_listed_once(self):
        html = '<img src="/x.png"><img src="/x.png">'
        found = extract_page_links(html, PAGE)
        self.assertEqual(found.assets, [Resource("https://example.com/x.png", IMAGE)])


class TestHelpers(unittest.TestCase):

    def test_classify_stylesheet_href(self):
        self.assertEqual(classify_stylesheet_href("/a.css"), STYLE)
        self.assertEqual(classify_stylesheet_href("/a.woff?v=2"), FONT)
        self.assertEqual(classify_stylesheet_href("/a.EOT"), FONT)

    def test_page_links_dedupe(self):
        found = PageLinks()
        found.add_link("/a", PAGE)
        found.add_link("https://example.com/a", PAGE)
        found.add_asset("/s.js", PAGE, SCRIPT)
        found.add_asset("/s.js", PAGE, SCRIPT)
        found.add_asset("javascript:x", PAGE, SCRIPT)
        self.assertEqual(found.links, ["https://example.com/a"])
        self.assertEqual(len(found.assets), 1)


if __name__ == "__main__":
    unittest.main()
