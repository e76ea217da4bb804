"""
HTML link and asset extraction via BeautifulSoup.
"""

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from site_mirror.utils.url import resolve_link

_BS4_PARSER = "lxml"

IMAGE = "image"
STYLE = "style"
SCRIPT = "script"
FONT = "font"
MEDIA = "media"

ASSET_KINDS = (IMAGE, STYLE, SCRIPT, FONT, MEDIA)

_CSS_URL_RE = re.compile(r"""url\(\s*['"]?([^'")\s]+)['"]?\s*\)""", re.I)
_CSS_IMPORT_RE = re.compile(
    r"""@import\s+(?:url\(\s*)?['"]?([^'")\s;]+)['"]?\s*\)?""", re.I
)
_FONT_EXT_RE = re.compile(r"\.(woff2?|ttf|otf|eot)(\?|$)", re.I)


@dataclass(frozen=True)
class Resource:
    """An asset referenced by a page."""
    url: str
    kind: str


@dataclass
class PageLinks:
    """Outbound links and referenced assets found on one page."""
    links: list[str] = field(default_factory=list)
    assets: list[Resource] = field(default_factory=list)

    def add_link(self, raw: str | None, page_url: str) -> None:
        url = resolve_link(raw, page_url)
        if url and url not in self.links:
            self.links.append(url)

    def add_asset(self, raw: str | None, page_url: str, kind: str) -> None:
        url = resolve_link(raw, page_url)
        if url is None:
            return
        res = Resource(url, kind)
        if res not in self.assets:
            self.assets.append(res)


def classify_stylesheet_href(href: str) -> str:
    """Fonts linked like stylesheets are reported as fonts."""
    return FONT if _FONT_EXT_RE.search(href) else STYLE


def extract_page_links(html: str | bytes, page_url: str) -> PageLinks:
    """
    Parse *html* and return every ``<a href>`` link plus the images,
    stylesheets, scripts, fonts and media it references, all resolved
    against *page_url*.
    """
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")

    found = PageLinks()
    soup = BeautifulSoup(html, _BS4_PARSER)

    # <base href> changes what relative references resolve against
    base_el = soup.find("base", href=True)
    base = resolve_link(base_el["href"], page_url) if base_el else None
    base = base or page_url

    for el in soup.find_all("a", href=True):
        found.add_link(el["href"], base)

    for el in soup.find_all("link", href=True):
        rel = [r.lower() for r in (el.get("rel") or [])]
        if "stylesheet" in rel:
            found.add_asset(el["href"], base, classify_stylesheet_href(el["href"]))
        elif "preload" in rel and (el.get("as") or "").lower() == "font":
            found.add_asset(el["href"], base, FONT)
        elif "icon" in rel:
            found.add_asset(el["href"], base, IMAGE)

    for el in soup.find_all("script", src=True):
        found.add_asset(el["src"], base, SCRIPT)

    for el in soup.find_all("img", src=True):
        found.add_asset(el["src"], base, IMAGE)

    for el in soup.find_all(["video", "audio", "source"], src=True):
        found.add_asset(el["src"], base, MEDIA)

    for el in soup.find_all(style=True):
        for m in _CSS_URL_RE.finditer(el["style"]):
            found.add_asset(m.group(1), base, IMAGE)

    for style_el in soup.find_all("style"):
        for m in _CSS_IMPORT_RE.finditer(style_el.get_text()):
            found.add_asset(m.group(1), base, STYLE)

    return found
