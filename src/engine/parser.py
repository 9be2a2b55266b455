"""HTML, sitemap and robots.txt extraction."""

import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

from bs4 import BeautifulSoup, Doctype
from lxml import etree

from engine.errors import ParseError

logger = logging.getLogger(__name__)

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
INTERACTIVE_TAGS = ("a", "button", "input", "select", "textarea")
UNLABELLED_EXEMPT_INPUTS = {"hidden", "submit", "button", "reset", "image"}

WORD_RE = re.compile(r"[^\W_]+(?:['’-][^\W_]+)*")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

STOP_WORDS = frozenset(
    """
    the and or but in on at to for of with by from up about into through during
    before after above below between among under over is are was were be been
    being have has had do does did will would could should may might must can
    this that these those i you he she it we they me him her us them my your his
    its our their a an as if each how which who when where why what all any both
    few more most other some such no nor not only own same so than too very just
    now here there then get got make made take took come came go went see saw
    know knew think thought say said tell told give gave find found use used work
    works worked way ways new old first last long good great little right big
    high different small large next early young important public bad able also
    """.split()
)


@dataclass
class ImageInfo:
    src: str
    alt: str | None
    srcset: str = ""
    width: str | None = None
    height: str | None = None
    loading: str | None = None
    in_picture: bool = False


@dataclass
class LinkInfo:
    href: str
    raw_href: str
    text: str
    rel: list[str]
    is_internal: bool
    target: str | None = None

    @property
    def scheme(self) -> str:
        return urlparse(self.href).scheme.lower()

    @property
    def is_http(self) -> bool:
        return self.scheme in ("http", "https")


@dataclass
class JsonLdBlock:
    raw: str
    data: Any = None
    error: str | None = None


@dataclass
class ScriptInfo:
    src: str | None
    is_async: bool
    is_defer: bool
    in_head: bool
    is_module: bool = False
    inline_length: int = 0


@dataclass
class StylesheetInfo:
    href: str
    media: str | None
    in_head: bool


@dataclass
class InteractiveElement:
    tag: str
    input_type: str | None
    style: str
    has_label: bool


@dataclass
class StyledElement:
    tag: str
    style: str


@dataclass
class ParsedDocument:
    """Everything the analyzers read from a page. A pure derivation of the body."""

    base_url: str = ""
    html_length: int = 0
    has_doctype: bool = False
    title: str | None = None
    meta: dict[str, str] = field(default_factory=dict)
    meta_description: str | None = None
    meta_keywords: str | None = None
    meta_viewport: str | None = None
    meta_robots: str | None = None
    canonical: str | None = None
    canonical_url: str | None = None
    canonical_count: int = 0
    open_graph: dict[str, str] = field(default_factory=dict)
    twitter: dict[str, str] = field(default_factory=dict)
    hreflang: list[dict[str, str]] = field(default_factory=list)
    images: list[ImageInfo] = field(default_factory=list)
    picture_count: int = 0
    links: list[LinkInfo] = field(default_factory=list)
    headings: dict[str, list[str]] = field(default_factory=dict)
    heading_outline: list[tuple[int, str]] = field(default_factory=list)
    json_ld: list[JsonLdBlock] = field(default_factory=list)
    microdata_types: list[str] = field(default_factory=list)
    scripts: list[ScriptInfo] = field(default_factory=list)
    stylesheets: list[StylesheetInfo] = field(default_factory=list)
    inline_css: list[str] = field(default_factory=list)
    styled_elements: list[StyledElement] = field(default_factory=list)
    interactive: list[InteractiveElement] = field(default_factory=list)
    lang: str | None = None
    charset: str | None = None
    text: str = ""
    words: list[str] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return len(self.words)

    @property
    def h1(self) -> list[str]:
        return self.headings.get("h1", [])

    @property
    def internal_links(self) -> list[LinkInfo]:
        return [link for link in self.links if link.is_http and link.is_internal]

    @property
    def external_links(self) -> list[LinkInfo]:
        return [link for link in self.links if link.is_http and not link.is_internal]


@dataclass
class SitemapEntry:
    loc: str
    lastmod: str | None = None


@dataclass
class SitemapDocument:
    kind: str  # "urlset" or "sitemapindex"
    entries: list[SitemapEntry] = field(default_factory=list)


@dataclass
class RobotsGroup:
    user_agents: list[str] = field(default_factory=list)
    allow: list[str] = field(default_factory=list)
    disallow: list[str] = field(default_factory=list)
    crawl_delay: float | None = None


@dataclass
class RobotsDocument:
    groups: list[RobotsGroup] = field(default_factory=list)
    sitemaps: list[str] = field(default_factory=list)
    invalid_lines: list[str] = field(default_factory=list)
    raw: str = ""

    def group_for(self, user_agent: str = "*") -> RobotsGroup | None:
        agent = user_agent.lower()
        for group in self.groups:
            if agent in (ua.lower() for ua in group.user_agents):
                return group
        return None

    @property
    def crawl_delay(self) -> float | None:
        group = self.group_for("*")
        return group.crawl_delay if group else None

    @cached_property
    def rules(self) -> RobotFileParser:
        parser = RobotFileParser()
        parser.parse(self.raw.splitlines())
        return parser

    def can_fetch(self, url: str, user_agent: str = "*") -> bool:
        return self.rules.can_fetch(user_agent, url)


def parse(html: str, base_url: str = "") -> ParsedDocument:
    """
    Parse an HTML body into a ParsedDocument.

    Tolerant of malformed markup: anything missing yields an empty field.
    """
    html = html or ""
    soup = BeautifulSoup(html, "lxml")
    doc = ParsedDocument(base_url=base_url, html_length=len(html))

    doc.has_doctype = any(isinstance(item, Doctype) for item in soup.contents)

    title_tag = soup.find("title")
    if title_tag:
        doc.title = title_tag.get_text(strip=True)

    _extract_meta(soup, doc)
    _extract_link_tags(soup, doc)
    _extract_images(soup, doc)
    _extract_anchors(soup, doc)
    _extract_headings(soup, doc)
    _extract_structured_data(soup, doc)
    _extract_scripts_and_styles(soup, doc)
    _extract_interactive(soup, doc)

    html_tag = soup.find("html")
    if html_tag and html_tag.get("lang"):
        doc.lang = html_tag.get("lang").strip() or None

    # Must run last: strips non-visible elements from the tree.
    doc.text = _visible_text(soup)
    doc.words = tokenize(doc.text)
    return doc


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens."""
    return WORD_RE.findall((text or "").lower())


def _resolve(base_url: str, href: str) -> str:
    if not base_url:
        return href
    try:
        return urljoin(base_url, href)
    except ValueError:
        return href


def _host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _extract_meta(soup: BeautifulSoup, doc: ParsedDocument) -> None:
    for meta in soup.find_all("meta"):
        if meta.get("charset") and not doc.charset:
            doc.charset = meta.get("charset").strip().lower()

        key = meta.get("name") or meta.get("property") or meta.get("http-equiv")
        if not key:
            continue
        key = key.strip().lower()
        content = (meta.get("content") or "").strip()

        if key == "content-type" and not doc.charset:
            match = re.search(r"charset=([\w-]+)", content, re.IGNORECASE)
            if match:
                doc.charset = match.group(1).lower()

        if key.startswith("og:"):
            doc.open_graph.setdefault(key, content)
        elif key.startswith("twitter:"):
            doc.twitter.setdefault(key, content)

        doc.meta.setdefault(key, content)

    doc.meta_description = doc.meta.get("description")
    doc.meta_keywords = doc.meta.get("keywords")
    doc.meta_viewport = doc.meta.get("viewport")
    doc.meta_robots = doc.meta.get("robots")


def _rel_values(tag) -> list[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [value.lower() for value in rel]


def _extract_link_tags(soup: BeautifulSoup, doc: ParsedDocument) -> None:
    for link in soup.find_all("link"):
        rel = _rel_values(link)
        href = (link.get("href") or "").strip()

        if "canonical" in rel:
            doc.canonical_count += 1
            if doc.canonical is None:
                doc.canonical = href
                doc.canonical_url = _resolve(doc.base_url, href) if href else None

        if "alternate" in rel and link.get("hreflang"):
            doc.hreflang.append(
                {
                    "lang": link.get("hreflang").strip(),
                    "href": _resolve(doc.base_url, href),
                }
            )

        if "stylesheet" in rel and href:
            doc.stylesheets.append(
                StylesheetInfo(
                    href=_resolve(doc.base_url, href),
                    media=link.get("media"),
                    in_head=link.find_parent("head") is not None,
                )
            )


def _extract_images(soup: BeautifulSoup, doc: ParsedDocument) -> None:
    doc.picture_count = len(soup.find_all("picture"))
    for img in soup.find_all("img"):
        src = (img.get("src") or img.get("data-src") or "").strip()
        doc.images.append(
            ImageInfo(
                src=_resolve(doc.base_url, src) if src else "",
                alt=img.get("alt"),
                srcset=(img.get("srcset") or "").strip(),
                width=img.get("width"),
                height=img.get("height"),
                loading=img.get("loading"),
                in_picture=img.find_parent("picture") is not None,
            )
        )


def _extract_anchors(soup: BeautifulSoup, doc: ParsedDocument) -> None:
    page_host = _host(doc.base_url)
    for anchor in soup.find_all("a", href=True):
        raw_href = anchor.get("href", "").strip()
        href = _resolve(doc.base_url, raw_href)
        link_host = _host(href)
        doc.links.append(
            LinkInfo(
                href=href,
                raw_href=raw_href,
                text=anchor.get_text(" ", strip=True),
                rel=_rel_values(anchor),
                is_internal=bool(link_host) and link_host == page_host,
                target=anchor.get("target"),
            )
        )


def _extract_headings(soup: BeautifulSoup, doc: ParsedDocument) -> None:
    doc.headings = {level: [] for level in HEADING_TAGS}
    for heading in soup.find_all(HEADING_TAGS):
        text = heading.get_text(" ", strip=True)
        doc.headings[heading.name].append(text)
        doc.heading_outline.append((int(heading.name[1]), text))


def _extract_structured_data(soup: BeautifulSoup, doc: ParsedDocument) -> None:
    for script in soup.find_all("script"):
        script_type = (script.get("type") or "").split(";")[0].strip().lower()
        if script_type != "application/ld+json":
            continue

        raw = (script.string or script.get_text() or "").strip()
        block = JsonLdBlock(raw=raw)
        try:
            block.data = json.loads(raw)
        except json.JSONDecodeError as e:
            block.error = f"{e.msg} at line {e.lineno} column {e.colno}"
        except (RecursionError, ValueError) as e:
            block.error = f"Unreadable JSON-LD ({type(e).__name__})"
        doc.json_ld.append(block)

    for item in soup.find_all(attrs={"itemscope": True}):
        for item_type in (item.get("itemtype") or "").split():
            name = item_type.rstrip("/").rsplit("/", 1)[-1]
            if name and name not in doc.microdata_types:
                doc.microdata_types.append(name)


def _extract_scripts_and_styles(soup: BeautifulSoup, doc: ParsedDocument) -> None:
    for script in soup.find_all("script"):
        script_type = (script.get("type") or "").strip().lower()
        if script_type and "javascript" not in script_type and script_type != "module":
            continue
        src = script.get("src")
        doc.scripts.append(
            ScriptInfo(
                src=_resolve(doc.base_url, src.strip()) if src else None,
                is_async=script.has_attr("async"),
                is_defer=script.has_attr("defer"),
                in_head=script.find_parent("head") is not None,
                is_module=script_type == "module",
                inline_length=0 if src else len(script.get_text()),
            )
        )

    for style in soup.find_all("style"):
        doc.inline_css.append(style.get_text())

    for element in soup.find_all(style=True):
        doc.styled_elements.append(StyledElement(tag=element.name, style=element["style"]))


def _extract_interactive(soup: BeautifulSoup, doc: ParsedDocument) -> None:
    label_targets = {label.get("for") for label in soup.find_all("label") if label.get("for")}
    for element in soup.find_all(INTERACTIVE_TAGS):
        if element.name == "a" and not element.get("href"):
            continue
        input_type = None
        if element.name == "input":
            input_type = (element.get("type") or "text").lower()
        if input_type == "hidden":
            continue

        has_label = True
        if element.name in ("input", "select", "textarea") and input_type not in UNLABELLED_EXEMPT_INPUTS:
            has_label = bool(
                element.get("aria-label")
                or element.get("aria-labelledby")
                or element.get("title")
                or (element.get("id") and element.get("id") in label_targets)
                or element.find_parent("label") is not None
            )

        doc.interactive.append(
            InteractiveElement(
                tag=element.name,
                input_type=input_type,
                style=element.get("style") or "",
                has_label=has_label,
            )
        )


def _visible_text(soup: BeautifulSoup) -> str:
    for element in soup(["script", "style", "noscript", "template"]):
        element.decompose()
    root = soup.find("body") or soup
    return root.get_text(" ", strip=True)


def keyword_counts(text: str, min_length: int = 3) -> Counter:
    """
    Count candidate keywords in a text.

    Single words and 2-4 word phrases are counted; every word of a phrase must
    be at least ``min_length`` letters and not a stop word. Phrases do not
    span sentence boundaries.
    """
    counts: Counter[str] = Counter()
    lowered = (text or "").lower()

    for sentence in SENTENCE_SPLIT_RE.split(lowered):
        words = tokenize(sentence)
        usable = [
            word.isalpha() and len(word) >= min_length and word not in STOP_WORDS
            for word in words
        ]

        for size in range(1, 5):
            for start in range(len(words) - size + 1):
                if all(usable[start : start + size]):
                    counts[" ".join(words[start : start + size])] += 1

    return counts


def extract_keywords(text: str, min_length: int = 3, limit: int = 20) -> list[str]:
    """Top candidate keywords in a text, most frequent first."""
    # Counter.most_common keeps first-seen order for ties
    return [keyword for keyword, _ in keyword_counts(text, min_length).most_common(limit)]


def count_phrase(words: list[str], phrase: str) -> int:
    """Occurrences of a phrase in a token list, matched on whole words."""
    target = tokenize(phrase)
    if not target:
        return 0
    size = len(target)
    return sum(
        1 for start in range(len(words) - size + 1) if words[start : start + size] == target
    )


def find_phrase(words: list[str], phrase: str) -> int | None:
    """Token index of the first occurrence of a phrase, or None."""
    target = tokenize(phrase)
    if not target:
        return None
    size = len(target)
    for start in range(len(words) - size + 1):
        if words[start : start + size] == target:
            return start
    return None


def contains_phrase(text: str, phrase: str) -> bool:
    return find_phrase(tokenize(text), phrase) is not None


def parse_sitemap(xml: str | bytes) -> SitemapDocument:
    """
    Parse a sitemap or sitemap index.

    Raises:
        ParseError: if the document is not well-formed XML or not a sitemap.
    """
    data = xml.encode("utf-8") if isinstance(xml, str) else (xml or b"")
    if not data.strip():
        raise ParseError("Sitemap is empty")

    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)
    try:
        root = etree.fromstring(data.strip(), parser=parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise ParseError(f"Malformed sitemap XML: {e}") from e

    kind = etree.QName(root).localname
    if kind not in ("urlset", "sitemapindex"):
        raise ParseError(f"Unexpected sitemap root element <{kind}>")

    child_name = "url" if kind == "urlset" else "sitemap"
    document = SitemapDocument(kind=kind)
    for node in root:
        if not isinstance(node.tag, str) or etree.QName(node).localname != child_name:
            continue
        loc = _child_text(node, "loc")
        if loc:
            document.entries.append(SitemapEntry(loc=loc, lastmod=_child_text(node, "lastmod")))

    return document


def _child_text(node, name: str) -> str | None:
    for child in node:
        if isinstance(child.tag, str) and etree.QName(child).localname == name and child.text:
            return child.text.strip()
    return None


def parse_robots(text: str) -> RobotsDocument:
    """Parse robots.txt into groups. Unknown or malformed lines are recorded, not raised."""
    document = RobotsDocument(raw=text or "")
    current: RobotsGroup | None = None
    last_was_agent = False

    for raw_line in (text or "").splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue
        if ":" not in line:
            document.invalid_lines.append(raw_line)
            continue

        directive, value = (part.strip() for part in line.split(":", 1))
        directive = directive.lower()

        if directive == "user-agent":
            if current is None or not last_was_agent:
                current = RobotsGroup()
                document.groups.append(current)
            current.user_agents.append(value)
            last_was_agent = True
            continue

        last_was_agent = False
        if directive == "sitemap":
            if value:
                document.sitemaps.append(value)
        elif current is None:
            document.invalid_lines.append(raw_line)
        elif directive == "disallow":
            if value:
                current.disallow.append(value)
        elif directive == "allow":
            if value:
                current.allow.append(value)
        elif directive == "crawl-delay":
            try:
                current.crawl_delay = float(value)
            except ValueError:
                document.invalid_lines.append(raw_line)
        else:
            document.invalid_lines.append(raw_line)

    return document
