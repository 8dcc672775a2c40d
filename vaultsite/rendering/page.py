"""Markdown page generator using markdown-it and Jinja2."""

from __future__ import annotations

import posixpath
from collections.abc import Iterator, Mapping
from html import escape
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit

from jinja2 import DictLoader, Environment, FileSystemLoader, select_autoescape
from markdown_it import MarkdownIt
from markdown_it.token import Token
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from vaultsite.artifacts import Artifact
from vaultsite.errors import GenerationError
from vaultsite.lib.log import get_logger
from vaultsite.metadata import DocumentMeta, resolve_identity, split_frontmatter
from vaultsite.models import GeneratedPage, GenerationContext
from vaultsite.sources import SourceFile

logger = get_logger(__name__)

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }} | {{ site_title }}</title>
    <link rel="stylesheet" href="{{ root }}lib/styles/main.css">
    <script src="{{ root }}lib/scripts/site.js" defer></script>
    {% if include_graph %}<script src="{{ root }}lib/scripts/graph-data.js" defer></script>{% endif %}
</head>
<body class="theme-{{ theme }}" data-root="{{ root }}" data-path="{{ path }}">
    <div class="layout">
        {% if include_tree %}
        <aside class="sidebar">
            <nav id="file-tree" data-src="{{ root }}lib/html/file-tree.html"></nav>
        </aside>
        {% endif %}
        <main class="document">
            <header class="document-header">
                <h1 class="document-title">{% if icon %}<span class="document-icon">{{ icon }}</span> {% endif %}{{ title }}</h1>
            </header>
            <article class="document-body">
{{ body | safe }}
            </article>
        </main>
        {% if include_graph %}
        <aside class="graph">
            <div id="graph-view"></div>
        </aside>
        {% endif %}
    </div>
</body>
</html>
"""

_EXTERNAL_PREFIXES = ("#", "//", "mailto:", "tel:", "data:")


def highlight_code(code: str, lang: str, attrs: str) -> str:
    """Highlight a fenced code block with Pygments.

    An empty string tells markdown-it to fall back to its own escaping.
    """
    if not lang:
        return ""
    try:
        lexer = get_lexer_by_name(lang)
    except ClassNotFound:
        return ""
    spans = highlight(code, lexer, HtmlFormatter(nowrap=True))
    return f'<pre class="highlight"><code class="language-{escape(lang)}">{spans}</code></pre>'


def walk_tokens(tokens: list[Token]) -> Iterator[Token]:
    for token in tokens:
        yield token
        if token.children:
            yield from walk_tokens(token.children)


def _relative_url(target: str, page_path: str) -> str:
    start = posixpath.dirname(page_path) or "."
    return quote(posixpath.relpath(target, start=start))


def _root_prefix(page_path: str) -> str:
    depth = page_path.count("/")
    return "../" * depth


def resolve_link(href: str, file: SourceFile, sources: Mapping[str, SourceFile]) -> tuple[SourceFile, str] | None:
    """Map a link target to a source of the batch, keeping its fragment."""
    if not href or href.startswith(_EXTERNAL_PREFIXES):
        return None
    parts = urlsplit(href)
    if parts.scheme or parts.netloc or not parts.path:
        return None
    target = unquote(parts.path)
    if target.startswith("/"):
        joined = target.lstrip("/")
    else:
        joined = posixpath.join(file.parent, target)
    normalized = posixpath.normpath(joined)
    if normalized == ".." or normalized.startswith("../"):
        return None
    source = sources.get(normalized)
    if source is None:
        return None
    fragment = f"#{parts.fragment}" if parts.fragment else ""
    return source, fragment


class MarkdownPageGenerator:
    """Converts markdown sources to HTML pages; other files are copied as-is.

    Relative links and images that point at files of the batch are
    rewritten to their exported location, and the linked non-page files
    are returned as dependencies of the page.
    """

    def __init__(self, template_path: Path | None = None) -> None:
        self._md = MarkdownIt(
            "commonmark",
            {"html": True, "linkify": False, "typographer": False, "highlight": highlight_code},
        ).enable(["table", "strikethrough"])

        if template_path is not None and template_path.exists():
            loader = FileSystemLoader(template_path.parent)
            self._template_name = template_path.name
        else:
            loader = DictLoader({"page.html": PAGE_TEMPLATE})
            self._template_name = "page.html"
        self.env = Environment(loader=loader, autoescape=select_autoescape(["html", "xml"]))

    def generate(self, file: SourceFile, context: GenerationContext) -> GeneratedPage | None:
        if not file.is_convertible:
            return self._copy_attachment(file, context)

        try:
            text = file.read_text()
        except (OSError, UnicodeDecodeError) as exc:
            raise GenerationError(file.path, f"cannot read source: {exc}") from exc

        frontmatter, body = split_frontmatter(text)
        identity = resolve_identity(
            DocumentMeta(path=file.path, frontmatter=frontmatter),
            context.config,
            context.icon_source,
        )
        page_path = context.output_path(file.path)

        tokens = self._md.parse(body)
        dependencies = self._rewrite_links(tokens, file, page_path, context)
        body_html = self._md.renderer.render(tokens, self._md.options, {})

        template = self.env.get_template(self._template_name)
        html = template.render(
            title=identity.title,
            icon=identity.icon,
            site_title=context.config.title,
            theme=context.config.theme,
            root=_root_prefix(page_path),
            path=page_path,
            body=body_html,
            include_graph=context.config.include_graph_view,
            include_tree=context.config.include_file_tree,
        )
        output = Artifact.from_text(page_path, html, modified_time=file.modified_time)
        return GeneratedPage(output=output, dependencies=dependencies, title=identity.title)

    def _copy_attachment(self, file: SourceFile, context: GenerationContext) -> GeneratedPage:
        try:
            content = file.read_bytes()
        except OSError as exc:
            raise GenerationError(file.path, f"cannot read attachment: {exc}") from exc
        output = Artifact(
            relative_path=context.output_path(file.path),
            content=content,
            modified_time=file.modified_time,
        )
        return GeneratedPage(output=output, title=file.stem)

    def _rewrite_links(
        self,
        tokens: list[Token],
        file: SourceFile,
        page_path: str,
        context: GenerationContext,
    ) -> list[Artifact]:
        dependencies: list[Artifact] = []
        for token in walk_tokens(tokens):
            if token.type == "link_open":
                attr = "href"
            elif token.type == "image":
                attr = "src"
            else:
                continue
            href = token.attrGet(attr)
            if not isinstance(href, str):
                continue
            resolved = resolve_link(href, file, context.sources)
            if resolved is None:
                continue
            target, fragment = resolved
            target_path = context.output_path(target.path)
            token.attrSet(attr, _relative_url(target_path, page_path) + fragment)
            if target.is_convertible:
                continue
            try:
                dependencies.append(
                    Artifact(
                        relative_path=target_path,
                        content=target.read_bytes(),
                        modified_time=target.modified_time,
                    )
                )
            except OSError as exc:
                logger.warning("Missing linked file", page=file.path, target=target.path, error=str(exc))
        return dependencies


__all__ = ["MarkdownPageGenerator", "PAGE_TEMPLATE", "highlight_code", "resolve_link", "walk_tokens"]
