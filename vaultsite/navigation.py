"""Navigation aids shared by every page: the file tree and the link graph."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from jinja2 import DictLoader, Environment, select_autoescape
from markdown_it import MarkdownIt

from vaultsite.config import ExportConfig
from vaultsite.lib.log import get_logger
from vaultsite.metadata import DocumentMeta, resolve_identity, split_frontmatter
from vaultsite.protocols import IconSource
from vaultsite.rendering.page import resolve_link, walk_tokens
from vaultsite.sources import SourceFile, output_path_for

logger = get_logger(__name__)

GRAPH_MIN_NODE_SIZE = 3.0
GRAPH_MAX_NODE_SIZE = 7.0

FILE_TREE_TEMPLATE = """{%- macro render(folder) -%}
<ul class="tree-items">
{%- for child in folder.folders %}
    <li class="tree-item tree-folder" data-depth="{{ child.depth }}">
        <details>
            <summary class="tree-title">{% if child.icon %}<span class="tree-icon">{{ child.icon }}</span>{% endif %}{{ child.title }}</summary>
            {{ render(child) }}
        </details>
    </li>
{%- endfor %}
{%- for item in folder.files %}
    <li class="tree-item tree-file" data-depth="{{ folder.depth + 1 }}">
        <a class="tree-link" href="{{ item.href }}">{% if item.icon %}<span class="tree-icon">{{ item.icon }}</span>{% endif %}{{ item.title }}{% if item.tag %}<span class="tree-tag">{{ item.tag }}</span>{% endif %}</a>
    </li>
{%- endfor %}
</ul>
{%- endmacro -%}
<div class="file-tree">
    <div class="file-tree-title">{{ title }}</div>
    {{ render(root) }}
</div>
"""

HIDDEN_EXTENSION_TAGS = frozenset({"md", "markdown"})


@dataclass
class TreeFile:
    title: str
    href: str
    icon: str = ""
    tag: str = ""


@dataclass
class TreeFolder:
    name: str
    path: str
    depth: int = 0
    title: str = ""
    icon: str = ""
    folders_by_name: dict[str, TreeFolder] = field(default_factory=dict)
    files: list[TreeFile] = field(default_factory=list)

    @property
    def folders(self) -> list[TreeFolder]:
        return [self.folders_by_name[name] for name in sorted(self.folders_by_name, key=str.lower)]

    def child(self, name: str) -> TreeFolder:
        folder = self.folders_by_name.get(name)
        if folder is None:
            path = f"{self.path}/{name}" if self.path else name
            folder = TreeFolder(name=name, path=path, depth=self.depth + 1, title=name)
            self.folders_by_name[name] = folder
        return folder


def build_tree(files: Sequence[SourceFile], config: ExportConfig, icons: IconSource | None = None) -> TreeFolder:
    root = TreeFolder(name="", path="")
    for file in sorted(files, key=lambda f: f.path.lower()):
        folder = root
        if file.parent:
            for part in file.parent.split("/"):
                folder = folder.child(part)
        identity = resolve_identity(DocumentMeta.for_source(file), config, icons)
        tag = "" if file.extension in HIDDEN_EXTENSION_TAGS else file.extension
        folder.files.append(
            TreeFile(
                title=identity.title,
                href=output_path_for(file.path, web_style_names=config.web_style_names),
                icon=identity.icon,
                tag=tag,
            )
        )

    def decorate(folder: TreeFolder) -> None:
        for child in folder.folders_by_name.values():
            identity = resolve_identity(DocumentMeta.for_folder(child.path), config, icons)
            child.title = identity.title
            child.icon = identity.icon
            decorate(child)

    decorate(root)
    return root


def build_file_tree(
    files: Sequence[SourceFile],
    config: ExportConfig,
    icons: IconSource | None = None,
) -> str:
    """Render the vault's files as a nested, collapsed HTML list."""
    env = Environment(
        loader=DictLoader({"file-tree.html": FILE_TREE_TEMPLATE}),
        autoescape=select_autoescape(["html", "xml"]),
    )
    root = build_tree(files, config, icons)
    return env.get_template("file-tree.html").render(title=config.title, root=root)


def _node_size(links: int, max_links: int) -> float:
    if max_links <= 0:
        return GRAPH_MIN_NODE_SIZE
    ratio = links / max_links
    return round(GRAPH_MIN_NODE_SIZE + ratio * (GRAPH_MAX_NODE_SIZE - GRAPH_MIN_NODE_SIZE), 3)


def build_graph_data(
    files: Sequence[SourceFile],
    config: ExportConfig,
    sources: Mapping[str, SourceFile] | None = None,
) -> dict:
    """Collect pages as nodes and the links between them as edges."""
    pages = [file for file in files if file.is_convertible]
    sources = sources if sources is not None else {file.path: file for file in files}
    ids = {file.path: position for position, file in enumerate(pages)}
    md = MarkdownIt("commonmark")

    edges: set[tuple[int, int]] = set()
    for file in pages:
        try:
            tokens = md.parse(split_frontmatter(file.read_text())[1])
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable page in graph", path=file.path, error=str(exc))
            continue
        for token in walk_tokens(tokens):
            if token.type != "link_open":
                continue
            href = token.attrGet("href")
            if not isinstance(href, str):
                continue
            resolved = resolve_link(href, file, sources)
            if resolved is None:
                continue
            target = resolved[0]
            if target.path in ids and target.path != file.path:
                edges.add((ids[file.path], ids[target.path]))

    link_counts = [0] * len(pages)
    for source_id, target_id in edges:
        link_counts[source_id] += 1
        link_counts[target_id] += 1
    max_links = max(link_counts, default=0)

    nodes = []
    for position, file in enumerate(pages):
        title = resolve_identity(DocumentMeta.for_source(file), config).title
        nodes.append(
            {
                "id": position,
                "title": title,
                "path": output_path_for(file.path, web_style_names=config.web_style_names),
                "links": link_counts[position],
                "radius": _node_size(link_counts[position], max_links),
            }
        )
    return {"nodes": nodes, "edges": sorted([list(edge) for edge in edges])}


__all__ = [
    "FILE_TREE_TEMPLATE",
    "TreeFile",
    "TreeFolder",
    "build_file_tree",
    "build_graph_data",
    "build_tree",
]
