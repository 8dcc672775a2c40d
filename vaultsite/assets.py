"""Global assets: styles, scripts and navigation aids shared by every page."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from pygments.formatters import HtmlFormatter

from vaultsite.artifacts import Artifact
from vaultsite.config import ExportConfig
from vaultsite.lib.json import dumps
from vaultsite.lib.log import get_logger
from vaultsite.navigation import build_file_tree, build_graph_data
from vaultsite.protocols import IconSource
from vaultsite.sources import SourceFile

logger = get_logger(__name__)

STYLES_PATH = "lib/styles/main.css"
SCRIPT_PATH = "lib/scripts/site.js"
GRAPH_DATA_PATH = "lib/scripts/graph-data.js"
FILE_TREE_PATH = "lib/html/file-tree.html"

_PYGMENTS_STYLES = {"light": "default", "dark": "monokai"}

SITE_CSS = """:root {
    --bg-primary: #ffffff;
    --bg-secondary: #f9fafb;
    --text-primary: #111827;
    --text-secondary: #4b5563;
    --accent: #2563eb;
    --border: #e5e7eb;
}
body.theme-dark {
    --bg-primary: #111827;
    --bg-secondary: #1f2937;
    --text-primary: #e5e7eb;
    --text-secondary: #94a3b8;
    --accent: #93c5fd;
    --border: #374151;
}
* { box-sizing: border-box; }
body {
    margin: 0;
    font-family: "Inter", system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
    background: var(--bg-primary);
    color: var(--text-primary);
    line-height: 1.6;
}
a { color: var(--accent); }
.layout { display: flex; min-height: 100vh; }
.sidebar, .graph {
    width: 280px;
    flex-shrink: 0;
    padding: 1rem;
    background: var(--bg-secondary);
    border-right: 1px solid var(--border);
    overflow-y: auto;
}
.graph { border-right: none; border-left: 1px solid var(--border); }
.document { flex-grow: 1; max-width: 900px; margin: 0 auto; padding: 2rem 1.5rem; }
.document-title { margin-top: 0; }
.document-body img { max-width: 100%; }
.document-body table { border-collapse: collapse; }
.document-body th, .document-body td { border: 1px solid var(--border); padding: 0.4rem 0.75rem; }
pre.highlight { padding: 0.75rem; border-radius: 6px; overflow-x: auto; border: 1px solid var(--border); }
.file-tree-title { font-weight: 700; margin-bottom: 0.5rem; }
.tree-items { list-style: none; padding-left: 0.75rem; margin: 0; }
.tree-link { text-decoration: none; color: var(--text-primary); }
.tree-link.active { color: var(--accent); font-weight: 600; }
.tree-tag {
    margin-left: 0.4rem;
    font-size: 0.7rem;
    text-transform: uppercase;
    color: var(--text-secondary);
}
@media (max-width: 900px) {
    .sidebar, .graph { display: none; }
}
"""

SITE_JS = """(function () {
    "use strict";

    function rootPrefix() {
        return document.body.getAttribute("data-root") || "";
    }

    function loadFileTree() {
        var nav = document.getElementById("file-tree");
        if (!nav) return;
        fetch(nav.getAttribute("data-src"))
            .then(function (response) { return response.ok ? response.text() : ""; })
            .then(function (html) {
                nav.innerHTML = html;
                var current = document.body.getAttribute("data-path");
                nav.querySelectorAll("a.tree-link").forEach(function (link) {
                    var target = link.getAttribute("href");
                    if (target === current) {
                        link.classList.add("active");
                        var parent = link.closest("details");
                        while (parent) {
                            parent.open = true;
                            parent = parent.parentElement.closest("details");
                        }
                    }
                    link.setAttribute("href", rootPrefix() + target);
                });
            })
            .catch(function () { nav.innerHTML = ""; });
    }

    function renderGraphList() {
        var container = document.getElementById("graph-view");
        if (!container || typeof graphData === "undefined") return;
        var current = document.body.getAttribute("data-path");
        var self = graphData.nodes.find(function (node) { return node.path === current; });
        if (!self) return;
        var neighbours = graphData.edges
            .filter(function (edge) { return edge[0] === self.id || edge[1] === self.id; })
            .map(function (edge) { return graphData.nodes[edge[0] === self.id ? edge[1] : edge[0]]; });
        var list = document.createElement("ul");
        neighbours.forEach(function (node) {
            var item = document.createElement("li");
            var link = document.createElement("a");
            link.href = rootPrefix() + node.path;
            link.textContent = node.title;
            item.appendChild(link);
            list.appendChild(item);
        });
        container.appendChild(list);
    }

    document.addEventListener("DOMContentLoaded", function () {
        loadFileTree();
        renderGraphList();
    });
})();
"""


class AssetBundle:
    """Collects the artifacts every page of an export shares.

    Navigation aids are generated from the whole batch, so the bundle is
    created per session with the batch's files.
    """

    def __init__(
        self,
        files: Sequence[SourceFile],
        config: ExportConfig,
        *,
        icon_source: IconSource | None = None,
    ) -> None:
        self.files = list(files)
        self.config = config
        self.icon_source = icon_source

    def collect_global_artifacts(self) -> list[Artifact]:
        artifacts = [self.styles(), Artifact.from_text(SCRIPT_PATH, SITE_JS)]
        if self.config.include_graph_view:
            artifacts.append(self.graph_data())
        if self.config.include_file_tree:
            artifacts.append(self.file_tree())
        artifacts.extend(self.custom_assets())
        logger.debug("Collected global assets", count=len(artifacts))
        return artifacts

    def styles(self) -> Artifact:
        style = _PYGMENTS_STYLES.get(self.config.theme, "default")
        highlight_css = HtmlFormatter(style=style).get_style_defs(".highlight")
        return Artifact.from_text(STYLES_PATH, SITE_CSS + "\n" + highlight_css + "\n")

    def _pages_mtime(self) -> float:
        return max((file.modified_time for file in self.files if file.is_convertible), default=0.0)

    def graph_data(self) -> Artifact:
        data = build_graph_data(self.files, self.config)
        script = f"let graphData = {dumps(data)};\n"
        return Artifact.from_text(GRAPH_DATA_PATH, script, modified_time=self._pages_mtime())

    def file_tree(self) -> Artifact:
        html = build_file_tree(self.files, self.config, self.icon_source)
        modified = max((file.modified_time for file in self.files), default=0.0)
        return Artifact.from_text(FILE_TREE_PATH, html, modified_time=modified)

    def custom_assets(self) -> list[Artifact]:
        """Copy files from the configured asset directory under ``lib/``."""
        asset_dir = self.config.asset_dir
        if asset_dir is None:
            return []
        asset_dir = Path(asset_dir)
        if not asset_dir.is_dir():
            logger.warning("Asset directory not found", path=str(asset_dir))
            return []
        artifacts = []
        for path in sorted(asset_dir.rglob("*")):
            if not path.is_file() or path.name.startswith("."):
                continue
            relative = path.relative_to(asset_dir).as_posix()
            artifacts.append(Artifact.from_file(f"lib/{relative}", path))
        return artifacts


__all__ = [
    "AssetBundle",
    "FILE_TREE_PATH",
    "GRAPH_DATA_PATH",
    "SCRIPT_PATH",
    "STYLES_PATH",
]
