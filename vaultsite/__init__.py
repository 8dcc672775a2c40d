"""vaultsite: incremental static website export for markdown vaults.

The build engine (:class:`~vaultsite.website.Website`) turns a batch of
vault files into a deduplicated write-set, regenerating only files that
changed since the export recorded in the destination's export index.
"""

from vaultsite.artifacts import Artifact, ArtifactKind
from vaultsite.config import ExportConfig
from vaultsite.index import ExportIndex
from vaultsite.models import BuildResult, GeneratedPage, GenerationContext
from vaultsite.website import Website

__version__ = "0.1.0"

__all__ = [
    "Artifact",
    "ArtifactKind",
    "BuildResult",
    "ExportConfig",
    "ExportIndex",
    "GeneratedPage",
    "GenerationContext",
    "Website",
    "__version__",
]
