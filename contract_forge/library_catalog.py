# =============================================================================
# KNOWN-LIBRARY IMPORT RESOLUTION
# =============================================================================

import logging
import posixpath
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

OPENZEPPELIN_PREFIX = "@openzeppelin/contracts/"

# OpenZeppelin Contracts 5.0 sources shipped as package data
BUNDLED_LIBRARY_ROOT = Path(__file__).parent / "libraries"

# import "a.sol";  import "a.sol" as A;  import {X} from "a.sol";  import * as A from "a.sol";
IMPORT_PATTERN = re.compile(
    r"""^\s*import\s+(?:[^'";]*?\bfrom\s+)?["']([^"']+)["'][^;]*;""",
    re.MULTILINE,
)

ImportResolver = Callable[[str], Optional[str]]


class LibraryCatalog:
    """Fixed catalog of library sources the compiler may import.

    Paths are served from in-memory sources first, then from files under
    ``root`` laid out like ``node_modules`` (``root/@openzeppelin/contracts/...``).
    Anything outside the known prefixes is never resolved. CompilerContext
    points ``root`` at ``BUNDLED_LIBRARY_ROOT`` unless OPENZEPPELIN_PATH is set.
    """

    def __init__(
        self,
        root: Optional[str] = None,
        sources: Optional[Dict[str, str]] = None,
        prefixes: Iterable[str] = (OPENZEPPELIN_PREFIX,),
    ):
        self.root = Path(root).resolve() if root else None
        self.sources = dict(sources or {})
        self.prefixes = tuple(prefixes)

    def is_known(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.prefixes)

    def find_import(self, path: str) -> Optional[str]:
        if not self.is_known(path):
            return None
        if path in self.sources:
            return self.sources[path]
        if self.root is None:
            return None
        candidate = (self.root / path).resolve()
        if self.root not in candidate.parents or not candidate.is_file():
            return None
        return candidate.read_text(encoding="utf-8")


def import_paths(source: str) -> list:
    return IMPORT_PATTERN.findall(source)


def resolve_import_path(importer: str, path: str) -> str:
    """Turn an import into a source unit name, resolving ./ and ../ against the importer."""
    if path.startswith("./") or path.startswith("../"):
        return posixpath.normpath(posixpath.join(posixpath.dirname(importer), path))
    return path


def resolve_imports(sources: Dict[str, Dict[str, str]], find_import: ImportResolver) -> Dict[str, Dict[str, str]]:
    """Collect every transitively imported unit that the resolver can supply.

    Returns only the newly found units, keyed by source unit name. Imports the
    resolver cannot satisfy are left out so the compiler reports them.
    """
    resolved: Dict[str, Dict[str, str]] = {}
    pending = [(name, unit["content"]) for name, unit in sources.items()]
    seen = set(sources)

    while pending:
        importer, content = pending.pop()
        for raw_path in import_paths(content):
            unit_name = resolve_import_path(importer, raw_path)
            if unit_name in seen:
                continue
            seen.add(unit_name)
            found = find_import(unit_name)
            if found is None:
                logger.debug("Unresolved import %s (from %s)", unit_name, importer)
                continue
            resolved[unit_name] = {"content": found}
            pending.append((unit_name, found))

    return resolved
