from __future__ import annotations

import sys
from pathlib import Path

from .render import read_template

BUNDLED_THEMES = Path(__file__).parent / "themes"


def find_theme(name: str, project_root: Path) -> Path:
    """Locate a theme by name: the project's ``themes/`` wins over bundled ones."""
    for base in (project_root / "themes", BUNDLED_THEMES):
        candidate = base / name
        if (candidate / "layouts" / "base.html").exists():
            return candidate
    print(f"Theme not found: {name!r} (looked in {project_root / 'themes'} and bundled themes)", file=sys.stderr)
    sys.exit(1)


def load_base_template(theme_dir: Path) -> str:
    return read_template(theme_dir / "layouts" / "base.html")
