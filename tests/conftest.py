import textwrap
from pathlib import Path

import pytest
import yaml

BASE_CONFIG = {
    "baseURL": "http://example.dev/",
    "theme": "minima",
    "languageCode": "en-us",
    "title": "Test Site",
    "copyright": "(c) 2024",
    "googleAnalytics": "G-TEST123",
    "outputs": {"home": ["HTML", "RSS", "JSON"]},
    "markup": {"highlight": {"lineNos": True, "noClasses": False}},
    "author": {
        "name": "Test Author",
        "status": "Hi, I'm a test.",
        "description": "I write [tests](https://example.dev/tests).\n",
    },
    "params": {
        "social": [
            {"name": "github", "url": "https://github.com/example"},
            {"name": "email", "url": "mailto:me@example.dev"},
            {"name": "rss", "url": "/index.xml"},
        ]
    },
}


def write_post(root: Path, name: str, title: str, date: str, body: str = "", draft: bool = False, extra: str = "") -> Path:
    path = root / "content" / "posts" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    header = f"---\ntitle: \"{title}\"\ndate: {date}\ndraft: {'true' if draft else 'false'}\n{extra}---\n\n"
    path.write_text(header + textwrap.dedent(body), encoding="utf-8")
    return path


@pytest.fixture
def make_site(tmp_path):
    """Create a project directory with a config and the given posts."""

    def factory(config: dict | None = None, posts: list[dict] | None = None) -> Path:
        data = yaml.safe_load(yaml.safe_dump(BASE_CONFIG))
        for key, value in (config or {}).items():
            data[key] = value
        (tmp_path / "config.yaml").write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
        (tmp_path / "content" / "posts").mkdir(parents=True, exist_ok=True)
        for post in posts or []:
            write_post(tmp_path, **post)
        return tmp_path

    return factory
