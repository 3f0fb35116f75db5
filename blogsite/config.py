from __future__ import annotations

import json
import sys
import tomllib
from pathlib import Path
from urllib.parse import urlparse

import markdown
import yaml

OUTPUT_FORMATS = ("HTML", "RSS", "JSON")
DEFAULT_THEME = "minima"
DEFAULT_HIGHLIGHT_STYLE = "monokai"

GA_SNIPPET = """<script async src="https://www.googletagmanager.com/gtag/js?id={id}"></script>
<script>
  window.dataLayer = window.dataLayer || [];
  function gtag(){{dataLayer.push(arguments);}}
  gtag('js', new Date());
  gtag('config', '{id}');
</script>"""


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            print(f"Invalid TOML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        return data
    if suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            print(f"Invalid YAML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        if data is None:
            return {}
        if not isinstance(data, dict):
            print(f"YAML config must be a mapping: {path}", file=sys.stderr)
            sys.exit(1)
        return data
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        print(f"Invalid JSON in config file {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"JSON config must be an object: {path}", file=sys.stderr)
        sys.exit(1)
    return data


def as_bool(value: object) -> bool:
    """Read a flag from YAML, TOML or the command line.

    Besides real booleans, "true", "yes", "on" and "1" (any case) count as
    true. Everything else, including a missing value, is false.
    """
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "on", "1"}
    return value is True or (type(value) is int and value != 0)


def as_int(value: object, default: int) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def find_config(source: Path) -> Path:
    """Return the first ``config.{yaml,yml,toml,json}`` in ``source``."""
    for name in ("config.yaml", "config.yml", "config.toml", "config.json"):
        candidate = source / name
        if candidate.exists():
            return candidate
    return source / "config.yaml"


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def _lookup(section: dict, key: str, default: object = None) -> object:
    # Hugo config keys are case-insensitive.
    if key in section:
        return section[key]
    lowered = key.lower()
    for name, value in section.items():
        if str(name).lower() == lowered:
            return value
    return default


def home_outputs(raw: dict) -> list[str]:
    outputs = _section(raw, "outputs")
    value = _lookup(outputs, "home")
    if value is None:
        return list(OUTPUT_FORMATS)
    if isinstance(value, str):
        value = [value]
    return [str(item).upper() for item in value]


def site_settings(raw: dict) -> dict:
    """Normalise a raw config mapping into the settings used by the build.

    Missing keys get the defaults the bundled theme expects; unknown keys
    are ignored.
    """
    params = _section(raw, "params")
    author = _section(raw, "author")
    markup = _section(raw, "markup")
    highlight = _lookup(markup, "highlight", {})
    if not isinstance(highlight, dict):
        highlight = {}
    social = []
    for entry in _lookup(params, "social", []) or []:
        if not isinstance(entry, dict):
            continue
        social.append(
            {
                "name": str(entry.get("name") or "").strip(),
                "url": str(entry.get("url") or "").strip(),
            }
        )
    return {
        "base_url": str(_lookup(raw, "baseURL", "") or "").strip(),
        "theme": str(_lookup(raw, "theme", DEFAULT_THEME) or DEFAULT_THEME),
        "language_code": str(_lookup(raw, "languageCode", "en-us") or "en-us"),
        "title": str(_lookup(raw, "title", "") or ""),
        "copyright": str(_lookup(raw, "copyright", "") or ""),
        "google_analytics": str(_lookup(raw, "googleAnalytics", "") or "").strip(),
        "outputs": home_outputs(raw),
        "highlight": {
            "line_nos": as_bool(_lookup(highlight, "lineNos", False)),
            "no_classes": as_bool(_lookup(highlight, "noClasses", True)),
            "style": str(_lookup(highlight, "style", DEFAULT_HIGHLIGHT_STYLE) or DEFAULT_HIGHLIGHT_STYLE),
        },
        "author": {
            "name": str(_lookup(author, "name", "") or ""),
            "status": str(_lookup(author, "status", "") or ""),
            "description": str(_lookup(author, "description", "") or ""),
        },
        "description": str(_lookup(params, "description", "") or "").strip(),
        "display_date": as_bool(_lookup(params, "displayDate", True)),
        "display_description": as_bool(_lookup(params, "displayDescription", True)),
        "selectable": as_bool(_lookup(params, "selectable", True)),
        "social": social,
        "paginate": max(1, as_int(_lookup(raw, "paginate"), 10)),
        "rss_limit": as_int(_lookup(raw, "rssLimit"), -1),
        "publish_dir": str(_lookup(raw, "publishDir", "public") or "public"),
        "build_drafts": as_bool(_lookup(raw, "buildDrafts", False)),
        "build_future": as_bool(_lookup(raw, "buildFuture", False)),
    }


def is_valid_link(url: str) -> bool:
    if url.startswith("/") and not url.startswith("//"):
        return True
    parsed = urlparse(url)
    if parsed.scheme == "mailto":
        address = parsed.path
        local, _, domain = address.partition("@")
        return bool(local and domain)
    if parsed.scheme in {"http", "https"}:
        return bool(parsed.netloc)
    return False


def validate_config(raw: dict) -> list[str]:
    problems = []

    base_url = _lookup(raw, "baseURL")
    if base_url:
        parsed = urlparse(str(base_url))
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            problems.append(f"baseURL is not an absolute http(s) URL: {base_url!r}")

    outputs_section = _lookup(raw, "outputs")
    if outputs_section is not None and not isinstance(outputs_section, dict):
        problems.append("outputs must be a mapping of page kinds to formats")
    outputs = _lookup(_section(raw, "outputs"), "home")
    if outputs is not None:
        if not isinstance(outputs, list):
            problems.append("outputs.home must be a list")
        else:
            for value in outputs:
                if str(value).upper() not in OUTPUT_FORMATS:
                    allowed = ", ".join(OUTPUT_FORMATS)
                    problems.append(f"outputs.home: unknown format {value!r} (allowed: {allowed})")

    highlight = _lookup(_section(raw, "markup"), "highlight")
    if isinstance(highlight, dict):
        for key in ("lineNos", "noClasses"):
            value = _lookup(highlight, key)
            if value is not None and not isinstance(value, bool):
                problems.append(f"markup.highlight.{key} must be true or false, got {value!r}")

    social = _lookup(_section(raw, "params"), "social")
    if social is not None:
        if not isinstance(social, list):
            problems.append("params.social must be a list")
            social = []
        for index, entry in enumerate(social, start=1):
            if not isinstance(entry, dict):
                problems.append(f"params.social[{index}] must be a mapping with name and url")
                continue
            name = str(entry.get("name") or "").strip()
            url = str(entry.get("url") or "").strip()
            if not name:
                problems.append(f"params.social[{index}]: missing name")
            if not url:
                problems.append(f"params.social[{index}] ({name or '?'}): missing url")
            elif not is_valid_link(url):
                problems.append(f"params.social[{index}] ({name or '?'}): invalid url {url!r}")
    return problems


def analytics_snippet(tracking_id: str) -> str:
    tracking_id = tracking_id.strip()
    if not tracking_id:
        return ""
    return GA_SNIPPET.format(id=tracking_id)


def author_html(description: str) -> str:
    text = description.strip()
    if not text:
        return ""
    md = markdown.Markdown(extensions=["tables"])
    return md.convert(text)
