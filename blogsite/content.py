from __future__ import annotations

import datetime as dt
import html as html_lib
import json
import re
import tomllib
from pathlib import Path

import yaml

from .config import as_bool

TOP_LEVEL_ITEM_RE = re.compile(r"^(?:[-+*]|\d+[.)])\s+")
LIST_ITEM_RE = re.compile(r"^\s*(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^\s*(?P<marker>`{3,}|~{3,})")
# A CJK character counts as one word; elsewhere words are runs of letters and digits.
WORD_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]|[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")
SLUG_DROP_RE = re.compile(r"[^\w\s-]")
SLUG_JOIN_RE = re.compile(r"[\s_-]+")
WORDS_PER_MINUTE = 212

FRONT_MATTER_FENCES = {"---": "yaml", "+++": "toml"}
YAML_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class FrontMatterError(ValueError):
    """Raised when a post file cannot be decoded or its header parsed."""


class FrontMatterLoader(yaml.SafeLoader):
    """Safe loader that leaves unquoted timestamps as strings.

    Dates are parsed by :func:`parse_date`, so an impossible date such as
    ``2023-13-45`` is reported against its post instead of failing inside
    the YAML constructor.
    """


FrontMatterLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != YAML_TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def slugify(text: str, fallback: str = "post") -> str:
    text = SLUG_DROP_RE.sub("", text.strip().lower())
    return SLUG_JOIN_RE.sub("-", text).strip("-") or fallback


def parse_front_matter(text: str) -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() not in FRONT_MATTER_FENCES:
        return {}, clean_text

    fence = lines[0].strip()
    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == fence:
            end = i
            break
    if end is None:
        raise FrontMatterError(f"unterminated front matter, expected closing {fence!r}")

    header = "\n".join(lines[1:end])
    if FRONT_MATTER_FENCES[fence] == "toml":
        try:
            meta = tomllib.loads(header)
        except tomllib.TOMLDecodeError as exc:
            raise FrontMatterError(f"invalid TOML front matter: {exc}") from exc
    else:
        try:
            meta = yaml.load(header, Loader=FrontMatterLoader)
        except (yaml.YAMLError, ValueError) as exc:
            raise FrontMatterError(f"invalid YAML front matter: {exc}") from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise FrontMatterError("front matter must be a mapping")
    body = "\n".join(lines[end + 1 :])
    return meta, body


def parse_date(value: object) -> dt.datetime | None:
    """Turn a front matter date into an aware datetime.

    YAML dates arrive as strings, TOML ones as ``datetime``/``date``
    objects. Values without an offset are taken as UTC. Returns ``None``
    for anything unparseable.
    """
    if isinstance(value, dt.datetime):
        result = value
    elif isinstance(value, dt.date):
        result = dt.datetime.combine(value, dt.time())
    elif isinstance(value, str) and value.strip():
        try:
            result = dt.datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if result.tzinfo is None:
        result = result.replace(tzinfo=dt.timezone.utc)
    return result


def parse_tags(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        items = [value]
    return [str(item).strip() for item in items if str(item).strip()]


def read_post(path: Path, root: Path) -> dict:
    try:
        raw_text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise FrontMatterError(f"not valid UTF-8 (byte {exc.start})") from exc
    meta, body = parse_front_matter(raw_text)
    title = meta.get("title")
    return {
        "source": path.relative_to(root).as_posix(),
        "title": "" if title is None else str(title).strip(),
        "raw_date": meta.get("date"),
        "date": parse_date(meta.get("date")),
        "draft": as_bool(meta.get("draft")),
        "tags": parse_tags(meta.get("tags")),
        "summary": str(meta.get("summary") or meta.get("description") or "").strip(),
        "slug": str(meta.get("slug") or "").strip(),
        "body": body,
    }


def validate_post(post: dict) -> list[str]:
    source = post["source"]
    problems = []
    if not post.get("title"):
        problems.append(f"{source}: missing title")
    raw_date = post.get("raw_date")
    if raw_date is None or (isinstance(raw_date, str) and not raw_date.strip()):
        problems.append(f"{source}: missing date")
    elif post.get("date") is None:
        problems.append(f"{source}: unparseable date {raw_date!r}")
    return problems


def normalize_list_spacing(text: str) -> str:
    """Put a blank line between a paragraph and a top-level list below it.

    Python-Markdown only starts a list after a blank line. Fenced code is
    left alone.
    """
    out: list[str] = []
    fence = None
    for line in text.splitlines():
        match = FENCE_RE.match(line)
        if match:
            marker = match.group("marker")
            if fence is None:
                fence = marker
            elif marker == fence:
                fence = None
        elif fence is None and out and TOP_LEVEL_ITEM_RE.match(line):
            previous = out[-1]
            if previous.strip() and not LIST_ITEM_RE.match(previous):
                out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str) -> int:
    return len(WORD_RE.findall(html_lib.unescape(text)))


def reading_minutes(words: int) -> int:
    return max(1, round(words / WORDS_PER_MINUTE))


def new_post(content_dir: Path, name: str, now: dt.datetime) -> Path:
    path = content_dir / name
    if path.suffix.lower() != ".md":
        path = path.with_suffix(".md")
    if path.exists():
        raise FileExistsError(path)
    title = path.stem.replace("-", " ").replace("_", " ").strip().title()
    if now.tzinfo is None:
        now = now.astimezone()
    header = (
        "---\n"
        f"title: {json.dumps(title, ensure_ascii=False)}\n"
        f"date: {now.replace(microsecond=0).isoformat()}\n"
        "draft: true\n"
        "---\n\n"
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(header, encoding="utf-8")
    return path


def is_published(post: dict, now: dt.datetime, build_drafts: bool = False, build_future: bool = False) -> bool:
    if post["draft"] and not build_drafts:
        return False
    if post["date"] > now and not build_future:
        return False
    return True


def sort_posts(posts: list[dict]) -> list[dict]:
    """Newest first; same-instant posts fall back to title, then source path."""
    ordered = sorted(posts, key=lambda p: (p["title"].lower(), p["source"]))
    ordered.sort(key=lambda p: p["date"], reverse=True)
    return ordered


def tag_slug(tag: str) -> str:
    return slugify(tag, fallback="tag")


def assign_slugs(posts: list[dict]) -> None:
    used_slugs: set[str] = set()
    for post in sorted(posts, key=lambda p: p["source"]):
        candidate = slugify(post["slug"] or Path(post["source"]).stem)
        slug = candidate
        counter = 2
        while slug in used_slugs:
            slug = f"{candidate}-{counter}"
            counter += 1
        used_slugs.add(slug)
        post["slug"] = slug
        post["url"] = f"posts/{slug}/"


def build_tag_map(posts: list[dict]) -> dict[str, dict]:
    """Group posts by tag page, keyed by the slug the page is written under.

    Tags that share a slug (``Go``/``go``, ``C``/``C++``) share one page,
    labelled with the first spelling seen. Post order is kept.
    """
    tag_map: dict[str, dict] = {}
    for post in posts:
        for tag in post["tags"]:
            entry = tag_map.setdefault(tag_slug(tag), {"name": tag, "posts": []})
            if not entry["posts"] or entry["posts"][-1] is not post:
                entry["posts"].append(post)
    return tag_map
