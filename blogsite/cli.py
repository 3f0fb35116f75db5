from __future__ import annotations

import argparse
import datetime as dt
import os
import shutil
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .config import (
    analytics_snippet,
    as_bool,
    author_html,
    find_config,
    load_config,
    site_settings,
    validate_config,
)
from .content import (
    FrontMatterError,
    assign_slugs,
    build_tag_map,
    count_words,
    is_published,
    new_post,
    normalize_list_spacing,
    read_post,
    sort_posts,
    validate_post,
)
from .pages import (
    build_404,
    build_home_html,
    build_home_json,
    build_home_rss,
    build_posts,
    build_sitemap,
    build_tags,
)
from .render import (
    copy_static,
    fix_relative_img_src,
    highlight_css,
    markdown_renderer,
    plain_text,
    render_markdown,
    summarize,
    write_text,
)
from .theme import find_theme, load_base_template


def resolve_workers(value: object) -> int:
    workers = int(value or 0)
    if workers <= 0:
        workers = os.cpu_count() or 1
    return max(1, min(workers, 32))


def report_problems(problems: list[str]) -> None:
    for problem in problems:
        print(f"ERROR {problem}", file=sys.stderr)


def load_site(args: argparse.Namespace) -> tuple[Path, dict, dict]:
    project_root = Path(args.source).resolve()
    config_path = Path(args.config) if args.config else find_config(project_root)
    if not config_path.is_absolute():
        config_path = project_root / config_path
    if not config_path.exists():
        print(f"Config file not found: {config_path}", file=sys.stderr)
        sys.exit(1)
    raw = load_config(config_path)
    problems = [f"{config_path.name}: {problem}" for problem in validate_config(raw)]
    if problems:
        report_problems(problems)
        sys.exit(1)
    return project_root, raw, site_settings(raw)


def collect_posts(posts_dir: Path, content_dir: Path, workers: int) -> tuple[list[dict], list[str]]:
    post_files = sorted(posts_dir.rglob("*.md"), key=lambda p: p.as_posix())

    def parse(path: Path) -> tuple[dict | None, list[str]]:
        try:
            post = read_post(path, content_dir)
        except FrontMatterError as exc:
            return None, [f"{path.relative_to(content_dir).as_posix()}: {exc}"]
        return post, validate_post(post)

    parse_workers = min(workers, len(post_files)) if post_files else 1
    if parse_workers > 1:
        with ThreadPoolExecutor(max_workers=parse_workers) as executor:
            results = list(executor.map(parse, post_files))
    else:
        results = [parse(path) for path in post_files]

    posts = []
    problems = []
    for post, post_problems in results:
        problems.extend(post_problems)
        if post is not None and not post_problems:
            posts.append(post)
    return posts, problems


def render_posts(posts: list[dict], highlight: dict, workers: int) -> None:
    def render(post: dict) -> None:
        md = markdown_renderer(highlight)
        html_content, toc_html = render_markdown(md, normalize_list_spacing(post["body"]))
        post["content"] = fix_relative_img_src(html_content, "../..")
        post["toc"] = toc_html
        post["plain"] = plain_text(html_content)
        post["words"] = count_words(post["plain"])
        if not post["summary"]:
            post["summary"] = summarize(html_content)

    if workers > 1 and len(posts) > 1:
        with ThreadPoolExecutor(max_workers=min(workers, len(posts))) as executor:
            list(executor.map(render, posts))
    else:
        for post in posts:
            render(post)


def prepare_output_dir(output_dir: Path, project_root: Path, clean: bool) -> None:
    """Create the publish directory, emptying it first when ``clean`` is set.

    Only a directory strictly inside the project is ever removed.
    """
    if clean and output_dir.exists():
        target = output_dir.resolve()
        if target == project_root:
            print(f"Refusing to clean project root: {output_dir}", file=sys.stderr)
            sys.exit(1)
        if project_root not in target.parents:
            print(f"Refusing to clean {output_dir}: outside of {project_root}", file=sys.stderr)
            sys.exit(1)
        shutil.rmtree(target)
    output_dir.mkdir(parents=True, exist_ok=True)


def build_site(args: argparse.Namespace) -> dict:
    project_root, _, settings = load_site(args)
    if args.base_url:
        settings["base_url"] = args.base_url.strip()
    workers = resolve_workers(getattr(args, "build_workers", 0))

    content_dir = project_root / "content"
    posts_dir = content_dir / "posts"
    if not posts_dir.exists():
        print(f"Posts directory not found: {posts_dir}", file=sys.stderr)
        sys.exit(1)
    theme_dir = find_theme(settings["theme"], project_root)

    posts, problems = collect_posts(posts_dir, content_dir, workers)
    if problems:
        report_problems(problems)
        sys.exit(1)

    now = getattr(args, "now", None) or dt.datetime.now(dt.timezone.utc)
    published = []
    drafts = future = 0
    for post in posts:
        if is_published(post, now, args.build_drafts, args.build_future):
            published.append(post)
        elif post["draft"] and not args.build_drafts:
            drafts += 1
        else:
            future += 1
    posts = published
    assign_slugs(posts)
    posts = sort_posts(posts)
    render_posts(posts, settings["highlight"], workers)
    tag_map = build_tag_map(posts)

    output_dir = Path(args.destination)
    if not output_dir.is_absolute():
        output_dir = project_root / output_dir
    prepare_output_dir(output_dir, project_root, args.clean)

    copy_static(theme_dir / "static", output_dir)
    copy_static(project_root / "static", output_dir)
    if not settings["highlight"]["no_classes"]:
        write_text(output_dir / "css" / "syntax.css", highlight_css(settings["highlight"]))
    # GitHub Pages would otherwise run the output through Jekyll.
    (output_dir / ".nojekyll").touch()

    site = dict(settings)
    site.update(
        {
            "base_template": load_base_template(theme_dir),
            "analytics": analytics_snippet(settings["google_analytics"]),
            "author_html": author_html(settings["author"]["description"]),
            "minify": bool(args.minify),
        }
    )

    pages = 0
    total_pages = 1
    if "HTML" in site["outputs"]:
        total_pages = build_home_html(site, output_dir, posts)
        pages += total_pages
    if "RSS" in site["outputs"]:
        build_home_rss(site, output_dir, posts)
    if "JSON" in site["outputs"]:
        build_home_json(site, output_dir, posts)
    pages += build_posts(site, output_dir, posts, workers=workers)
    pages += build_tags(site, output_dir, tag_map)
    build_sitemap(site, output_dir, posts, tag_map, total_pages)
    build_404(site, output_dir)
    pages += 1

    return {
        "output": output_dir,
        "pages": pages,
        "posts": len(posts),
        "tags": len(tag_map),
        "drafts": drafts,
        "future": future,
    }


def check_site(args: argparse.Namespace) -> int:
    project_root, _, settings = load_site(args)
    posts_dir = project_root / "content" / "posts"
    if not posts_dir.exists():
        print(f"Posts directory not found: {posts_dir}", file=sys.stderr)
        return 1
    find_theme(settings["theme"], project_root)
    posts, problems = collect_posts(posts_dir, project_root / "content", resolve_workers(args.build_workers))
    if problems:
        report_problems(problems)
        print(f"{len(problems)} problem(s) found.", file=sys.stderr)
        return 1
    drafts = sum(1 for post in posts if post["draft"])
    print(f"Config OK. {len(posts)} post(s) OK ({drafts} draft).")
    return 0


def create_post(args: argparse.Namespace) -> int:
    content_dir = Path(args.source).resolve() / "content"
    try:
        path = new_post(content_dir, args.path, dt.datetime.now().astimezone())
    except FileExistsError:
        print(f"Content already exists: {content_dir / args.path}", file=sys.stderr)
        return 1
    print(f"Created {path}")
    return 0


def print_stats(stats: dict) -> None:
    rows = [
        ("Pages", str(stats["pages"])),
        ("Posts", str(stats["posts"])),
        ("Tags", str(stats["tags"])),
        ("Drafts", f"{stats['drafts']} (skipped)"),
        ("Future", f"{stats['future']} (skipped)"),
    ]
    width = max(len(label) for label, _ in rows)
    for label, value in rows:
        print(f"{label.ljust(width)} | {value}")


def main(argv: list[str] | None = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--source", "-s", default=".")
    pre_parser.add_argument("--config", default="")
    pre_args, _ = pre_parser.parse_known_args(argv)
    source = Path(pre_args.source)
    if pre_args.config:
        config_path = Path(pre_args.config)
        if not config_path.is_absolute():
            config_path = source / config_path
    else:
        config_path = find_config(source)
    config = load_config(config_path)

    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_bool(key: str, default: bool) -> bool:
        return as_bool(cfg_value(key, default))

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--source", "-s", default=pre_args.source, help="Project directory (config, content, static).")
    common.add_argument("--config", default=pre_args.config, help="Config file (YAML/TOML/JSON), relative to --source.")
    common.add_argument(
        "--build-workers",
        default=0,
        type=int,
        help="Number of worker threads for parsing/rendering (0 = auto).",
    )

    parser = argparse.ArgumentParser(prog="blogsite", description="Markdown blog generator for static hosting.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", parents=[common], help="Render the site into the publish directory.")
    build.add_argument(
        "--destination",
        "-d",
        default=str(cfg_value("publishDir", "public")),
        help="Output directory, relative to --source.",
    )
    build.add_argument("--base-url", "-b", default="", help="Override baseURL from the config.")
    build.add_argument("--minify", action="store_true", help="Minify rendered HTML.")
    build.add_argument(
        "--build-drafts",
        "-D",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("buildDrafts", False),
        help="Include posts marked draft.",
    )
    build.add_argument(
        "--build-future",
        "-F",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("buildFuture", False),
        help="Include posts dated in the future.",
    )
    build.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("cleanDestinationDir", True),
        help="Remove the output directory before building.",
    )

    subparsers.add_parser("check", parents=[common], help="Validate config and posts without writing output.")

    new = subparsers.add_parser("new", parents=[common], help="Create a draft post.")
    new.add_argument("path", help="Path under content/, e.g. posts/my-first-post.md")

    args = parser.parse_args(argv)
    if args.command == "check":
        return check_site(args)
    if args.command == "new":
        return create_post(args)

    start = time.perf_counter()
    stats = build_site(args)
    elapsed = time.perf_counter() - start
    print_stats(stats)
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Site generated in: {stats['output']}")
    return 0
