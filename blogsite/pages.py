from __future__ import annotations

import datetime as dt
import html
import json
import math
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from urllib.parse import urlparse

from .content import reading_minutes, tag_slug
from .render import minify, render_template, write_text

DISPLAY_DATE_FMT = "%b %d, %Y"


def permalink(site: dict, path: str) -> str:
    return f"{site['base_url'].rstrip('/')}/{path.lstrip('/')}"


def site_path(site: dict) -> str:
    """Path component of baseURL without the trailing slash ('' at the domain root)."""
    return urlparse(site["base_url"]).path.rstrip("/")


def rfc822_date(value: dt.datetime) -> str:
    return value.strftime("%a, %d %b %Y %H:%M:%S %z")


def iso_date(value: dt.datetime) -> str:
    return value.isoformat(timespec="seconds")


def link_href(url: str, root: str) -> str:
    if url.startswith("/") and not url.startswith("//"):
        return f"{root}{url}"
    return url


def write_page(site: dict, path: Path, html_doc: str) -> None:
    if site.get("minify"):
        html_doc = minify(html_doc)
    write_text(path, html_doc)


def render_page(
    site: dict, root: str, title: str, content: str, description: str = "", extra_head: str = ""
) -> str:
    body_class = "" if site["selectable"] else "not-selectable"
    return render_template(
        site["base_template"],
        lang=html.escape(site["language_code"]),
        title=html.escape(title),
        description=html.escape(description or site["description"]),
        root=root,
        site_title=html.escape(site["title"]),
        extra_head=extra_head,
        analytics=site["analytics"],
        body_class=body_class,
        copyright=html.escape(site["copyright"]),
        content=content,
    )


def feed_head(site: dict, root: str) -> str:
    links = []
    if "RSS" in site["outputs"]:
        links.append(
            f'<link rel="alternate" type="application/rss+xml" href="{root}/index.xml" '
            f'title="{html.escape(site["title"])}">'
        )
    if not site["highlight"]["no_classes"]:
        links.append(f'<link rel="stylesheet" href="{root}/css/syntax.css">')
    return "\n".join(links)


def build_tag_links(tags: list[str], root: str) -> str:
    return " ".join(
        f'<a class="tag" href="{root}/tags/{tag_slug(tag)}/">#{html.escape(tag)}</a>' for tag in tags
    )


def build_post_list(site: dict, posts: list[dict], root: str) -> str:
    if not posts:
        return '<p class="post-empty">No posts yet.</p>'
    items = []
    for post in posts:
        url = f"{root}/{post['url']}"
        parts = [f'<li class="post-item"><a class="post-link" href="{url}">{html.escape(post["title"])}</a>']
        if site["display_date"]:
            parts.append(
                f'<time class="post-date" datetime="{iso_date(post["date"])}">'
                f'{post["date"].strftime(DISPLAY_DATE_FMT)}</time>'
            )
        if site["display_description"] and post["summary"]:
            parts.append(f'<p class="post-summary">{html.escape(post["summary"])}</p>')
        parts.append("</li>")
        items.append("".join(parts))
    return f'<ul class="post-list">{"".join(items)}</ul>'


def build_social_links(site: dict, root: str) -> str:
    if not site["social"]:
        return ""
    items = []
    for entry in site["social"]:
        href = html.escape(link_href(entry["url"], root), quote=True)
        name = html.escape(entry["name"])
        items.append(f'<li><a class="social-link social-{name}" href="{href}" rel="me">{name}</a></li>')
    return f'<ul class="social-links">{"".join(items)}</ul>'


def build_profile(site: dict, root: str) -> str:
    author = site["author"]
    parts = ['<section class="profile">']
    if author["status"]:
        parts.append(f'<div class="profile-status">{html.escape(author["status"])}</div>')
    if site["author_html"]:
        parts.append(f'<div class="profile-description">{site["author_html"]}</div>')
    parts.append(build_social_links(site, root))
    parts.append("</section>")
    return "".join(parts)


def page_path(page: int) -> str:
    if page == 1:
        return ""
    return f"page/{page}/"


def build_pagination(page: int, total_pages: int, root: str) -> str:
    if total_pages <= 1:
        return ""
    items = []
    if page > 1:
        items.append(f'<a class="page-link page-prev" href="{root}/{page_path(page - 1)}">Newer posts</a>')
    if page < total_pages:
        items.append(f'<a class="page-link page-next" href="{root}/{page_path(page + 1)}">Older posts</a>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def build_home_html(site: dict, output_dir: Path, posts: list[dict]) -> int:
    per_page = max(1, int(site["paginate"]))
    total_pages = max(1, math.ceil(len(posts) / per_page))
    for page in range(1, total_pages + 1):
        root = "." if page == 1 else "../.."
        start = (page - 1) * per_page
        page_posts = posts[start : start + per_page]
        content = (
            f"{build_profile(site, root) if page == 1 else ''}"
            f"{build_post_list(site, page_posts, root)}"
            f"{build_pagination(page, total_pages, root)}"
        )
        title = site["title"] if page == 1 else f"{site['title']} | Page {page}"
        html_doc = render_page(site, root, title, content, extra_head=feed_head(site, root))
        write_page(site, output_dir / page_path(page) / "index.html", html_doc)
    return total_pages


def build_home_rss(site: dict, output_dir: Path, posts: list[dict]) -> None:
    limit = site["rss_limit"]
    feed_posts = posts if limit < 0 else posts[:limit]
    home = permalink(site, "")
    items = []
    for post in feed_posts:
        link = permalink(site, post["url"])
        items.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(post['title'])}</title>",
                    f"<link>{html.escape(link)}</link>",
                    f"<pubDate>{rfc822_date(post['date'])}</pubDate>",
                    f"<guid>{html.escape(link)}</guid>",
                    f"<description>{html.escape(post['summary'])}</description>",
                    "</item>",
                ]
            )
        )
    channel = [
        '<?xml version="1.0" encoding="utf-8" standalone="yes"?>',
        '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">',
        "<channel>",
        f"<title>{html.escape(site['title'])}</title>",
        f"<link>{html.escape(home)}</link>",
        f"<description>Recent content on {html.escape(site['title'])}</description>",
        "<generator>blogsite</generator>",
        f"<language>{html.escape(site['language_code'])}</language>",
    ]
    if site["copyright"]:
        channel.append(f"<copyright>{html.escape(site['copyright'])}</copyright>")
    if feed_posts:
        channel.append(f"<lastBuildDate>{rfc822_date(feed_posts[0]['date'])}</lastBuildDate>")
    channel.append(
        f'<atom:link href="{html.escape(permalink(site, "index.xml"))}" rel="self" type="application/rss+xml" />'
    )
    channel.extend(items)
    channel.extend(["</channel>", "</rss>"])
    write_text(output_dir / "index.xml", "\n".join(channel))


def build_home_json(site: dict, output_dir: Path, posts: list[dict]) -> None:
    index = []
    for post in posts:
        index.append(
            {
                "title": post["title"],
                "permalink": permalink(site, post["url"]),
                "date": iso_date(post["date"]),
                "summary": post["summary"],
                "tags": post["tags"],
                "content": post["plain"],
            }
        )
    write_text(output_dir / "index.json", json.dumps(index, indent=2, ensure_ascii=False))


def build_posts(site: dict, output_dir: Path, posts: list[dict], workers: int = 1) -> int:
    root = "../.."

    def render_post(post: dict) -> None:
        meta = []
        if site["display_date"]:
            meta.append(
                f'<time class="post-date" datetime="{iso_date(post["date"])}">'
                f'{post["date"].strftime(DISPLAY_DATE_FMT)}</time>'
            )
        meta.append(
            f'<span class="post-reading">{reading_minutes(post["words"])} min read '
            f'({post["words"]} words)</span>'
        )
        if post.get("draft"):
            meta.append('<span class="post-draft">Draft</span>')
        toc_html = post.get("toc", "")
        toc = f'<nav class="post-toc">{toc_html}</nav>' if "<li" in toc_html else ""
        content = (
            '<article class="post">'
            f'<h1 class="post-title">{html.escape(post["title"])}</h1>'
            f'<div class="post-meta">{"".join(meta)}</div>'
            f"{toc}"
            f'<div class="post-body">{post["content"]}</div>'
            f'<div class="post-tags">{build_tag_links(post["tags"], root)}</div>'
            "</article>"
        )
        html_doc = render_page(
            site,
            root,
            f"{post['title']} | {site['title']}",
            content,
            description=post["summary"],
            extra_head=feed_head(site, root),
        )
        write_page(site, output_dir / post["url"] / "index.html", html_doc)

    workers = max(1, int(workers or 1))
    if workers <= 1 or len(posts) <= 1:
        for post in posts:
            render_post(post)
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(posts))) as executor:
            list(executor.map(render_post, posts))
    return len(posts)


def build_tags(site: dict, output_dir: Path, tag_map: dict[str, dict]) -> int:
    ordered = sorted(tag_map.items())
    rows = []
    for slug, entry in ordered:
        rows.append(
            f'<li><a class="tag" href="./{slug}/">#{html.escape(entry["name"])}</a>'
            f'<span class="count">{len(entry["posts"])}</span></li>'
        )
    listing = f'<ul class="tag-list">{"".join(rows)}</ul>' if rows else '<p class="post-empty">No tags yet.</p>'
    content = f'<h1 class="page-title">Tags</h1>{listing}'
    write_page(site, output_dir / "tags" / "index.html", render_page(site, "..", f"Tags | {site['title']}", content))

    root = "../.."
    for slug, entry in ordered:
        name = entry["name"]
        content = f'<h1 class="page-title">#{html.escape(name)}</h1>{build_post_list(site, entry["posts"], root)}'
        html_doc = render_page(site, root, f"{name} | {site['title']}", content)
        write_page(site, output_dir / "tags" / slug / "index.html", html_doc)
    return len(ordered) + 1


def build_sitemap(
    site: dict, output_dir: Path, posts: list[dict], tag_map: dict[str, dict], total_pages: int
) -> None:
    latest = posts[0]["date"] if posts else None
    urls = [(permalink(site, ""), latest), (permalink(site, "tags/"), latest)]
    for page in range(2, total_pages + 1):
        urls.append((permalink(site, page_path(page)), None))
    for post in posts:
        urls.append((permalink(site, post["url"]), post["date"]))
    for slug, entry in sorted(tag_map.items()):
        urls.append((permalink(site, f"tags/{slug}/"), entry["posts"][0]["date"]))
    items = []
    for url, lastmod in urls:
        lines = ["<url>", f"<loc>{html.escape(url)}</loc>"]
        if lastmod:
            lines.append(f"<lastmod>{iso_date(lastmod)}</lastmod>")
        lines.append("</url>")
        items.append("\n".join(lines))
    sitemap = "\n".join(
        [
            '<?xml version="1.0" encoding="utf-8" standalone="yes"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )
    write_text(output_dir / "sitemap.xml", sitemap)


def build_404(site: dict, output_dir: Path) -> None:
    # Served for any missing path, so links are absolute from the site's base path.
    root = site_path(site)
    content = (
        '<h1 class="page-title">404</h1>'
        '<p>The page you requested does not exist.</p>'
        f'<p><a href="{html.escape(root)}/">Back to home</a></p>'
    )
    write_page(site, output_dir / "404.html", render_page(site, root, f"404 | {site['title']}", content))
