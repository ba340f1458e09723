from __future__ import annotations

import json
import logging
import re
from typing import Final
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment

from config.web_config import WebConfig
from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult
from tools.http_client import HttpClient, HttpConfig

logger = logging.getLogger("OpsClaw.WebTool")

BROWSER_HEADERS: Final[dict[str, str]] = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/json,text/plain,*/*",
    "Accept-Language": "en-US,en;q=0.9",
}

_DROP_TAGS: Final[list[str]] = [
    "head",
    "script",
    "style",
    "nav",
    "footer",
    "header",
    "svg",
    "noscript",
]
_BLOCK_TAGS: Final[list[str]] = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "div", "tr"]


def _readable_text(soup: BeautifulSoup) -> str:
    for tag in soup(_DROP_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()
    for tag in soup.find_all("br"):
        tag.replace_with("\n")
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.append("\n")
    for tag in soup.find_all(["td", "th"]):
        tag.insert(0, " | ")
    text = re.sub(r"[ \t]+", " ", soup.get_text())
    text = re.sub(r"^ +", "", text, flags=re.MULTILINE)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def _meta_description(soup: BeautifulSoup) -> str:
    meta = soup.find("meta", attrs={"name": "description"}) or soup.find(
        "meta", attrs={"property": "og:description"}
    )
    content = meta.get("content") if meta is not None else None
    return content.strip() if isinstance(content, str) else ""


def strip_html(markup: str) -> str:
    return _readable_text(BeautifulSoup(markup, "html.parser"))


def normalize_url(raw: str) -> str | None:
    url = raw.strip()
    if not url:
        return None
    if not url.startswith(("http://", "https://")):
        if "://" in url:
            return None
        url = f"https://{url}"
    parsed = urlparse(url)
    if not parsed.netloc or " " in parsed.netloc:
        return None
    return url


class WebTool:
    """Fetches a page and reduces it to readable text."""

    def __init__(self, config: WebConfig | None = None, http_client: HttpClient | None = None) -> None:
        self.config = config or WebConfig()
        self.http = http_client or HttpClient(
            HttpConfig(timeout=self.config.timeout, max_bytes=self.config.max_bytes)
        )

    def browse(self, raw_url: str) -> CommandResult:
        if not raw_url.strip():
            return CommandResult.fail("Usage: /browse <url>")
        url = normalize_url(raw_url)
        if url is None:
            return CommandResult.fail(f"Invalid URL: {raw_url.strip()}")

        result = self.http.get_text(url, headers=BROWSER_HEADERS, allow_redirects=True)
        if not result.ok or not isinstance(result.data, str):
            return CommandResult.fail(f"Fetch failed for {url}: {result.error or 'no content'}")

        limit = self.config.max_output_chars
        body = result.data
        if "json" in result.content_type:
            try:
                return CommandResult.ok(json.dumps(json.loads(body), indent=2)[:limit])
            except json.JSONDecodeError:
                return CommandResult.ok(body[:limit])
        if "text/plain" in result.content_type:
            return CommandResult.ok(body[:limit])

        soup = BeautifulSoup(body, "html.parser")
        title = soup.title.get_text(" ", strip=True) if soup.title is not None else ""
        description = _meta_description(soup)
        header = f"**{title}**\n" if title else ""
        desc = f"_{description}_\n\n" if description else ""
        content = f"{header}{desc}{_readable_text(soup)}"[:limit]
        logger.info("page_fetched", extra={"url": url, "chars": len(content)})
        return CommandResult.ok(content or "Page loaded but no readable text extracted.")


def build_browse_command(tool: WebTool | None = None) -> CommandDescriptor:
    web = tool or WebTool()

    def _execute(args: str, ctx: CommandContext) -> CommandResult:
        return web.browse(args)

    return CommandDescriptor(
        name="browse",
        aliases=("fetch", "url"),
        description="Fetch and read content from a URL",
        usage="/browse <url>",
        handler=_execute,
    )
