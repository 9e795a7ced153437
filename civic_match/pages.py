"""UI shell pages and assets the offline worker precaches."""

from html import escape
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, RedirectResponse, Response

ASSETS_DIR = Path(__file__).parent / "assets"

APP_NAME = "Civic Match"
APP_DESCRIPTION = "Connect with civic tech founders."
THEME_COLOR = "#111827"

router = APIRouter(tags=["pages"])


def render_layout(title: str, body: str) -> str:
    """Wrap page content in the root layout (head, manifest, icons)."""
    return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1, maximum-scale=1, user-scalable=no">
    <meta name="theme-color" content="{THEME_COLOR}">
    <meta name="description" content="{escape(APP_DESCRIPTION)}">
    <title>{escape(title)}</title>
    <link rel="manifest" href="/manifest.webmanifest">
    <link rel="icon" href="/icon.svg">
  </head>
  <body>
    <div class="app">{body}</div>
  </body>
</html>
"""


def _logo(size: int) -> str:
    return f'<img src="/icon.svg" alt="{APP_NAME}" width="{size}" height="{size}">'


@router.get("/", response_class=HTMLResponse)
def app_shell() -> str:
    """Application shell; the client-side app renders into it."""
    body = f"""
    <header class="top-bar">{_logo(32)}<span>{APP_NAME}</span></header>
    <main id="root"></main>
    """
    return render_layout(APP_NAME, body)


@router.get("/offline", response_class=HTMLResponse)
def offline_page() -> str:
    """Fallback served by the offline worker when a navigation fails."""
    body = f"""
    <main class="offline">
      {_logo(64)}
      <h1>You are offline</h1>
      <p>Check your connection and try again. Some pages may be available from cache.</p>
      <button type="button" onclick="window.location.reload()">Retry</button>
    </main>
    """
    return render_layout(f"Offline | {APP_NAME}", body)


@router.get("/profile")
def profile_redirect() -> RedirectResponse:
    """Old profile URL; profiles now live under /profiles."""
    return RedirectResponse(url="/profiles", status_code=307)


@router.get("/manifest.webmanifest")
def manifest() -> Response:
    content = (ASSETS_DIR / "manifest.webmanifest").read_bytes()
    return Response(content=content, media_type="application/manifest+json")


@router.get("/icon.svg")
def icon() -> Response:
    content = (ASSETS_DIR / "icon.svg").read_bytes()
    return Response(content=content, media_type="image/svg+xml")


@router.get("/favicon.ico")
def favicon() -> Response:
    # Modern browsers accept an SVG favicon
    content = (ASSETS_DIR / "icon.svg").read_bytes()
    return Response(content=content, media_type="image/svg+xml")
