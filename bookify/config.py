"""Centralized configuration and constants."""

import tempfile
from pathlib import Path

from bookify import __version__

# Working files: one subdirectory per job
TEMP_ROOT = Path(tempfile.gettempdir()) / "bookify"

# HTTP
USER_AGENT = f"bookify/{__version__}"
REQUEST_TIMEOUT = 600  # seconds

# Crawl limits
MAX_PAGES = 300
MAX_DEPTH = 10

# TOC extraction caps
TOC_FALLBACK_LIMIT = 100
TOC_AUGMENT_LIMIT = 50

# Rendering
RENDER_CONCURRENCY = 2
RENDER_TIMEOUT_MS = 60_000
VIEWPORT = {"width": 1920, "height": 1080}
SETTLE_DELAY_MS = 2000
HASH_ROUTE_SETTLE_DELAY_MS = 3000

# Site chrome hidden before printing a page
HIDDEN_CHROME_CSS = """
header, .header, nav, .nav, .navigation, .sidebar, aside,
.cookie-banner, .cookie-notice, [class*='cookie'],
.edit-link, [class*='edit'], .github-edit,
footer, .footer, .skip-link, .skip-to-content
{ display: none !important; }
"""

# How long cancel-and-save waits for in-flight renders to finish
CANCEL_GRACE_SECONDS = 10
