"""aics: AI Context Sitemap generator."""

__version__ = "0.1.0"
