"""site_harvest.parser: разбор sitemap.xml."""

from .sitemap_parser import parse_sitemap

__all__ = ["parse_sitemap"]
