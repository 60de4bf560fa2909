# Models package init
from notedigest.models.section import Page, PageImage, Section, generate_id

__all__ = ["Page", "PageImage", "Section", "generate_id"]
