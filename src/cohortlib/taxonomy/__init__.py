"""Topic taxonomy, domain normalisation and domain classification."""
from .models import Topic, DomainMapping, KeywordRule, DomainClassification
from .normalize import normalize_domain
from .taxonomy import Taxonomy, load_taxonomy
from .domain_mapper import DomainMapper

__all__ = [
    "Topic",
    "DomainMapping",
    "KeywordRule",
    "DomainClassification",
    "normalize_domain",
    "Taxonomy",
    "load_taxonomy",
    "DomainMapper",
]
