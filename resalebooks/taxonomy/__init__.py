"""
Taxonomy: department/category/subcategory resolution, analytics groupings
and sale platform options.
"""

from resalebooks.taxonomy.groupings import GroupingService, GroupingView
from resalebooks.taxonomy.platforms import PlatformCatalog
from resalebooks.taxonomy.resolver import (
    TaxonomyLevel,
    TaxonomyNode,
    TaxonomyResolver,
    TaxonomyTriple,
    quick_find,
)
from resalebooks.taxonomy.selection import ResolvedTaxonomy, TaxonomySelection

__all__ = [
    "GroupingService",
    "GroupingView",
    "PlatformCatalog",
    "ResolvedTaxonomy",
    "TaxonomyLevel",
    "TaxonomyNode",
    "TaxonomyResolver",
    "TaxonomySelection",
    "TaxonomyTriple",
    "quick_find",
]
