"""`calibtree` - cached columnar artifacts for strip tracker calibration runs.

Subpackages:
- analysis: Analysis kinds, typed columns, queries, strip record decoding
- pipeline: Database and artifact store collaborators, cache, builders
- schemas: Configuration models
"""

__version__ = "0.1.0"
