"""ui_compare.core: Foundation layer.

Contains the error taxonomy, shared types, sensitivity profiles, env/settings
loading, raster decoding and the report builder.
This module has NO dependencies on ui_compare.techniques or ui_compare.figma.
Only stdlib, numpy, and PIL are allowed here.
"""
