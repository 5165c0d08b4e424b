"""
Processors: text normalization, row extraction and master-data matching stages.
"""
