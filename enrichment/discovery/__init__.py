"""
External data gathering for product enrichment.

Text search, image search and barcode lookup. Every provider failure is
absorbed to an empty result; gathering never aborts the pipeline.
"""
