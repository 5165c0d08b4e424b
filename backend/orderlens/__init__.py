"""
orderlens: turn pharmaceutical purchase-order lines into master-data references.
"""
__version__ = "0.1.0"
