"""
**CURVES**

A library for fitting smooth representations of lineages with simultaneous
principal curves, intended to order observations along each lineage.

This includes tools for
- projecting observations onto curves (pseudotime and distances)
- scatterplot smoothers used to refit curves
- shrinkage of branching curves toward their shared average.

"""
