"""
**TOPOLOGY**

A library for inferring the lineage structure of clustered observations.

Clusters are summarized by their centers and dispersions, connected by a
(possibly constrained) minimum spanning forest that includes an artificial
background cluster, and every root-to-leaf path of the forest is returned
as a lineage (an ordered sequence of clusters).

"""
