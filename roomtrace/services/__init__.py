"""
Geometry services: filtering, bridging, wall normalization, polygon
assembly and refinement, label matching and the pipeline that runs them
"""
