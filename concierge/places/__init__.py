"""
Place-search layer.

Responsibilities:
- Define the place stub / detail schema used by the pipeline.
- Declare the abstract GeoPlaceSource the pipeline depends on.
- Talk to the Google Places (New) API over httpx.
- Distinguish "service unreachable" from "zero results".
"""
