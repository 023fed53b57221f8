"""
Data layer for the betting service.

Upstream league data comes from the Sleeper API through SleeperClient, with
short-lived responses held in the cache layer.
"""
