"""Regular-language constrained shortest paths on labelled road networks.

Provides regex-to-DFA compilation, graph and order file readers, and
bidirectional Dijkstra, LSD and PCSP query methods.
"""

__version__ = "0.1.0"