"""nodewatch - checks whether a node is a member of an Elasticsearch cluster."""

__version__ = "0.1.0"
