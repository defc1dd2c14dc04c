"""DesignHub: interior-design project management API."""

__version__ = "0.1.0"
