"""appext: discover, load and govern application extensions."""

__version__ = "0.1.0"
