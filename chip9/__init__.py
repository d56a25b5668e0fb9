"""A CHIP-8 virtual machine, a runner that drives it, and a pygame front end."""

__version__ = "0.1.0"
__all__ = ["__version__"]