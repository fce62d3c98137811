"""hostpanel - control plane for game/application hosting nodes."""

__version__ = "1.0.0"
