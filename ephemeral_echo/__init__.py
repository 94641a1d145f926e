"""ephemeral-echo: deletion proof input assembly and proving pipeline."""

__version__ = "0.1.0"
