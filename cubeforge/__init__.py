"""Client toolkit for a cube physics simulation server: protocol, engine client, joints, constructs and pod scanning."""

__version__ = "0.1.0"