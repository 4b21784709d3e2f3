"""blockpalette - command palette engine for block-based editors.

Type a few words, get a ranked list of blocks to insert and editor
actions to run.

Layers:
    - core: Configuration, logging, exceptions
    - host: Message catalog and workspace accessor interfaces
    - engine: Catalog building, label resolution, scoring, ranking
    - interaction: Block pick flow and drag sequencing
"""

__version__ = "0.1.0"
