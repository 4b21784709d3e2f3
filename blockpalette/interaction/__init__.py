"""Interaction collaborators driven by candidate invocations.

Components:
    - pick: "Click a block to ..." flows with timeout and cancel
    - drag: Press-then-move sequencing after a block is inserted
"""
