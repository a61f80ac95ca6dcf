"""
avatarslots - multi-character Live2D model slots.

Keeps a fixed set of character slots, provisions each slot's model bundle on
demand and tracks which characters are shown on screen.
"""
