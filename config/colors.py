"""
Canonical frame colors.

The color table is small and fixed, so it ships with the code instead
of being loaded from the registry export. Ids match the registry's
color ids; slugs are what autocomplete and free-text lookups use.
"""

# (id, name, slug, display hex)
FRAME_COLORS = [
    (1, "Black", "black", "#000"),
    (2, "Blue", "blue", "#386ed2"),
    (3, "Brown", "brown", "#734a22"),
    (4, "Green", "green", "#1ca72c"),
    (5, "Orange", "orange", "#ff8d1e"),
    (6, "Pink", "pink", "#ff7dfd"),
    (7, "Purple", "purple", "#884bc4"),
    (8, "Red", "red", "#e30000"),
    (9, "Silver, gray or bare metal", "silver", "#d3d3d3"),
    (10, "Stickers tape or other cover-up", "stickers", None),
    (11, "Teal", "teal", "#58cdd6"),
    (12, "White", "white", "#fff"),
    (13, "Yellow or Gold", "yellow", "#fff44b"),
]

# Extra spellings users type that the names above don't cover
COLOR_ALIASES = {
    "grey": "silver",
    "gray": "silver",
    "gold": "yellow",
    "raw": "silver",
    "aluminum": "silver",
}
