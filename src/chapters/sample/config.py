"""サンプルチャプターの記述子列と配色表。"""

VERSES = [
    {
        "verse_number": 1,
        "verse_text": "Neither from itself nor from another does anything arise.",
        "animation": "superposition",
    },
    {
        "verse_number": 2,
        "verse_text": "Conditions are not the essence of things.",
        "animation": "quantumField",
    },
    {
        "verse_number": 3,
        "verse_text": "What depends on conditions is said to be empty.",
        "animation": "entanglement",
    },
    {
        "verse_number": 4,
        "verse_text": "Emptiness is not a view to hold on to.",
        "animation": "superposition",
    },
]

COLORS = {
    "background": (0.02, 0.02, 0.06, 1.0),
    "primary": (0.29, 0.56, 0.89, 1.0),
    "secondary": (0.89, 0.45, 0.29, 1.0),
}
