"""BMV category labels (`P_V_Art`).

The first entry of each list is the fallback when classification fails.
"""

REHEARSAL_CATEGORIES: tuple[str, ...] = (
    "Ensembleprobe",
    "Gesamtorchester Teilprobe",
    "Jugendorchester Vollprobe",
    "Gesamtorchester Vollprobe",
    "Jugendorchester Teilprobe",
    "Sitzung",
)

EVENT_CATEGORIES: tuple[str, ...] = (
    "Vereinseigene Konzerte",
    "Kirchliche Feierlichkeiten",
    "Wettbewerbe/Wertungsspiele",
    "Veranstaltungen privater Körperschaften",
    "Sonstige Anlässe",
    "Veranstaltungen von Tourismusverbänden",
    "Private Anlässe",
    "Öffentliche Anlässe (Gemeinde, Parteien)",
    "Begräbnisse",
    "Vereinseigene Musikfeste",
)
