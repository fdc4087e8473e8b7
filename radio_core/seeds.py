# Stations added on the very first run, when nothing has been stored yet.
SEED_ITEMS = [
    {"source_id": "w6H_OPzo9Gk", "title": "Greta Cozy Autumn Mix"},
    {"source_id": "jfKfPfyJRdk", "title": "Lofi HipHop Radio"},
    {"source_id": "fIWRqMLhWbI", "title": "Chris Luno Thailand"},
    {"source_id": "p4YOXmm839c", "title": "Sunrise House Mix"},
    {"source_id": "St7G1F4mu_4", "title": "Olivia Dean"},
    {"source_id": "W13Ydr_AcjI", "title": "Nikiri - Chill House"},
]
