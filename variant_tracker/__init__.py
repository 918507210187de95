# Influenza Variant Tracker
"""
Influenza Variant Tracker (H1N1 / H3N2)
Derived surveillance metrics over published snapshot extracts.

Project Structure:
    variant_tracker/
    ├── common/      - Time key codec, policy constants, warning taxonomy
    ├── data/        - BLOCK 1: Snapshot records, JSON loading, snapshot context
    ├── features/    - BLOCK 2: Aggregation, growth/rank, geographic rollups
    ├── labels/      - Discrete classifiers (dominance, recency)
    ├── evaluation/  - BLOCK 3: Headline KPIs
    └── report.py    - BLOCK 4: Full dashboard report assembly
"""

__version__ = "0.1.0"
__author__ = "Variant Tracker Team"
