"""
Renren Package
==============

Deterministic engine for a falling-pair, chain-matching puzzle game.
The engine lives in ``renren.puyo_core``:

- Field model and gravity
- Connectivity search and erasure
- Scoring tables
- Seeded xorshift128+ RNG
- Snapshot ledger and replay

All tunable rules are in game_config.yaml.
"""
