"""Preset landmark locations with pronounced relief.

Single source of truth for the named locations offered by
scripts/build_terrain.py and TerrainSession.build_random_landmark().
All presets use zoom 12, where one tile spans roughly 5-10 km.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Landmark:
    name: str
    latitude: float
    longitude: float
    zoom: int = 12


LANDMARKS: tuple[Landmark, ...] = (
    Landmark("Mount Everest, Himalayas", 27.9881, 86.9250),
    Landmark("Grand Canyon, USA", 36.1069, -112.1129),
    Landmark("Geirangerfjord, Norway", 62.1049, 7.0050),
    Landmark("Uluru (Ayers Rock), Australia", -25.3444, 131.0369),
    Landmark("Matterhorn, Swiss Alps", 45.9763, 7.6586),
    Landmark("Mauna Kea, Hawaii", 19.8207, -155.4681),
    Landmark("Dead Sea Region", 31.5590, 35.4732),
    Landmark("Torres del Paine, Patagonia, Chile", -50.9423, -73.4068),
    Landmark("Bryce Canyon, Utah, USA", 37.5930, -112.1871),
    Landmark("Mount Fuji, Japan", 35.3606, 138.7274),
    Landmark("Denali, Alaska", 63.0692, -151.0070),
)


def find_landmark(name: str) -> Landmark:
    """Return the landmark whose name starts with ``name`` (case-insensitive).

    Raises:
        KeyError: If no landmark or more than one landmark matches
    """
    needle = name.strip().lower()
    matches = [lm for lm in LANDMARKS if lm.name.lower().startswith(needle)]
    if len(matches) != 1:
        raise KeyError(
            f"{name!r} matches {len(matches)} landmarks; "
            f"choose one of: {', '.join(lm.name for lm in LANDMARKS)}"
        )
    return matches[0]
