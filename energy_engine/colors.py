"""
ROYGBIV color level helpers.
Derived views over an energy total; nothing here is persisted.
"""
from typing import Sequence

from energy_engine.constants import COLOR_LEVELS, COLOR_THRESHOLDS, MAX_COLOR_INDEX


def color_index_of(total_energy: int, thresholds: Sequence[int] = COLOR_THRESHOLDS) -> int:
    """Highest color level whose threshold is reached (0-6)"""
    index = 0
    for i, threshold in enumerate(thresholds):
        if total_energy >= threshold:
            index = i
    return index


def progress_to_next_color(total_energy: int, thresholds: Sequence[int] = COLOR_THRESHOLDS) -> float:
    """
    Percentage (0-100) of the way from the current level to the next.

    The last level is open-ended, so it always reports 100.
    """
    index = color_index_of(total_energy, thresholds)
    if index >= len(thresholds) - 1:
        return 100.0

    current = thresholds[index]
    needed = thresholds[index + 1] - current
    if needed <= 0:
        return 100.0
    return min(100.0, max(0.0, (total_energy - current) / needed * 100))


def color_level(index: int) -> dict:
    """Descriptor for a color level index"""
    index = max(0, min(MAX_COLOR_INDEX, index))
    name, color_name, hex_color, energy_required = COLOR_LEVELS[index]
    return {
        "index": index,
        "name": name,
        "color_name": color_name,
        "color": hex_color,
        "energy_required": energy_required,
    }
