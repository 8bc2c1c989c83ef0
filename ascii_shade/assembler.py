"""
Output Assembler

Turns the matcher's grid of candidate indices back into text.
"""

from typing import Sequence

import numpy as np


def assemble_text(grid, characters: Sequence[str]) -> str:
    """
    Map each index in ``grid`` to its character and join into rows.

    Args:
        grid: (rows, cols) array or tensor of indices into ``characters``
        characters: The ordered candidate list the matcher was given

    Returns:
        Row-major text, rows separated by newlines; "" when there is
        nothing to show
    """
    if hasattr(grid, "detach"):
        grid = grid.detach().cpu().numpy()
    grid = np.asarray(grid)

    if not len(characters) or grid.ndim != 2 or grid.size == 0:
        return ""

    lookup = np.array(list(characters))
    return "\n".join("".join(row) for row in lookup[grid])
