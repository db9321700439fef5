"""
plotting.py
~~~~~~~~~~~

Rendering of training error curves as PNG images.
"""

import base64
from io import BytesIO
from typing import Sequence

# Use non-GUI backend for matplotlib (required for server environments)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt


def render_error_curve(error_history: Sequence[float], title: str = 'Training error') -> str:
    """
    Create a base64-encoded PNG plot of per-epoch training error.

    Args:
        error_history: Aggregate error for each epoch, first epoch first
        title: Plot title

    Returns:
        Base64-encoded PNG image string

    Raises:
        ValueError: If error_history is empty
    """
    if len(error_history) == 0:
        raise ValueError("error_history is empty")

    fig, ax = plt.subplots(figsize=(5, 3))
    ax.plot(range(1, len(error_history) + 1), error_history)
    ax.set_xlabel('Epoch')
    ax.set_ylabel('Mean squared error')
    ax.set_title(title)
    if min(error_history) > 0:
        ax.set_yscale('log')

    # Save image to a bytes buffer instead of a file
    buffer = BytesIO()
    fig.savefig(buffer, format='png', bbox_inches='tight')
    plt.close(fig)
    return base64.b64encode(buffer.getvalue()).decode('utf-8')
