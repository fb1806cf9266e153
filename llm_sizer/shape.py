"""Infers missing transformer dimensions from a parameter count.

Uses the dense-transformer rule of thumb ``params ~= 12 * layers * hidden**2``
and a target per-head dimension of about 128, which matches most recent
open-weight models closely enough for sizing purposes.
"""

import logging
import math
from typing import Optional

from .errors import InvalidWorkloadError
from .models import ResolvedShape

logger = logging.getLogger(__name__)

HIDDEN_SIZE_ALIGNMENT = 64
TARGET_HEAD_DIM = 128
MIN_HEADS = 8
MIN_HEAD_DIM = 16

# (minimum params in billions, layer count), checked top to bottom
LAYER_BRACKETS = (
    (60, 80),
    (30, 64),
    (12, 48),
)
DEFAULT_LAYERS = 32


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def align_up(value: float, base: int = HIDDEN_SIZE_ALIGNMENT) -> int:
    """Round *value* up to a multiple of *base*, never returning less than *base*."""
    return max(base, int(math.ceil(value / base)) * base)


def estimate_layers(params_b: float) -> int:
    for min_params_b, layers in LAYER_BRACKETS:
        if params_b >= min_params_b:
            return layers
    return DEFAULT_LAYERS


def estimate_hidden_size(params_b: float, layers: int) -> int:
    hidden = math.sqrt((params_b * 1e9) / (12 * layers))
    return align_up(hidden)


def estimate_heads(hidden_size: int) -> int:
    return max(MIN_HEADS, _round_half_up(hidden_size / TARGET_HEAD_DIM))


def estimate_active_params(
    params_b: float, num_experts: Optional[int] = None, top_k: Optional[int] = None
) -> float:
    """Estimate parameters active per token for a mixture-of-experts model.

    Dense models (no expert count) activate every parameter. For MoE models
    the experts are assumed to hold the bulk of the weights, so the active
    share is ``top_k / num_experts``.

    Args:
        params_b: Total parameters in billions
        num_experts: Number of experts per MoE layer (None or 0 for dense)
        top_k: Experts routed per token (defaults to 1)

    Returns:
        Active parameters in billions
    """
    if not num_experts:
        return params_b
    return params_b / num_experts * (top_k or 1)


class ShapeResolver:
    """Fills in layer count, hidden size and head layout for a model."""

    def resolve(
        self,
        params_b: float,
        layers: Optional[int] = None,
        hidden_size: Optional[int] = None,
        heads: Optional[int] = None,
    ) -> ResolvedShape:
        """Resolve a complete shape, keeping every hint that was supplied.

        Args:
            params_b: Total parameters in billions
            layers: Optional layer count hint
            hidden_size: Optional hidden dimension hint
            heads: Optional attention head count hint

        Returns:
            ResolvedShape with every dimension >= 1

        Raises:
            InvalidWorkloadError: If params_b is not a positive finite number
        """
        if not math.isfinite(params_b) or params_b <= 0:
            raise InvalidWorkloadError("params_b", f"must be > 0, got {params_b!r}")

        layers = layers or estimate_layers(params_b)
        hidden_size = hidden_size or estimate_hidden_size(params_b, layers)
        heads = heads or estimate_heads(hidden_size)
        head_dim = max(MIN_HEAD_DIM, _round_half_up(hidden_size / heads))

        shape = ResolvedShape(
            layers=layers,
            hidden_size=hidden_size,
            heads=heads,
            head_dim=head_dim,
        )
        logger.debug("Resolved shape for %.2fB params: %s", params_b, shape)
        return shape


def resolve_shape(
    params_b: float,
    layers: Optional[int] = None,
    hidden_size: Optional[int] = None,
    heads: Optional[int] = None,
) -> ResolvedShape:
    """Module-level shortcut for ``ShapeResolver().resolve``."""
    return ShapeResolver().resolve(params_b, layers=layers, hidden_size=hidden_size, heads=heads)
