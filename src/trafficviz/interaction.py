"""Pointer-driven highlight state per feature."""

from __future__ import annotations

import logging
from dataclasses import replace

from .config import InteractionConfig
from .models import HIGHLIGHT_ACTIVE, HIGHLIGHT_BASE, KIND_REGION, StyleDescriptor
from .style import EncodingContext, StyleResolver

_LOGGER = logging.getLogger("trafficviz.interaction")


class InteractionController:
    """Two-state machine (base/highlighted) kept per feature id.

    Styles are always re-resolved from the context so a reset reflects the
    current feature data and scales, not the style seen at hover time.
    """

    def __init__(
        self,
        resolver: StyleResolver,
        context: EncodingContext,
        cfg: InteractionConfig,
    ) -> None:
        self.resolver = resolver
        self.context = context
        self.cfg = cfg

    def state(self, feature_id: str) -> str:
        return self.context.highlight_state(feature_id)

    def pointer_enter(self, feature_id: str) -> StyleDescriptor:
        style = self._emphasis(self._base_style(feature_id), feature_id)
        self.context.highlight[feature_id] = HIGHLIGHT_ACTIVE
        _LOGGER.debug("highlight on: %s", feature_id)
        return style

    def pointer_leave(self, feature_id: str) -> StyleDescriptor:
        style = self._base_style(feature_id)
        self.context.highlight[feature_id] = HIGHLIGHT_BASE
        _LOGGER.debug("highlight off: %s", feature_id)
        return style

    def current_style(self, feature_id: str) -> StyleDescriptor:
        base = self._base_style(feature_id)
        if self.state(feature_id) == HIGHLIGHT_ACTIVE:
            return self._emphasis(base, feature_id)
        return base

    def _base_style(self, feature_id: str) -> StyleDescriptor:
        return self.resolver.resolve(self.context.feature(feature_id), self.context)

    def _emphasis(self, base: StyleDescriptor, feature_id: str) -> StyleDescriptor:
        # only the stroke width changes; data-driven colors stay as resolved
        if self.context.feature(feature_id).kind == KIND_REGION:
            width = max(base.stroke_width, self.cfg.region_emphasis_width)
        else:
            width = base.stroke_width * self.cfg.segment_emphasis_factor
        return replace(base, stroke_width=width)
