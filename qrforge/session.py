"""Render session.

A RenderSession owns the render-cycle state of one editor: the generation
counter used for last-write-wins, the last successful preview and the
last error. Configurations are always passed in explicitly and are never
modified.

One render cycle:
    1. Bump the generation counter
    2. Resolve background assets, and in parallel resolve the QR logo and
       generate the symbol; wait until everything has settled
    3. Compose the visual tree
    4. If a newer cycle started meanwhile, mark the result stale and do
       not apply it

Per-layer asset failures become warnings on the result. A symbol failure
fails the cycle.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from .assets import AssetResolver, AssetWarning, ResolvedAsset
from .canvas import CanvasConfiguration
from .config import Settings, settings as default_settings
from .exceptions import AssetResolutionError, QRForgeError
from .rendering import ExportResult, QrSymbol, QrSymbolRenderer, Rasterizer, VisualTree, compose

logger = logging.getLogger(__name__)

LOGO_LAYER_ID = "logo"


@dataclass
class RenderResult:
    """Outcome of one render cycle."""

    tree: VisualTree
    symbol: QrSymbol
    generation: int
    assets: dict[str, ResolvedAsset] = field(default_factory=dict)
    warnings: list[AssetWarning] = field(default_factory=list)
    stale: bool = False


class RenderSession:
    """Runs render cycles, previews and exports for one editor."""

    def __init__(
        self,
        resolver: AssetResolver | None = None,
        symbol_renderer: QrSymbolRenderer | None = None,
        rasterizer: Rasterizer | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self.resolver = resolver or AssetResolver(settings=self.settings)
        self.symbol_renderer = symbol_renderer or QrSymbolRenderer(self.settings.QR_SUPERSAMPLE)
        self.rasterizer = rasterizer or Rasterizer(self.settings)

        self._generation = 0
        self.current: Optional[RenderResult] = None
        self.last_preview: Optional[ExportResult] = None
        self.last_error: Optional[Exception] = None

    @property
    def generation(self) -> int:
        """Number of render cycles started so far."""
        return self._generation

    async def _symbol(self, config: CanvasConfiguration) -> tuple[QrSymbol, list[AssetWarning]]:
        """Resolve the logo (if any) and generate the symbol."""
        logo = None
        warnings: list[AssetWarning] = []
        if config.qr.logo is not None and config.qr.logo.src:
            try:
                logo = await self.resolver.resolve(config.qr.logo.src, layer_id=LOGO_LAYER_ID)
            except AssetResolutionError as e:
                logger.warning(f"QR logo failed, rendering without it: {e}")
                warnings.append(AssetWarning(layer_id=LOGO_LAYER_ID, source=e.source, message=str(e)))
        return self.symbol_renderer.render(config.qr, logo), warnings

    async def _cycle(self, config: CanvasConfiguration, generation: int) -> RenderResult:
        requests = {}
        missing: list[AssetWarning] = []
        for layer in config.backgrounds:
            if not layer.src:
                missing.append(AssetWarning(layer_id=layer.id, source="", message="Background has no source"))
            elif layer.has_content():
                requests[layer.id] = layer.src

        # Wait for both sides to settle before surfacing any failure
        assets_outcome, symbol_outcome = await asyncio.gather(
            self.resolver.resolve_many(requests),
            self._symbol(config),
            return_exceptions=True,
        )
        for outcome in (symbol_outcome, assets_outcome):
            if isinstance(outcome, BaseException):
                raise outcome

        assets, warnings = assets_outcome
        symbol, logo_warnings = symbol_outcome
        warnings = [*missing, *warnings, *logo_warnings]

        tree = compose(config, assets, symbol, warnings=warnings, generation=generation)
        return RenderResult(
            tree=tree,
            symbol=symbol,
            generation=generation,
            assets=assets,
            warnings=warnings,
        )

    async def render(self, config: CanvasConfiguration) -> RenderResult:
        """
        Run one render cycle.

        Args:
            config: Configuration snapshot for this cycle

        Returns:
            RenderResult. ``stale`` is set when a newer cycle was started
            before this one finished; stale results are not applied.

        Raises:
            SymbolGenerationError: If the QR symbol cannot be generated
        """
        return await self._apply(config, self._next_generation())

    def _next_generation(self) -> int:
        self._generation += 1
        logger.debug(f"Render cycle {self._generation} started")
        return self._generation

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    async def _apply(self, config: CanvasConfiguration, generation: int) -> RenderResult:
        """Run the cycle for ``generation`` and apply it unless superseded."""
        result = await self._cycle(config, generation)
        if self._is_stale(generation):
            logger.debug(f"Render cycle {generation} superseded by {self._generation}")
            result.stale = True
            return result

        self.current = result
        logger.debug(f"Render cycle {generation} applied with {len(result.warnings)} warnings")
        return result

    async def preview(self, config: CanvasConfiguration) -> Optional[ExportResult]:
        """
        Render the live preview at the default scale.

        On failure the previous preview is kept and the error is stored in
        ``last_error`` before it is re-raised. A superseded cycle never
        reports its failure; it returns the current preview instead.

        Returns:
            The new preview, or the current one if this cycle was superseded
        """
        generation = self._next_generation()
        try:
            result = await self._apply(config, generation)
            if result.stale:
                return self.last_preview
            preview = self.rasterizer.rasterize(
                result.tree, config.export, scale=self.settings.DEFAULT_SCALE
            )
        except QRForgeError as e:
            if self._is_stale(generation):
                logger.debug(f"Superseded render cycle {generation} failed: {e}")
                return self.last_preview
            self.last_error = e
            logger.debug(f"Preview failed, keeping the previous one: {e}")
            raise

        self.last_preview = preview
        self.last_error = None
        return preview

    async def export(
        self,
        config: CanvasConfiguration,
        *,
        scale: float | None = None,
        quality: float | None = None,
        border_radius: float | None = None,
        format: str | None = None,
    ) -> ExportResult:
        """
        High-fidelity export.

        Runs its own cycle outside the preview's last-write-wins ordering.
        Overrides apply to this call only; ``config`` is not modified.

        Args:
            config: Configuration to export
            scale: Scale factor (default DEFAULT_SCALE)
            quality: Override of export.quality
            border_radius: Override of export.borderRadius
            format: Override of export.format ('png' or 'jpg')

        Returns:
            ExportResult; its ``warnings`` name the layers whose assets failed

        Raises:
            SymbolGenerationError: If the QR symbol cannot be generated
            RasterizationError: If snapshot or encoding fails
        """
        result = await self._cycle(config, self._generation)
        exported = self.rasterizer.rasterize(
            result.tree,
            config.export,
            scale=scale,
            quality=quality,
            border_radius=border_radius,
            format=format,
        )
        logger.info(
            f"Exported {exported.width}x{exported.height} {exported.mime_type} "
            f"({exported.size} bytes, {len(result.warnings)} warnings)"
        )
        return exported

    async def estimate_file_size(self, config: CanvasConfiguration, scale: float | None = None) -> int:
        """
        Estimate the encoded size of a PNG export at ``scale``.

        Exports at scale 1 and multiplies by scale squared. Falls back to
        half a byte per output pixel when that export fails.
        """
        scale = self.settings.DEFAULT_SCALE if scale is None else scale
        try:
            sample = await self.export(config, scale=1, format="png")
        except QRForgeError as e:
            logger.debug(f"Size estimate falls back to pixel count: {e}")
            return int(config.export.width * config.export.height * scale * scale * 0.5)
        return int(sample.size * scale * scale)
